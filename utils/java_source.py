"""Small text helpers over Java source files. Regex only, no parsing."""

import re

_PACKAGE_RE = re.compile(r"^[ \t]*package\s+([\w.]+)\s*;[ \t]*$", re.MULTILINE)
_CLASS_RE = re.compile(r"\b(?:class|interface|enum)\s+([A-Za-z_$][\w$]*)[^{]*\{")
_METHOD_RE = re.compile(r"\b(?:public|protected|private)\s+(?:static\s+)?(?:final\s+)?[\w<>\[\]]+\s+([A-Za-z_$][\w$]*)\s*\(")


def package_of(content):
    m = _PACKAGE_RE.search(content)
    return m.group(1) if m else ""


def has_import(content, fqcn):
    """True if fqcn is imported directly or through its package wildcard."""
    package = fqcn.rsplit(".", 1)[0]
    pattern = r"^[ \t]*import\s+(?:static\s+)?(?:{}|{}\.\*)\s*;".format(
        re.escape(fqcn), re.escape(package)
    )
    return re.search(pattern, content, re.MULTILINE) is not None


def add_import(content, fqcn):
    """Insert 'import fqcn;' on the line right after the package declaration.

    No-op when already imported or when fqcn lives in the file's own package.
    """
    if has_import(content, fqcn):
        return content
    package = package_of(content)
    if package and fqcn.rsplit(".", 1)[0] == package:
        return content
    line = f"import {fqcn};"
    m = _PACKAGE_RE.search(content)
    if not m:
        return line + "\n" + content
    return content[:m.end()] + "\n" + line + content[m.end():]


def declares_method(content, name):
    return re.search(r"\b" + re.escape(name) + r"\s*\([^;{)]*\)\s*(?:throws [\w., ]+)?\{", content) is not None


def method_names(content):
    return {m.group(1) for m in _METHOD_RE.finditer(content)}


def insert_before_closing_brace(content, block):
    """Insert block just before the last '}' of the file (end of the top-level class)."""
    idx = content.rfind("}")
    if idx == -1:
        return content.rstrip("\n") + "\n" + block
    head = content[:idx].rstrip("\n") + "\n"
    return head + "\n" + block + content[idx:]


def insert_after_class_header(content, block):
    """Insert block on the line after the first class declaration's opening brace."""
    m = _CLASS_RE.search(content)
    if not m:
        return content
    return content[:m.end()] + "\n" + block + content[m.end():]
