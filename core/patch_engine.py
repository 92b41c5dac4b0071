"""Patch engine — an ordered catalogue of source rewrite rules keyed by diagnostic.

Each rule is a value: a predicate over a Diagnostic, a pure content transform,
and a target selector naming the file the transform applies to (usually the
diagnostic's own file; visibility and missing-member fixes land in the owner
class instead). Rules are tried in catalogue order and the first match wins.

Every transform is idempotent: applying it to its own output changes nothing.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from config.rules import KNOWN_IMPORTS, DEPENDENCY_PACKAGES, LOCATION_OWNER
from config.stacks import BUILD_TOOLS
from core.reconciler import (
    extract_implemented_steps, normalize_step, render_stub, step_matches, insert_stubs,
)
from core.state import (
    Diagnostic, PatchResult, MISSING_IMPORT, MISSING_METHOD, UNRESOLVED_SYMBOL,
    SYNTAX_ERROR, UNDEFINED_STEP,
)
from utils.java_source import (
    add_import, declares_method, insert_after_class_header, insert_before_closing_brace,
    method_names,
)
from utils.naming import method_name_from_step, unique_name

logger = logging.getLogger(__name__)

_SYMBOL_RE = re.compile(r"symbol\s*:\s*(?P<kind>\w+)\s+(?P<name>[\w$]+)(?:\((?P<args>[^)]*)\))?")
_ACCESS_OWNER_RE = re.compile(r"(?:has (?:protected|private) access in|is not public in)\s+(?P<owner>[\w.$]+)")
_MISSING_PACKAGE_RE = re.compile(r"package (?P<package>[\w.]+) does not exist")
_CONSTANT_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


@dataclass(frozen=True)
class PatchRule:
    name: str
    matches: Callable[[Diagnostic], bool]
    apply: Callable[[Diagnostic, str], str]
    target: Callable[[Diagnostic], str] = lambda d: d.source_path
    # Reads the compiler-reported line number of the unpatched file
    line_addressed: bool = False


# ---------------------------------------------------------------------------
# Diagnostic helpers
# ---------------------------------------------------------------------------

def _symbol(diagnostic):
    """(kind, name, [arg types]) from the 'symbol:' line, or ("", subject, [])."""
    m = _SYMBOL_RE.search(diagnostic.raw_message)
    if not m:
        return "", diagnostic.subject, []
    args = [a.strip() for a in (m.group("args") or "").split(",") if a.strip()]
    return m.group("kind"), m.group("name"), args


def _owner(diagnostic):
    """Fully-qualified class that should receive the fix, "" if not reported."""
    for pattern in (LOCATION_OWNER, _ACCESS_OWNER_RE):
        m = pattern.search(diagnostic.raw_message)
        if m:
            return m.group("owner")
    return ""


def class_to_path(fqcn, build_tool="maven"):
    """Map 'pages.Login' to its source file under the main or test root."""
    if "." not in fqcn:
        return ""
    stack = BUILD_TOOLS[build_tool]
    package, simple = fqcn.rsplit(".", 1)
    # Nested classes live in their outer class's file
    simple = simple.split("$", 1)[0]
    root = stack["main_root"] if package.split(".", 1)[0] in stack["main_packages"] else stack["test_root"]
    return f"{root}/{package.replace('.', '/')}/{simple}.java"


def _owner_path(diagnostic):
    owner = _owner(diagnostic)
    return class_to_path(owner) if owner else ""


def _owner_or_source(diagnostic):
    return _owner_path(diagnostic) or diagnostic.source_path


def _parameters(arg_types):
    """'com.microsoft.playwright.Page' -> ('Page page'), imports to add."""
    params, imports = [], []
    for i, java_type in enumerate(arg_types):
        simple = java_type.rsplit(".", 1)[-1]
        if "." in java_type and not java_type.startswith("java.lang."):
            imports.append(java_type)
        name = "page" if simple == "Page" else f"arg{i}"
        params.append(f"{simple} {name}")
    return ", ".join(params), imports


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _is_known_import(d):
    kind, name, _ = _symbol(d)
    return (
        d.category == UNRESOLVED_SYMBOL
        and kind in ("class", "variable", "interface", "")
        and name in KNOWN_IMPORTS
    )


def _add_known_import(d, content):
    _, name, _ = _symbol(d)
    return add_import(content, KNOWN_IMPORTS[name])


def _is_bad_import(d):
    if d.category != MISSING_IMPORT:
        return False
    m = _MISSING_PACKAGE_RE.search(d.raw_message)
    if not m:
        return False
    package = m.group("package")
    return not any(
        dep == package or dep.startswith(package + ".") for dep in DEPENDENCY_PACKAGES
    )


def _remove_bad_import(d, content):
    package = _MISSING_PACKAGE_RE.search(d.raw_message).group("package")
    pattern = re.compile(
        r"^([ \t]*)(import\s+(?:static\s+)?" + re.escape(package) + r"\.[\w.*]+\s*;)",
        re.MULTILINE,
    )
    return pattern.sub(r"\1// removed: \2", content)


def _is_access_error(d):
    return d.category == UNRESOLVED_SYMBOL and bool(d.subject) and _ACCESS_OWNER_RE.search(d.raw_message) is not None


def _make_public(d, content):
    name = re.escape(d.subject)
    declaration = r"((?:static\s+)?(?:final\s+)?[\w<>\[\],]+\s+" + name + r"\s*[(=;])"
    content = re.sub(r"\b(?:protected|private)\s+" + declaration, r"public \1", content)
    # Package-private members have no modifier at all; fields only at member indent
    unmodified = r"(?!public\b|protected\b|private\b|return\b|new\b)"
    content = re.sub(
        r"^([ \t]+)" + unmodified + r"((?:static\s+)?(?:final\s+)?[\w<>\[\],]+\s+" + name + r"\s*\()",
        r"\1public \2",
        content,
        flags=re.MULTILINE,
    )
    return re.sub(
        r"^( {4}|\t)" + unmodified + r"((?:static\s+)?(?:final\s+)?[\w<>\[\],]+\s+" + name + r"\s*[=;])",
        r"\1public \2",
        content,
        flags=re.MULTILINE,
    )


def _is_missing_navigate(d):
    return d.category == MISSING_METHOD and d.subject.startswith("navigateTo") and bool(_owner_path(d))


def _add_navigate_to(d, content):
    if declares_method(content, d.subject):
        return content
    page = d.subject[len("navigateTo"):] or "page"
    method = (
        "    /**\n"
        f"     * Navigate to {page}\n"
        "     * @param page Playwright Page instance\n"
        "     */\n"
        f"    public static void {d.subject}(Page page) {{\n"
        '        String url = loadProps.getProperty("URL");\n'
        '        page.navigate(url);\n'
        "        page.waitForLoadState();\n"
        "    }\n"
    )
    content = add_import(content, KNOWN_IMPORTS["Page"])
    content = add_import(content, KNOWN_IMPORTS["loadProps"])
    return insert_before_closing_brace(content, method)


def _is_missing_method(d):
    return d.category == MISSING_METHOD and bool(d.subject) and bool(_owner_path(d))


def _add_missing_method(d, content):
    if declares_method(content, d.subject):
        return content
    _, _, arg_types = _symbol(d)
    signature, imports = _parameters(arg_types)
    method = (
        f"    public static void {d.subject}({signature}) {{\n"
        f'        System.out.println("⚠️ Method not yet implemented: {d.subject}");\n'
        "    }\n"
    )
    for fqcn in imports:
        content = add_import(content, fqcn)
    return insert_before_closing_brace(content, method)


def _is_missing_constant(d):
    kind, name, _ = _symbol(d)
    return d.category == UNRESOLVED_SYMBOL and kind == "variable" and bool(_CONSTANT_RE.match(name))


def _add_locator_constant(d, content):
    _, name, _ = _symbol(d)
    if re.search(r"\b" + re.escape(name) + r"\s*=", content):
        return content
    return insert_after_class_header(content, f'    public static final String {name} = "TODO";\n')


def _is_missing_semicolon(d):
    return d.category == SYNTAX_ERROR and d.line is not None and "';' expected" in d.raw_message


def _add_semicolon(d, content):
    lines = content.split("\n")
    index = d.line - 1
    if not 0 <= index < len(lines):
        return content
    stripped = lines[index].rstrip()
    if not stripped or stripped.endswith((";", "{", "}", ",", "(")) or stripped.lstrip().startswith(("//", "*", "@")):
        return content
    lines[index] = stripped + ";"
    return "\n".join(lines)


def _is_undefined_step(d):
    return d.category == UNDEFINED_STEP and bool(d.subject)


def _add_step_definition(d, content):
    text = normalize_step(d.subject)
    if any(step_matches(impl.text, text) for impl in extract_implemented_steps(content)):
        return content
    method = unique_name(method_name_from_step(text), method_names(content))
    return insert_stubs(content, [render_stub(text, method=method)])


RULES = [
    PatchRule("add-known-import", _is_known_import, _add_known_import),
    PatchRule("remove-bad-import", _is_bad_import, _remove_bad_import),
    PatchRule("public-visibility", _is_access_error, _make_public, _owner_path),
    PatchRule("add-navigate-to", _is_missing_navigate, _add_navigate_to, _owner_path),
    PatchRule("add-missing-method", _is_missing_method, _add_missing_method, _owner_path),
    PatchRule("add-locator-constant", _is_missing_constant, _add_locator_constant, _owner_or_source),
    PatchRule("fix-missing-semicolon", _is_missing_semicolon, _add_semicolon, line_addressed=True),
    PatchRule("add-step-definition", _is_undefined_step, _add_step_definition),
]


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def find_rule(diagnostic, rules=None):
    """First rule in catalogue order whose predicate accepts diagnostic, else None."""
    for rule in rules if rules is not None else RULES:
        if rule.matches(diagnostic):
            return rule
    return None


def patch(diagnostic, content, rules=None):
    """Apply the first matching rule to content.

    Returns PatchResult; rule is None when no rule applies, and changed is
    False when the rule matched but the fix was already present.
    """
    rule = find_rule(diagnostic, rules)
    if rule is None:
        logger.debug("[Patch] no rule for %s: %s", diagnostic.category, diagnostic.subject)
        return PatchResult(content=content, changed=False, rule=None)
    patched = rule.apply(diagnostic, content)
    changed = patched != content
    logger.debug("[Patch] %s %s", rule.name, "applied" if changed else "already present")
    return PatchResult(content=patched, changed=changed, rule=rule.name)
