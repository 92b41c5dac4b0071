"""Identifier utilities: slugs, Java class and method names derived from free text."""

import re

JAVA_KEYWORDS = {
    "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char",
    "class", "const", "continue", "default", "do", "double", "else", "enum",
    "extends", "final", "finally", "float", "for", "goto", "if", "implements",
    "import", "instanceof", "int", "interface", "long", "native", "new", "package",
    "private", "protected", "public", "return", "short", "static", "strictfp",
    "super", "switch", "synchronized", "this", "throw", "throws", "transient",
    "try", "void", "volatile", "while", "true", "false", "null",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

METHOD_NAME_WORDS = 5


def slugify(text):
    """Convert text to a filesystem-safe slug."""
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "_", text)
    return text.strip("_")


def is_java_keyword(word):
    return word in JAVA_KEYWORDS


def is_valid_java_identifier(name):
    return bool(name) and bool(_IDENTIFIER_RE.match(name)) and not is_java_keyword(name)


def _words(text):
    return re.sub(r"[^A-Za-z0-9\s_-]", " ", text).replace("_", " ").replace("-", " ").split()


def to_pascal_case(text):
    """'user profile_page' -> 'UserProfilePage'. Existing inner capitals are kept."""
    return "".join(w[:1].upper() + w[1:] for w in _words(text))


def class_name(text, fallback="TestFeature"):
    """Sanitize free text into a valid PascalCase Java class name."""
    name = to_pascal_case(text)
    if name and not name[0].isalpha():
        name = "Test" + name
    if not is_valid_java_identifier(name):
        return fallback
    return name


def method_name_from_step(step_text):
    """First five words of a step, camel-cased: 'user clicks Sign In' -> 'userClicksSignIn'."""
    words = _words(step_text)[:METHOD_NAME_WORDS]
    if not words:
        return "generatedStep"
    name = "".join(w[:1].upper() + w[1:].lower() for w in words)
    name = name[:1].lower() + name[1:]
    if name[0].isdigit():
        name = "step" + name[:1].upper() + name[1:]
    if is_java_keyword(name):
        name += "Step"
    return name


def unique_name(name, existing):
    """Append 2, 3, ... until name is not in existing."""
    candidate = name
    suffix = 2
    while candidate in existing:
        candidate = f"{name}{suffix}"
        suffix += 1
    return candidate
