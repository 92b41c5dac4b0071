"""Step reconciler — diffs feature-file steps against step definitions and writes stubs.

Matching is exact string equality on normalized text, widened only by the
Cucumber expression parameters ({string}, {int}, {float}, {word}, {}) and
optional text that the implementation side may declare.
"""

import functools
import logging
import re
from string import Template

from config.rules import (
    STEP_KEYWORD_RULES, DEFAULT_STEP_KEYWORD, STUB_INTENT_RULES, DEFAULT_STUB_INTENT,
)
from core.state import ScenarioStep, ImplementedStep, Reconciliation
from utils.java_source import add_import, insert_before_closing_brace, method_names
from utils.naming import method_name_from_step, unique_name

logger = logging.getLogger(__name__)

STUB_MARKER = "    // ========== AUTO-GENERATED MISSING STEPS =========="

_KEYWORD_PREFIX_RE = re.compile(r"^(?:Given|When|Then|And|But|\*)\s+")
_FEATURE_STEP_RE = re.compile(r"^\s*(Given|When|Then|And|But|\*)\s+(.+?)\s*$", re.MULTILINE)
_ANNOTATION_RE = re.compile(r'@(Given|When|Then|And|But)\(\s*"((?:[^"\\]|\\.)*)"\s*\)')

# Tokens of a scenario step that become Cucumber parameters in a stub
_QUOTED_RE = re.compile(r'"[^"]*"|\'[^\']*\'')
_NUMBER_RE = re.compile(r"(?<![\w.])-?\d+(?![\w.])")
_PLACEHOLDER_RE = re.compile(r"<[^<>\s]+>")

_PARAMETER_PATTERNS = {
    "string": r"(?:\"[^\"]*\"|'[^']*')",
    "int": r"-?\d+",
    "float": r"-?\d*\.\d+",
    "word": r"[^\s]+",
    "": r".*",
}
_PARAMETER_TYPES = {"string": "String", "int": "int", "float": "float", "word": "String", "": "String"}
_EXPRESSION_PARAM_RE = re.compile(r"\{(string|int|float|word|)\}")
_EXPRESSION_SYNTAX_RE = re.compile(r"[(){}/\\]")
_REGEX_SYNTAX_RE = re.compile(r"[\\^$.|?*+()\[\]{}]")
_REGEX_GROUPS = {"string": "[\"']([^\"']*)[\"']", "word": r"(\S+)", "int": r"(-?\d+)"}


# ---------------------------------------------------------------------------
# Normalization and parsing
# ---------------------------------------------------------------------------

def normalize_step(text):
    """Strip the Gherkin keyword, collapse whitespace, drop trailing punctuation."""
    text = re.sub(r"\s+", " ", text).strip()
    text = _KEYWORD_PREFIX_RE.sub("", text)
    return re.sub(r"[\s.!?]+$", "", text)


def _unescape_java(literal):
    return re.sub(r"\\(.)", lambda m: m.group(1), literal)


def _escape_java(text):
    return text.replace("\\", "\\\\").replace('"', '\\"')


def extract_scenario_steps(feature_text):
    """Every Given/When/Then/And/But line of a feature file, normalized, in order."""
    steps = []
    for m in _FEATURE_STEP_RE.finditer(feature_text or ""):
        text = normalize_step(m.group(2))
        if text:
            steps.append(ScenarioStep(text=text))
    return steps


def extract_implemented_steps(step_defs_text):
    """Every @Given/@When/@Then/@And/@But annotation of a step definitions file."""
    steps = []
    for m in _ANNOTATION_RE.finditer(step_defs_text or ""):
        text = normalize_step(_unescape_java(m.group(2)))
        keyword = m.group(1)
        if keyword in ("And", "But"):
            keyword = classify_keyword(text)
        steps.append(ImplementedStep(text=text, keyword=keyword))
    return steps


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=512)
def _expression_regex(expression):
    """Compile a Cucumber expression (or ^...$ regex) into a full-match regex."""
    if expression.startswith("^") or expression.endswith("$"):
        body = expression[1:] if expression.startswith("^") else expression
        if body.endswith("$") and not body.endswith("\\$"):
            body = body[:-1]
        try:
            return re.compile(body)
        except re.error:
            return re.compile(re.escape(expression))

    parts = []
    i = 0
    while i < len(expression):
        ch = expression[i]
        if ch == "\\" and i + 1 < len(expression):
            parts.append(re.escape(expression[i + 1]))
            i += 2
            continue
        if ch == "{":
            end = expression.find("}", i)
            name = expression[i + 1:end] if end != -1 else None
            if name is not None and name in _PARAMETER_PATTERNS:
                parts.append(_PARAMETER_PATTERNS[name])
                i = end + 1
                continue
        if ch == "(":
            end = expression.find(")", i)
            if end != -1:
                parts.append("(?:" + re.escape(expression[i + 1:end]) + ")?")
                i = end + 1
                continue
        parts.append(re.escape(ch))
        i += 1
    return re.compile("".join(parts))


def step_matches(implemented_text, scenario_text):
    if implemented_text == scenario_text:
        return True
    if not any(c in implemented_text for c in "{(\\^$"):
        return False
    return _expression_regex(implemented_text).fullmatch(scenario_text) is not None


def _text(step):
    return step if isinstance(step, str) else step.text


def missing_steps(scenario_steps, implemented_steps):
    """Normalized scenario texts with no matching implementation, first-seen order."""
    implemented = {normalize_step(_text(s)) for s in implemented_steps}
    parameterized = [t for t in implemented if any(c in t for c in "{(\\^$")]
    missing = []
    seen = set()
    for step in scenario_steps:
        text = normalize_step(_text(step))
        if not text or text in seen:
            continue
        seen.add(text)
        if text in implemented:
            continue
        if any(step_matches(expr, text) for expr in parameterized):
            continue
        missing.append(ScenarioStep(text=text))
    return missing


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def _first_match(rules, text, default):
    lower = text.lower()
    for pattern, value in rules:
        if pattern.search(lower):
            return value
    return default


def classify_keyword(step_text):
    """Given for setup phrasing, When for interactions, Then for outcomes (and by default)."""
    return _first_match(STEP_KEYWORD_RULES, step_text, DEFAULT_STEP_KEYWORD)


def classify_intent(step_text):
    return _first_match(STUB_INTENT_RULES, step_text, DEFAULT_STUB_INTENT)


# ---------------------------------------------------------------------------
# Stub templates: one pure function per intent, each returns body lines
# ---------------------------------------------------------------------------

def _first_string_param(params):
    for java_type, name in params:
        if java_type == "String":
            return name
    return None


def _quoted(text):
    return '"' + _escape_java(text) + '"'


def _target_phrase(step_text, verb_pattern):
    """Words after the action verb: 'user clicks on Sign In button' -> 'Sign In button'."""
    m = re.search(verb_pattern + r"\s+(?:on\s+|the\s+|a\s+|an\s+)*(.+)$", step_text, re.IGNORECASE)
    phrase = m.group(1) if m else step_text
    return _QUOTED_RE.sub("", phrase).strip() or step_text


def navigation_body(step_text, params):
    return [
        "page.waitForLoadState();",
        'Assert.assertNotNull(page.url(), "Page should be loaded");',
    ]


def click_body(step_text, params):
    target = _target_phrase(step_text, r"\b(?:clicks?|press(?:es)?|taps?|submits?)")
    return [f"page.getByText({_quoted(target)}).first().click();"]


def type_body(step_text, params):
    value = _first_string_param(params) or '"TODO"'
    return [f'page.locator("input").first().fill({value});']


def wait_body(step_text, params):
    return ["page.waitForLoadState();"]


def visibility_assert_body(step_text, params):
    return [f'Assert.assertTrue(page.locator("body").isVisible(), {_quoted(step_text)});']


def enabled_assert_body(step_text, params):
    return [f'Assert.assertTrue(page.locator("button").first().isEnabled(), {_quoted(step_text)});']


def contains_assert_body(step_text, params):
    value = _first_string_param(params) or _quoted(_target_phrase(step_text, r"\bcontains?"))
    return [f"Assert.assertTrue(page.content().contains({value}), {_quoted(step_text)});"]


def error_assert_body(step_text, params):
    return [
        'Assert.assertTrue(page.locator(".error, [role=alert]").first().isVisible(), '
        '"Error message should be displayed");',
    ]


def success_assert_body(step_text, params):
    return [
        'Assert.assertFalse(page.locator(".error, [role=alert]").first().isVisible(), '
        '"No error should be displayed");',
    ]


def generic_body(step_text, params):
    return [
        f"// TODO: Implement step: {step_text}",
        f'System.out.println("⚠️ Step not yet implemented: {_escape_java(step_text)}");',
    ]


STUB_BODIES = {
    "navigation": navigation_body,
    "click": click_body,
    "type": type_body,
    "wait": wait_body,
    "visibility_assert": visibility_assert_body,
    "enabled_assert": enabled_assert_body,
    "contains_assert": contains_assert_body,
    "error_assert": error_assert_body,
    "success_assert": success_assert_body,
    "generic": generic_body,
}

_STUB_TEMPLATE = Template(
    '    @${keyword}("${expression}")\n'
    "    public void ${method}(${signature}) {\n"
    '        System.out.println("📍 Step: ${label}");\n'
    "${body}"
    "    }\n"
)


def step_expression(step_text):
    """Turn a concrete step into a Cucumber expression plus method parameters.

    Quoted strings become {string}, bare integers {int}, outline placeholders
    {word}; characters Cucumber treats as syntax are escaped. A step that
    starts with ^ or ends with $ would be read by Cucumber as a regular
    expression, so it gets an anchored regex with capture groups instead.
    Returns (expression, [(java_type, name), ...]).
    """
    if _EXPRESSION_PARAM_RE.search(step_text):
        # Already an expression, e.g. taken from a Cucumber snippet
        params = [
            (_PARAMETER_TYPES[m.group(1)], f"arg{i}")
            for i, m in enumerate(_EXPRESSION_PARAM_RE.finditer(step_text))
        ]
        return step_text, params

    text = _QUOTED_RE.sub("\x00string\x00", step_text)
    text = _PLACEHOLDER_RE.sub("\x00word\x00", text)
    text = _NUMBER_RE.sub("\x00int\x00", text)

    as_regex = step_text.startswith("^") or step_text.endswith("$")
    pieces = re.split(r"\x00(string|word|int)\x00", text)
    expression = []
    params = []
    for idx, piece in enumerate(pieces):
        if idx % 2:
            expression.append(_REGEX_GROUPS[piece] if as_regex else "{" + piece + "}")
            params.append((_PARAMETER_TYPES[piece], f"arg{len(params)}"))
        elif as_regex:
            expression.append(_REGEX_SYNTAX_RE.sub(r"\\\g<0>", piece))
        else:
            expression.append(_EXPRESSION_SYNTAX_RE.sub(r"\\\g<0>", piece))
    if as_regex:
        return "^" + "".join(expression) + "$", params
    return "".join(expression), params


def render_stub(step_text, keyword=None, method=None):
    """Render one step definition method for a missing step."""
    keyword = keyword or classify_keyword(step_text)
    intent = classify_intent(step_text)
    expression, params = step_expression(step_text)
    body = STUB_BODIES[intent](step_text, params)
    return _STUB_TEMPLATE.substitute(
        keyword=keyword,
        expression=_escape_java(expression),
        method=method or method_name_from_step(step_text),
        signature=", ".join(f"{t} {n}" for t, n in params),
        label=_escape_java(step_text),
        body="".join(f"        {line}\n" for line in body),
    )


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def reconcile(scenario_steps, implemented_steps, existing_methods=()):
    """Compute missing steps and one stub per missing step.

    existing_methods: Java method names already declared in the step
    definitions file; generated stub names never collide with them.
    """
    missing = missing_steps(scenario_steps, implemented_steps)
    taken = set(existing_methods)
    stubs = []
    for step in missing:
        method = unique_name(method_name_from_step(step.text), taken)
        taken.add(method)
        stubs.append(render_stub(step.text, method=method))
    if missing:
        logger.info("[Reconcile] %d missing step definition(s)", len(missing))
    return Reconciliation(missing=missing, stubs=stubs)


def reconcile_files(feature_text, step_defs_text):
    """reconcile() over raw file contents."""
    return reconcile(
        extract_scenario_steps(feature_text),
        extract_implemented_steps(step_defs_text),
        existing_methods=method_names(step_defs_text or ""),
    )


def insert_stubs(step_defs_text, stubs):
    """Insert stubs before the class's closing brace under a single marker comment."""
    if not stubs:
        return step_defs_text

    content = step_defs_text
    for keyword in sorted({m.group(1) for s in stubs for m in _ANNOTATION_RE.finditer(s)}):
        content = add_import(content, f"io.cucumber.java.en.{keyword}")
    if any("Assert." in s for s in stubs):
        content = add_import(content, "org.testng.Assert")

    block = "\n".join(stubs)
    if STUB_MARKER not in content:
        block = STUB_MARKER + "\n\n" + block
    return insert_before_closing_brace(content, block)
