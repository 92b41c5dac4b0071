"""Pattern tables for diagnostic extraction, step classification and import repair.

All tables are tied to Maven/javac and Cucumber-JVM output phrasing.
"""

import re

# ---------------------------------------------------------------------------
# Compile-stage output
# ---------------------------------------------------------------------------

# "[ERROR] /abs/src/main/java/pages/Login.java:[12,8] cannot find symbol"
# "src/main/java/pages/Login.java:12: error: cannot find symbol"
LOCATED_COMPILE_ERROR = re.compile(
    r"^(?:\[ERROR\]\s+)?(?P<path>[^\s\[\]]+?\.java):"
    r"(?:\[(?P<line>\d+),\d+\]|(?P<javac_line>\d+):)\s*(?:error:\s*)?(?P<message>.+?)\s*$"
)

# "error: cannot find symbol" with no resolvable location
UNLOCATED_COMPILE_ERROR = re.compile(r"^(?:\[ERROR\]\s+)?error:\s*(?P<message>.+?)\s*$")

# Continuation lines javac prints under "cannot find symbol"
SYMBOL_LINE = re.compile(r"^(?:\[ERROR\])?\s*symbol\s*:\s*(?P<kind>\w+)\s+(?P<name>[\w$]+)")
LOCATION_LINE = re.compile(r"^(?:\[ERROR\])?\s*location\s*:\s*(?P<where>.+?)\s*$")
LOCATION_OWNER = re.compile(
    r"location\s*:\s*(?:.*?\bof type\s+|(?:\w+\s+)*?(?:class|interface|enum)\s+)(?P<owner>[\w.$]+)"
)

# Each entry: (message_regex, category). First match wins.
COMPILE_MESSAGE_PATTERNS = [
    (re.compile(r"cannot find symbol"), "unresolved_symbol"),
    (re.compile(r"has (?:protected|private) access in|is not public in"), "unresolved_symbol"),
    (re.compile(r"package [\w.]+ does not exist"), "missing_import"),
    (re.compile(r"cannot access [\w.]+"), "missing_import"),
    (re.compile(
        r"';' expected|'\)' expected|'\(' expected|<identifier> expected|illegal start of"
        r"|not a statement|reached end of file while parsing|unclosed string literal"
        r"|class, interface, enum,? or record expected|illegal character"
    ), "syntax_error"),
]

# ---------------------------------------------------------------------------
# Test-stage output
# ---------------------------------------------------------------------------

UNDEFINED_STEP_LINE = re.compile(
    r"^\s*(?:\[\w+\]\s*)?Undefined step:\s*(?:(?:Given|When|Then|And|But)\s+)?(?P<step>.+?)\s*$",
    re.IGNORECASE,
)

# cucumber-testng: "io.cucumber.testng.UndefinedStepException: The step 'x' is undefined."
UNDEFINED_STEP_MESSAGE = re.compile(
    r"The step ['\"](?P<step>.+?)['\"](?: and \d+ other step\(s\))? (?:is|are) undefined"
)

# Header of Cucumber's "implement missing steps with the snippet(s) below" block
SNIPPET_HEADER = re.compile(r"implement (?:missing steps|this step|these steps) (?:with|using) the snippets?", re.IGNORECASE)
SNIPPET_ANNOTATION = re.compile(r'^\s*@(?:Given|When|Then|And|But)\("\^?(?P<step>.+?)\$?"\)\s*$')

# "[ERROR] userLogsIn(runner.TestRunner)  Time elapsed: 1.2 s  <<< FAILURE!"
FAILED_TEST_LINE = re.compile(
    r"^(?:\[ERROR\]\s+)?(?P<test>[\w.$#\[\]() -]+?)\s+Time elapsed:.*<<<\s*(?:FAILURE|ERROR)!"
)
EXCEPTION_LINE = re.compile(
    r"^\s*(?P<exception>(?:[a-z_$][\w$]*\.)+[A-Z][\w$]*(?:Error|Exception|Failure|Failed)\w*)(?::\s*(?P<message>.*))?$"
)
EXCEPTION_LOOKAHEAD = 3

# Raised by Cucumber for undefined or pending steps; not a failing assertion
NON_FAILURE_EXCEPTIONS = ("UndefinedStepException", "PendingException")

# ---------------------------------------------------------------------------
# Step classification
# ---------------------------------------------------------------------------

# Ordered (regex, keyword) rules over lower-cased step text. Default: Then.
STEP_KEYWORD_RULES = [
    (re.compile(r"^(?:the )?(?:user|page|application|system|browser|data) (?:is|has|are|exists)\b"), "Given"),
    (re.compile(r"^(?:i am|i have|a user|an? \w+ exists)\b"), "Given"),
    (re.compile(
        r"^(?:the )?(?:user|i) (?:clicks?|enters?|types?|selects?|submits?|navigates?|tries?|makes?"
        r"|completes?|fills?|presses?|opens?|chooses?|uploads?|logs? in)\b"
    ), "When"),
    (re.compile(r"^(?:clicks?|enters?|types?|selects?|submits?|navigates?)\b"), "When"),
    (re.compile(r"^multiple users\b"), "When"),
    (re.compile(r"\b(?:should|must|will|can|cannot)\b|\b(?:displayed|visible|contains?)\b|^all\b"), "Then"),
]
DEFAULT_STEP_KEYWORD = "Then"

# Ordered (regex, intent) rules selecting the stub body template.
STUB_INTENT_RULES = [
    (re.compile(r"\bnavigat\w*\b|\bgo(?:es)? to\b|\bopens? the\b|\bis on\b"), "navigation"),
    (re.compile(r"\b(?:clicks?|press(?:es)?|taps?|submits?)\b"), "click"),
    (re.compile(r"\b(?:enters?|types?|fills?|inputs?)\b"), "type"),
    (re.compile(r"\bwaits?\b|\bloads?\b|\bloading\b"), "wait"),
    (re.compile(r"\berror\b|\binvalid\b|\bfail(?:s|ed|ure)?\b"), "error_assert"),
    (re.compile(r"\b(?:enabled|disabled|clickable)\b"), "enabled_assert"),
    (re.compile(r"\bcontains?\b|\bshows? the (?:text|message)\b"), "contains_assert"),
    (re.compile(r"\bsuccess(?:ful|fully)?\b|\blogged in\b|\bwelcome\b"), "success_assert"),
    (re.compile(r"\b(?:visible|displayed|appears?|shown|sees?)\b"), "visibility_assert"),
]
DEFAULT_STUB_INTENT = "generic"

# ---------------------------------------------------------------------------
# Import repair
# ---------------------------------------------------------------------------

# Simple class name -> fully-qualified import for symbols the generated code uses
KNOWN_IMPORTS = {
    "Page": "com.microsoft.playwright.Page",
    "Locator": "com.microsoft.playwright.Locator",
    "Browser": "com.microsoft.playwright.Browser",
    "BrowserContext": "com.microsoft.playwright.BrowserContext",
    "Playwright": "com.microsoft.playwright.Playwright",
    "PlaywrightAssertions": "com.microsoft.playwright.assertions.PlaywrightAssertions",
    "LoadState": "com.microsoft.playwright.options.LoadState",
    "AriaRole": "com.microsoft.playwright.options.AriaRole",
    "Assert": "org.testng.Assert",
    "Given": "io.cucumber.java.en.Given",
    "When": "io.cucumber.java.en.When",
    "Then": "io.cucumber.java.en.Then",
    "And": "io.cucumber.java.en.And",
    "But": "io.cucumber.java.en.But",
    "loadProps": "configs.loadProps",
    "TimeoutConfig": "configs.TimeoutConfig",
    "browserSelector": "configs.browserSelector",
    "utils": "configs.utils",
    "BasePage": "pages.BasePage",
    "Logger": "java.util.logging.Logger",
    "List": "java.util.List",
    "ArrayList": "java.util.ArrayList",
    "Map": "java.util.Map",
    "HashMap": "java.util.HashMap",
    "Set": "java.util.Set",
    "HashSet": "java.util.HashSet",
    "Arrays": "java.util.Arrays",
}

# Packages supplied by project dependencies: a missing one means a broken
# pom.xml, which no source rewrite can repair.
DEPENDENCY_PACKAGES = {
    fqcn.rsplit(".", 1)[0] for fqcn in KNOWN_IMPORTS.values()
}
