"""Session state models shared across the generate/build/patch loop."""

from __future__ import annotations

from dataclasses import dataclass, field

# Diagnostic categories
MISSING_IMPORT = "missing_import"
MISSING_METHOD = "missing_method"
UNRESOLVED_SYMBOL = "unresolved_symbol"
SYNTAX_ERROR = "syntax_error"
UNDEFINED_STEP = "undefined_step"
ASSERTION_FAILURE = "assertion_failure"
OTHER = "other"

CATEGORIES = (
    MISSING_IMPORT, MISSING_METHOD, UNRESOLVED_SYMBOL, SYNTAX_ERROR,
    UNDEFINED_STEP, ASSERTION_FAILURE, OTHER,
)

# Extraction stages
COMPILE = "compile"
TEST = "test"

# Session phases
COMPILING = "compiling"
TESTING = "testing"
PATCHING = "patching"
SUCCEEDED = "succeeded"
FAILED_EXHAUSTED = "failed_exhausted"
FAILED_UNRECOVERABLE = "failed_unrecoverable"

TERMINAL_PHASES = (SUCCEEDED, FAILED_EXHAUSTED, FAILED_UNRECOVERABLE)


@dataclass(frozen=True)
class Diagnostic:
    source_path: str            # relative path of the offending file, "" if unknown
    line: int | None            # 1-based
    category: str               # one of CATEGORIES
    raw_message: str            # verbatim text of the matched line group
    subject: str = ""           # captured symbol name, test name or step text


@dataclass(frozen=True)
class ScenarioStep:
    text: str                   # normalized: keyword stripped, whitespace collapsed


@dataclass(frozen=True)
class ImplementedStep:
    text: str
    keyword: str = "Then"       # Given|When|Then, only used for stub generation


@dataclass
class Reconciliation:
    missing: list[ScenarioStep]
    stubs: list[str]

    @property
    def complete(self) -> bool:
        return not self.missing


@dataclass(frozen=True)
class PatchResult:
    content: str
    changed: bool
    rule: str | None            # name of the rule that matched, None if none did


@dataclass(frozen=True)
class AppliedPatch:
    rule: str
    path: str
    changed: bool
    diagnostic: Diagnostic


@dataclass(frozen=True)
class Attempt:
    number: int
    phase: str                  # the stage that ran: compiling|testing
    passed: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    patches: tuple[AppliedPatch, ...] = ()


@dataclass(frozen=True)
class RetrySession:
    """Immutable loop state. Transition functions return a new instance."""

    max_attempts: int
    attempt: int = 1
    phase: str = COMPILING
    resume_phase: str = COMPILING       # where Patching hands control back to
    history: tuple[Attempt, ...] = ()
    last_diagnostics: tuple[Diagnostic, ...] = ()
    blocking: Diagnostic | None = None  # the diagnostic no rule could handle

    @property
    def done(self) -> bool:
        return self.phase in TERMINAL_PHASES


@dataclass
class SessionResult:
    status: str                 # succeeded|failed_exhausted|failed_unrecoverable
    attempts: int
    history: list[Attempt] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)   # last batch seen
    diagnostic: Diagnostic | None = None                         # unrecoverable cause

    @property
    def ok(self) -> bool:
        return self.status == SUCCEEDED


@dataclass
class FileEntry:
    path: str           # relative path e.g. "src/main/java/pages/Login.java"
    content: str
    language: str       # "java", "gherkin"


@dataclass
class PageElement:
    name: str           # readable name e.g. "Sign In button"
    action: str         # click|fill|select|check|press|verify
    selector: str


@dataclass
class Scenario:
    name: str
    steps: list[str] = field(default_factory=list)


@dataclass
class TestRequirement:
    name: str
    description: str = ""
    page_url: str = "/"
    story: str = ""
    elements: list[PageElement] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)

    __test__ = False    # not a pytest test class
