"""Retry controller — the Compiling → Testing → Patching state machine.

Session state is an immutable RetrySession; the transition functions below
return a new session and never touch files or processes. The Orchestrator
class drives them, performing the build/test invocations and the file
writes between attempts.
"""

import dataclasses
import logging
from collections import OrderedDict

from config.defaults import DEFAULTS
from config.stacks import BUILD_TOOLS
from core.diagnostics import extract
from core.patch_engine import find_rule, patch
from core.reconciler import reconcile
from core.state import (
    RetrySession, SessionResult, Attempt, AppliedPatch, Diagnostic,
    COMPILE, TEST, COMPILING, TESTING, PATCHING, SUCCEEDED, FAILED_EXHAUSTED,
    FAILED_UNRECOVERABLE, OTHER, UNDEFINED_STEP,
)

logger = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 20


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def start_session(max_attempts):
    """Initial session: Compiling, attempt 1. Exhausted at once when max_attempts is 0."""
    session = RetrySession(max_attempts=max_attempts)
    if session.attempt > max_attempts:
        return dataclasses.replace(session, phase=FAILED_EXHAUSTED)
    return session


def on_stage_result(session, passed, diagnostics=()):
    """Compiling/Testing finished. Success advances; failure enters Patching."""
    if session.phase not in (COMPILING, TESTING):
        raise ValueError(f"No stage is running in phase {session.phase!r}")
    if passed:
        record = Attempt(number=session.attempt, phase=session.phase, passed=True)
        next_phase = TESTING if session.phase == COMPILING else SUCCEEDED
        return dataclasses.replace(
            session, phase=next_phase, history=session.history + (record,),
            last_diagnostics=(),
        )
    return dataclasses.replace(
        session, phase=PATCHING, resume_phase=session.phase,
        last_diagnostics=tuple(diagnostics),
    )


def on_patched(session, patches):
    """Patching finished for the whole batch: count the attempt and resume."""
    if session.phase != PATCHING:
        raise ValueError(f"Cannot finish patching in phase {session.phase!r}")
    record = Attempt(
        number=session.attempt, phase=session.resume_phase, passed=False,
        diagnostics=session.last_diagnostics, patches=tuple(patches),
    )
    attempt = session.attempt + 1
    phase = FAILED_EXHAUSTED if attempt > session.max_attempts else session.resume_phase
    return dataclasses.replace(
        session, attempt=attempt, phase=phase, history=session.history + (record,),
    )


def on_unrecoverable(session, diagnostic):
    """A diagnostic no rule can handle ends the session without counting an attempt."""
    record = Attempt(
        number=session.attempt, phase=session.resume_phase, passed=False,
        diagnostics=session.last_diagnostics or (diagnostic,),
    )
    return dataclasses.replace(
        session, phase=FAILED_UNRECOVERABLE, blocking=diagnostic,
        history=session.history + (record,),
        last_diagnostics=session.last_diagnostics or (diagnostic,),
    )


def to_result(session):
    """Terminal session -> SessionResult."""
    if not session.done:
        raise ValueError(f"Session is still running (phase {session.phase!r})")
    return SessionResult(
        status=session.phase,
        attempts=min(session.attempt, session.max_attempts),
        history=list(session.history),
        diagnostics=list(session.last_diagnostics),
        diagnostic=session.blocking,
    )


def _output_tail(raw_output):
    lines = (raw_output or "").strip().splitlines()
    return "\n".join(lines[-OUTPUT_TAIL_LINES:]) or "(no output)"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class Orchestrator:
    """Runs one Generate → Build → Diagnose → Patch session over a project tree.

    Args:
        workspace: File store with read_file/write_file/exists/list_files.
        builder: Object with run_compile() and run_tests(), each returning
            (exit_status, raw_output).
        steps_file: Relative path of the step definitions file; undefined
            steps are attributed to it. When empty, the only .java file in
            the build tool's steps directory is used.
        root: Absolute project root, used to relativize compiler paths.
    """

    def __init__(self, workspace, builder, steps_file="", root=None):
        self.workspace = workspace
        self.builder = builder
        self.root = root if root is not None else getattr(workspace, "root", None)
        self.steps_file = steps_file or self._find_steps_file()

    def _find_steps_file(self):
        steps_dir = BUILD_TOOLS[DEFAULTS["build_tool"]]["steps_dir"]
        candidates = self.workspace.list_files(steps_dir, suffix=".java")
        if len(candidates) == 1:
            logger.info("[Retry] using step definitions file %s", candidates[0])
            return candidates[0]
        logger.warning(
            "[Retry] %d step definitions files under %s; undefined steps stay unattributed",
            len(candidates), steps_dir,
        )
        return ""

    def run_session(self, max_attempts=None):
        """Run the retry loop to a terminal state and return a SessionResult."""
        if max_attempts is None:
            max_attempts = DEFAULTS["max_attempts"]
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {max_attempts}")
        hard_max = DEFAULTS["hard_max_attempts"]
        if max_attempts > hard_max:
            logger.warning("[Retry] max_attempts %d capped at %d", max_attempts, hard_max)
            max_attempts = hard_max

        session = start_session(max_attempts)
        while not session.done:
            if session.phase == PATCHING:
                session = self._patch(session)
            else:
                session = self._run_stage(session)

        result = to_result(session)
        logger.info("[Retry] session %s after %d attempt(s)", result.status, result.attempts)
        return result

    def reconcile_steps(self, scenario_steps, implemented_steps):
        """Pre-flight: missing steps and their stubs, without running a session."""
        return reconcile(scenario_steps, implemented_steps)

    # -- stages -------------------------------------------------------------

    def _run_stage(self, session):
        logger.info(
            "[Retry] attempt %d/%d: %s", session.attempt, session.max_attempts, session.phase,
        )
        if session.phase == COMPILING:
            status, output = self.builder.run_compile()
            diagnostics = [] if status == 0 else extract(output, COMPILE, self.root)
        else:
            status, output = self.builder.run_tests()
            diagnostics = []
            if status != 0:
                # mvn test recompiles, so a test run can fail with compile errors
                diagnostics = extract(output, TEST) or extract(output, COMPILE, self.root)

        if status == 0:
            return on_stage_result(session, True)

        diagnostics = [self._attribute(d) for d in diagnostics]
        session = on_stage_result(session, False, diagnostics)
        if not diagnostics:
            logger.warning("[Retry] %s failed with no recognizable diagnostics", session.resume_phase)
            unknown = Diagnostic(
                source_path="", line=None, category=OTHER, raw_message=_output_tail(output),
            )
            return on_unrecoverable(session, unknown)
        logger.info("[Retry] %d diagnostic(s) from %s", len(diagnostics), session.resume_phase)
        return session

    def _attribute(self, diagnostic):
        if diagnostic.category == UNDEFINED_STEP and not diagnostic.source_path:
            return dataclasses.replace(diagnostic, source_path=self.steps_file)
        return diagnostic

    # -- patching -----------------------------------------------------------

    def _plan(self, diagnostics):
        """Pair every diagnostic with its rule and target file.

        Returns (plan, blocking): blocking is the first diagnostic that no rule
        handles or whose target file is missing; plan is then unusable.
        """
        plan = []
        for d in diagnostics:
            rule = find_rule(d)
            if rule is None:
                logger.warning("[Patch] no rule for %s: %s", d.category, d.raw_message.splitlines()[0])
                return [], d
            path = rule.target(d)
            if not path or not self.workspace.exists(path):
                logger.warning("[Patch] %s: target file %r not found", rule.name, path)
                return [], d
            plan.append((rule, path, d))
        return plan, None

    def _patch(self, session):
        plan, blocking = self._plan(session.last_diagnostics)
        if blocking is not None:
            return on_unrecoverable(session, blocking)

        # One read-modify-write per file per attempt; line-addressed rules go
        # first, before other rules insert lines above the reported ones
        by_path = OrderedDict()
        for rule, path, d in plan:
            by_path.setdefault(path, []).append((rule, d))

        applied = []
        for path, entries in by_path.items():
            original = self.workspace.read_file(path)
            content = original
            for rule, d in sorted(entries, key=lambda entry: not entry[0].line_addressed):
                result = patch(d, content)
                content = result.content
                applied.append(AppliedPatch(rule=rule.name, path=path, changed=result.changed, diagnostic=d))
                logger.info(
                    "[Patch] %s -> %s%s", rule.name, path, "" if result.changed else " (already applied)",
                )
            if content != original:
                self.workspace.write_file(path, content)
        return on_patched(session, applied)
