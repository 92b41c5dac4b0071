"""Patch composer — renders a session's history as a plain-text report. Zero LLM calls."""

from core.state import SessionResult, SUCCEEDED, FAILED_EXHAUSTED, FAILED_UNRECOVERABLE

_HEADLINES = {
    SUCCEEDED: "Build and tests passed",
    FAILED_EXHAUSTED: "Gave up: attempt limit reached",
    FAILED_UNRECOVERABLE: "Stopped: a diagnostic has no automatic fix",
}


def _location(diagnostic):
    loc = diagnostic.source_path or "(unknown file)"
    if diagnostic.line:
        loc += f" line {diagnostic.line}"
    return loc


class PatchComposer:
    """Formats SessionResult history for humans resuming manually."""

    name = "patch_composer"

    def run(self, result: SessionResult) -> str:
        lines = [f"{_HEADLINES.get(result.status, result.status)} ({result.attempts} attempt(s))"]

        for attempt in result.history:
            verdict = "passed" if attempt.passed else "failed"
            lines.append(f"\nAttempt {attempt.number} [{attempt.phase}] {verdict}")
            for d in attempt.diagnostics:
                first = d.raw_message.splitlines()[0] if d.raw_message else ""
                lines.append(f"  - [{d.category.upper()}] {_location(d)}: {first}")
            for p in attempt.patches:
                note = "" if p.changed else " (already applied)"
                lines.append(f"  + {p.rule} -> {p.path}{note}")

        if result.status == FAILED_UNRECOVERABLE and result.diagnostic:
            d = result.diagnostic
            lines.append("\nFix manually:")
            lines.append(f"  {_location(d)} [{d.category}]")
            for raw_line in d.raw_message.splitlines():
                lines.append(f"    {raw_line}")
        elif result.status == FAILED_EXHAUSTED and result.diagnostics:
            lines.append("\nStill failing after the last attempt:")
            # Sort: by file, then line
            for d in sorted(result.diagnostics, key=lambda d: (d.source_path, d.line or 0)):
                first = d.raw_message.splitlines()[0] if d.raw_message else ""
                lines.append(f"  {_location(d)}: {first}")

        return "\n".join(lines)
