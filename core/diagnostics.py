"""Diagnostic extractor — turns raw Maven/Cucumber output into Diagnostic records.

Pure functions of their input. An empty result means nothing recognizable was
found (tooling or environment failure); callers must treat it as distinct from
"diagnostics present but unfixable".
"""

import os
import re

from config.rules import (
    LOCATED_COMPILE_ERROR,
    UNLOCATED_COMPILE_ERROR,
    SYMBOL_LINE,
    LOCATION_LINE,
    COMPILE_MESSAGE_PATTERNS,
    UNDEFINED_STEP_LINE,
    UNDEFINED_STEP_MESSAGE,
    SNIPPET_HEADER,
    SNIPPET_ANNOTATION,
    FAILED_TEST_LINE,
    EXCEPTION_LINE,
    EXCEPTION_LOOKAHEAD,
    NON_FAILURE_EXCEPTIONS,
)
from core.state import (
    Diagnostic, COMPILE, TEST, OTHER, MISSING_METHOD, UNRESOLVED_SYMBOL,
    UNDEFINED_STEP, ASSERTION_FAILURE,
)

_ERROR_PREFIX = "[ERROR]"
_LEADING_NAME = re.compile(r"[\w$]+")


def _strip_prefix(line):
    """Drop Maven's [ERROR] marker but keep the rest verbatim."""
    stripped = line.strip()
    if stripped.startswith(_ERROR_PREFIX):
        stripped = stripped[len(_ERROR_PREFIX):].strip()
    return stripped


def _relative_path(path, root):
    path = path.replace("\\", "/")
    if root:
        root = root.replace("\\", "/").rstrip("/") + "/"
        if path.startswith(root):
            return path[len(root):]
    if os.path.isabs(path) or path.startswith("/"):
        # Fall back to the Maven source root so the path stays project-relative
        marker = path.find("src/")
        if marker != -1:
            return path[marker:]
    return path


def _categorize(message):
    for pattern, category in COMPILE_MESSAGE_PATTERNS:
        if pattern.search(message):
            return category
    return OTHER


def _symbol_details(lines, index):
    """Collect the symbol:/location: lines javac prints after 'cannot find symbol'.

    Returns (extra_lines, kind, name).
    """
    extra, kind, name = [], "", ""
    for follower in lines[index + 1:index + 3]:
        sm = SYMBOL_LINE.match(follower)
        lm = LOCATION_LINE.match(follower)
        if sm:
            kind, name = sm.group("kind"), sm.group("name")
            extra.append(_strip_prefix(follower))
        elif lm:
            extra.append(_strip_prefix(follower))
        else:
            break
    return extra, kind, name


def _extract_compile(lines, root):
    diagnostics = []
    for index, line in enumerate(lines):
        located = LOCATED_COMPILE_ERROR.match(line.strip())
        if located:
            path = _relative_path(located.group("path"), root)
            line_no = located.group("line") or located.group("javac_line")
            line_no = int(line_no) if line_no else None
            message = located.group("message")
        else:
            unlocated = UNLOCATED_COMPILE_ERROR.match(line.strip())
            if not unlocated:
                continue
            path, line_no, message = "", None, unlocated.group("message")

        category = _categorize(message)
        raw = _strip_prefix(line)
        subject = ""

        if "cannot find symbol" in message:
            extra, kind, name = _symbol_details(lines, index)
            if extra:
                raw = "\n".join([raw] + extra)
            subject = name
            if kind == "method":
                category = MISSING_METHOD
        elif category == UNRESOLVED_SYMBOL:
            # "navigateTo(Page) has protected access in pages.Login"
            head = _LEADING_NAME.match(message)
            subject = head.group(0) if head else ""

        diagnostics.append(Diagnostic(
            source_path=path,
            line=line_no,
            category=category,
            raw_message=raw,
            subject=subject,
        ))
    return diagnostics


def _extract_test(lines):
    diagnostics = []
    in_snippets = False
    for index, line in enumerate(lines):
        if SNIPPET_HEADER.search(line):
            in_snippets = True
            continue

        undefined = UNDEFINED_STEP_LINE.match(line) or UNDEFINED_STEP_MESSAGE.search(line)
        if undefined:
            step = undefined.group("step")
            diagnostics.append(Diagnostic(
                source_path="", line=None, category=UNDEFINED_STEP,
                raw_message=line.strip(), subject=step,
            ))
            continue

        if in_snippets:
            snippet = SNIPPET_ANNOTATION.match(line)
            if snippet:
                diagnostics.append(Diagnostic(
                    source_path="", line=None, category=UNDEFINED_STEP,
                    raw_message=line.strip(), subject=snippet.group("step"),
                ))
                continue

        failed = FAILED_TEST_LINE.match(line.strip())
        if failed:
            for follower in lines[index + 1:index + 1 + EXCEPTION_LOOKAHEAD]:
                exc = EXCEPTION_LINE.match(follower)
                if exc:
                    if exc.group("exception").rsplit(".", 1)[-1] in NON_FAILURE_EXCEPTIONS:
                        # Reported through its own "The step ... is undefined" line
                        break
                    diagnostics.append(Diagnostic(
                        source_path="", line=None, category=ASSERTION_FAILURE,
                        raw_message=_strip_prefix(line) + "\n" + follower.strip(),
                        subject=failed.group("test").strip(),
                    ))
                    break
    return diagnostics


def _dedupe(diagnostics):
    """Maven repeats every compile error in its failure summary; keep the first."""
    seen = set()
    unique = []
    for d in diagnostics:
        key = (d.source_path, d.line, d.category, d.subject, d.raw_message)
        if d.category == UNDEFINED_STEP:
            key = (UNDEFINED_STEP, d.subject)
        if key in seen:
            continue
        seen.add(key)
        unique.append(d)
    return unique


def extract(raw_output, stage, root=None):
    """Parse one build or test invocation's output into diagnostics.

    Args:
        raw_output: Combined stdout/stderr text of the invocation.
        stage: COMPILE or TEST, selects the matcher set.
        root: Optional absolute project root used to make paths relative.

    Returns:
        List of Diagnostic, possibly empty.
    """
    if stage not in (COMPILE, TEST):
        raise ValueError(f"Unknown extraction stage: {stage!r}")
    if not raw_output:
        return []

    lines = raw_output.splitlines()
    if stage == COMPILE:
        found = _extract_compile(lines, root)
    else:
        found = _extract_test(lines)
    return _dedupe(found)
