"""Subprocess runner for build tooling: command allowlist, timeout, combined output."""

import logging
import os
import subprocess

from config.defaults import DEFAULTS
from config.stacks import WINDOWS_EXECUTABLES

logger = logging.getLogger(__name__)


def resolve_executable(command):
    """Swap in the Windows launcher (mvn -> mvn.cmd) when running on Windows."""
    if os.name == "nt" and command and command[0] in WINDOWS_EXECUTABLES:
        return [WINDOWS_EXECUTABLES[command[0]]] + list(command[1:])
    return list(command)


def run_in_sandbox(command, cwd, timeout=None):
    """Run a build command in a subprocess.

    Args:
        command: Command as a list of strings, e.g. ["mvn", "clean", "compile"]
        cwd: Project root (must exist)
        timeout: Seconds before killing the process (default from config)

    Returns:
        (stdout, stderr, returncode) tuple. A timeout or a missing executable
        is reported as returncode -1 with the reason in stderr.

    Raises:
        ValueError: If command is not in the allowlist or cwd is invalid.
    """
    if timeout is None:
        timeout = DEFAULTS["sandbox_timeout"]

    if not command or not isinstance(command, list):
        raise ValueError("Command must be a non-empty list of strings")

    command = resolve_executable(command)
    executable = command[0]
    allowed = DEFAULTS["allowed_commands"]
    if executable not in allowed:
        raise ValueError(
            f"Command '{executable}' not in allowlist: {allowed}"
        )

    cwd = os.path.realpath(cwd)
    if not os.path.isdir(cwd):
        raise ValueError(f"Working directory does not exist: {cwd}")

    logger.info("[Build] %s (cwd=%s)", " ".join(command), cwd)
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        logger.warning("[Build] %s timed out after %ss", executable, timeout)
        return "", f"Command timed out after {timeout}s", -1
    except FileNotFoundError:
        logger.warning("[Build] %s not found on PATH", executable)
        return "", f"Command not found: {executable}", -1
