"""Build agent — runs the project's compile and test commands in the sandbox. Zero LLM calls."""

import logging

from core.sandbox import run_in_sandbox
from config.defaults import DEFAULTS
from config.stacks import BUILD_TOOLS

logger = logging.getLogger(__name__)


class BuildAgent:
    """Compile and test a generated project. Each call returns (exit_status, raw_output)."""

    name = "builder"

    def __init__(self, project_dir, tag="", build_tool=None, timeout=None):
        build_tool = build_tool or DEFAULTS["build_tool"]
        if build_tool not in BUILD_TOOLS:
            raise ValueError(f"Unknown build tool: {build_tool}")
        self.project_dir = project_dir
        self.tag = tag.lstrip("@")
        self.stack = BUILD_TOOLS[build_tool]
        self.timeout = timeout

    def compile_command(self):
        return list(self.stack["compile_command"])

    def test_command(self):
        """The test command, with the tag filter dropped when no tag is set."""
        command = []
        for part in self.stack["test_command"]:
            if "{tag}" in part:
                if not self.tag:
                    continue
                part = part.replace("{tag}", self.tag)
            command.append(part)
        return command

    def _run(self, command):
        stdout, stderr, rc = run_in_sandbox(command, cwd=self.project_dir, timeout=self.timeout)
        output = stdout
        if stderr:
            output = f"{stdout}\n{stderr}" if stdout else stderr
        if rc != 0:
            logger.info("[Build] %s exited with %d", command[0], rc)
        return rc, output

    def run_compile(self):
        return self._run(self.compile_command())

    def run_tests(self):
        return self._run(self.test_command())
