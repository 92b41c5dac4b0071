"""Tests for agents.builder — sandbox calls are mocked."""

import pytest
from unittest.mock import patch

from agents.builder import BuildAgent


def test_compile_command():
    assert BuildAgent("/p").compile_command() == ["mvn", "clean", "compile", "test-compile"]


def test_test_command_with_tag():
    agent = BuildAgent("/p", tag="@Login")
    assert agent.tag == "Login"
    assert agent.test_command() == ["mvn", "test", "-Dcucumber.filter.tags=@Login"]


def test_test_command_without_tag():
    assert BuildAgent("/p").test_command() == ["mvn", "test"]


def test_unknown_build_tool():
    with pytest.raises(ValueError, match="Unknown build tool"):
        BuildAgent("/p", build_tool="ant")


@patch("agents.builder.run_in_sandbox", return_value=("BUILD SUCCESS", "", 0))
def test_run_compile(mock_run):
    rc, output = BuildAgent("/p", timeout=30).run_compile()
    assert (rc, output) == (0, "BUILD SUCCESS")
    mock_run.assert_called_once_with(
        ["mvn", "clean", "compile", "test-compile"], cwd="/p", timeout=30,
    )


@patch("agents.builder.run_in_sandbox", return_value=("Tests run: 1", "[ERROR] failed", 1))
def test_run_tests_combines_streams(mock_run):
    rc, output = BuildAgent("/p", tag="Login").run_tests()
    assert rc == 1
    assert output == "Tests run: 1\n[ERROR] failed"


@patch("agents.builder.run_in_sandbox", return_value=("", "Command timed out after 600s", -1))
def test_run_reports_stderr_only(mock_run):
    rc, output = BuildAgent("/p").run_tests()
    assert rc == -1
    assert output == "Command timed out after 600s"
