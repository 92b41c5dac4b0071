"""Tests for the main.py CLI."""

import argparse
import pytest
from unittest.mock import patch, MagicMock

import main
from main import parse_scenario, parse_element, build_parser

FEATURE = """Feature: Login
  Scenario: Valid login
    Given user is on login page
    When user clicks "Sign In"
"""

STEPS = """package stepDefs;

import io.cucumber.java.en.Given;

public class LoginSteps {
    @Given("user is on login page")
    public void userIsOnLoginPage() {
    }
}
"""


def test_parse_scenario():
    scenario = parse_scenario("Valid login| user clicks Sign In ;user should be logged in;")
    assert scenario.name == "Valid login"
    assert scenario.steps == ["user clicks Sign In", "user should be logged in"]


def test_parse_scenario_without_name():
    scenario = parse_scenario("user clicks Sign In")
    assert scenario.name == "Generated scenario"
    assert scenario.steps == ["user clicks Sign In"]


def test_parse_element_keeps_colons_in_selector():
    element = parse_element("Sign In:click:button:has-text('Sign In')")
    assert (element.name, element.action, element.selector) == (
        "Sign In", "click", "button:has-text('Sign In')",
    )


def test_parse_element_rejects_bad_format():
    with pytest.raises(argparse.ArgumentTypeError):
        parse_element("Sign In:click")


def test_parser_defaults():
    args = build_parser().parse_args(["run", "--steps-file", "s.java"])
    assert args.max_attempts == 5
    assert args.project_dir == "."


def test_run_steps_file_is_optional():
    assert build_parser().parse_args(["run"]).steps_file == ""


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc:
        main.main(argv)
    return exc.value.code


def test_no_command_prints_help(capsys):
    assert _exit_code([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_generate_dry_run(capsys, tmp_path):
    code = _exit_code([
        "generate", "--name", "Login", "--scenario", "Valid login|user clicks Sign In",
        "--project-dir", str(tmp_path), "--dry-run",
    ])
    assert code == 0
    out = capsys.readouterr().out
    assert "--- src/main/java/pages/Login.java ---" in out
    assert "When user clicks Sign In" in out
    assert not (tmp_path / "src").exists()


def test_generate_writes_files(tmp_path):
    assert _exit_code(["generate", "--name", "Login", "--project-dir", str(tmp_path)]) == 0
    assert (tmp_path / "src/test/java/stepDefs/LoginSteps.java").is_file()


def test_reconcile_reports_missing(capsys, tmp_path):
    feature = tmp_path / "Login.feature"
    steps = tmp_path / "LoginSteps.java"
    feature.write_text(FEATURE)
    steps.write_text(STEPS)
    code = _exit_code(["reconcile", "--feature", str(feature), "--steps", str(steps)])
    assert code == 1
    out = capsys.readouterr().out
    assert "user clicks \"Sign In\"" in out
    assert '@When("user clicks {string}")' in out
    assert steps.read_text() == STEPS


def test_reconcile_write_inserts_stubs(tmp_path):
    feature = tmp_path / "Login.feature"
    steps = tmp_path / "LoginSteps.java"
    feature.write_text(FEATURE)
    steps.write_text(STEPS)
    assert _exit_code(["reconcile", "--feature", str(feature), "--steps", str(steps), "--write"]) == 0
    assert "public void userClicksSignIn(String arg0)" in steps.read_text()


def test_reconcile_missing_file(capsys, tmp_path):
    code = _exit_code(["reconcile", "--feature", str(tmp_path / "x.feature"), "--steps", "y.java"])
    assert code == 1
    assert "Error:" in capsys.readouterr().err


@patch("main.BuildAgent")
def test_run_success(mock_agent, capsys, tmp_path):
    builder = MagicMock()
    builder.run_compile.return_value = (0, "")
    builder.run_tests.return_value = (0, "")
    mock_agent.return_value = builder
    code = _exit_code([
        "run", "--project-dir", str(tmp_path), "--steps-file", "s.java", "--tag", "@Login",
    ])
    assert code == 0
    assert "Build and tests passed" in capsys.readouterr().out
    assert mock_agent.call_args.kwargs["tag"] == "@Login"


@patch("main.BuildAgent")
def test_run_failure_exit_code(mock_agent, tmp_path):
    builder = MagicMock()
    builder.run_compile.return_value = (1, "[ERROR] something odd")
    mock_agent.return_value = builder
    assert _exit_code(["run", "--project-dir", str(tmp_path), "--steps-file", "s.java"]) == 1


def test_run_negative_attempts(capsys, tmp_path):
    code = _exit_code([
        "run", "--project-dir", str(tmp_path), "--steps-file", "s.java", "--max-attempts", "-1",
    ])
    assert code == 1
    assert "max_attempts" in capsys.readouterr().err


@patch("main.BuildAgent")
def test_build_generates_then_runs(mock_agent, tmp_path):
    builder = MagicMock()
    builder.run_compile.return_value = (0, "")
    builder.run_tests.return_value = (0, "")
    mock_agent.return_value = builder
    code = _exit_code(["build", "--name", "login page", "--project-dir", str(tmp_path)])
    assert code == 0
    assert (tmp_path / "src/main/java/pages/LoginPage.java").is_file()
    assert mock_agent.call_args.kwargs["tag"] == "LoginPage"
