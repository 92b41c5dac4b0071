"""Tests for core.patch_engine — rule selection, transforms, idempotence."""

import pytest

from core.diagnostics import extract
from core.patch_engine import RULES, PatchRule, find_rule, patch, class_to_path
from core.reconciler import reconcile_files
from core.state import (
    Diagnostic, COMPILE, MISSING_IMPORT, SYNTAX_ERROR, UNDEFINED_STEP, UNRESOLVED_SYMBOL,
    ASSERTION_FAILURE, OTHER,
)

PAGE = """package pages;

import com.microsoft.playwright.Page;

public class Login extends BasePage {
    private static final String SIGN_IN = "#signin";

    protected static void navigateTo(Page page) {
        page.navigate("/");
    }

    static void clickSignIn(Page page) {
        page.locator(SIGN_IN).click();
    }
}
"""

STEPS = """package stepDefs;

import com.acme.missing.Helper;
import configs.browserSelector;
import io.cucumber.java.en.Given;
import pages.Login;

public class LoginSteps extends browserSelector {

    @Given("user is on login page")
    public void userIsOnLoginPage() {
        Login.navigateTo(page)
    }
}
"""

STEPS_PATH = "src/test/java/stepDefs/LoginSteps.java"
PAGE_PATH = "src/main/java/pages/Login.java"


def _compile_diagnostic(output):
    found = extract(output, COMPILE, root="/p")
    assert len(found) == 1
    return found[0]


LOCATOR = _compile_diagnostic("error: cannot find symbol\n  symbol:   class Locator")
THEN_ANNOTATION = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[9,6] cannot find symbol\n"
    "[ERROR]   symbol:   class Then\n"
    "[ERROR]   location: class stepDefs.LoginSteps"
)
BAD_IMPORT = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[3,24] package com.acme.missing does not exist"
)
PROTECTED = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[12,14] "
    "navigateTo(com.microsoft.playwright.Page) has protected access in pages.Login"
)
PACKAGE_PRIVATE = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[14,14] "
    "clickSignIn(com.microsoft.playwright.Page) is not public in pages.Login; "
    "cannot be accessed from outside package"
)
PRIVATE_FIELD = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[20,14] SIGN_IN has private access in pages.Login"
)
NAVIGATE = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[12,14] cannot find symbol\n"
    "[ERROR]   symbol:   method navigateToLogin(com.microsoft.playwright.Page)\n"
    "[ERROR]   location: class pages.Login"
)
MISSING_METHOD = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[16,14] cannot find symbol\n"
    "[ERROR]   symbol:   method clickSignUp(com.microsoft.playwright.Page,java.lang.String)\n"
    "[ERROR]   location: class pages.Login"
)
CONSTANT = _compile_diagnostic(
    "[ERROR] /p/src/main/java/pages/Login.java:[20,30] cannot find symbol\n"
    "[ERROR]   symbol:   variable LOGIN_BUTTON\n"
    "[ERROR]   location: class pages.Login"
)
SEMICOLON = _compile_diagnostic(
    "[ERROR] /p/src/test/java/stepDefs/LoginSteps.java:[12,31] ';' expected"
)
UNDEFINED = Diagnostic(
    source_path=STEPS_PATH, line=None, category=UNDEFINED_STEP,
    raw_message="Undefined step: Then user should be logged in",
    subject="user should be logged in",
)
SNIPPET = Diagnostic(
    source_path=STEPS_PATH, line=None, category=UNDEFINED_STEP,
    raw_message='@Then("user should see {string} message")',
    subject="user should see {string} message",
)

# (diagnostic, expected rule, content the rule applies to)
CASES = [
    (LOCATOR, "add-known-import", PAGE),
    (THEN_ANNOTATION, "add-known-import", STEPS),
    (BAD_IMPORT, "remove-bad-import", STEPS),
    (PROTECTED, "public-visibility", PAGE),
    (PACKAGE_PRIVATE, "public-visibility", PAGE),
    (PRIVATE_FIELD, "public-visibility", PAGE),
    (NAVIGATE, "add-navigate-to", PAGE),
    (MISSING_METHOD, "add-missing-method", PAGE),
    (CONSTANT, "add-locator-constant", PAGE),
    (SEMICOLON, "fix-missing-semicolon", STEPS),
    (UNDEFINED, "add-step-definition", STEPS),
    (SNIPPET, "add-step-definition", STEPS),
]


def test_catalogue_order():
    assert [r.name for r in RULES] == [
        "add-known-import", "remove-bad-import", "public-visibility", "add-navigate-to",
        "add-missing-method", "add-locator-constant", "fix-missing-semicolon",
        "add-step-definition",
    ]


@pytest.mark.parametrize("diagnostic, rule_name, content", CASES)
def test_rule_selected_and_changes_content(diagnostic, rule_name, content):
    result = patch(diagnostic, content)
    assert result.rule == rule_name
    assert result.changed
    assert result.content != content


@pytest.mark.parametrize("diagnostic, rule_name, content", CASES)
def test_rules_are_idempotent(diagnostic, rule_name, content):
    once = patch(diagnostic, content)
    twice = patch(diagnostic, once.content)
    assert twice.rule == rule_name
    assert not twice.changed
    assert twice.content == once.content


def test_known_import_inserts_single_line_after_package():
    result = patch(LOCATOR, PAGE)
    before = PAGE.split("\n")
    after = result.content.split("\n")
    assert after == [before[0], "import com.microsoft.playwright.Locator;"] + before[1:]


def test_cucumber_annotation_import():
    result = patch(THEN_ANNOTATION, STEPS)
    assert "import io.cucumber.java.en.Then;" in result.content


def test_unknown_class_has_no_rule():
    d = _compile_diagnostic("error: cannot find symbol\n  symbol:   class FancyWidget")
    assert find_rule(d) is None
    result = patch(d, PAGE)
    assert result.rule is None
    assert not result.changed
    assert result.content == PAGE


def test_remove_bad_import_comments_line_out():
    result = patch(BAD_IMPORT, STEPS)
    assert "// removed: import com.acme.missing.Helper;" in result.content
    assert "import configs.browserSelector;" in result.content


def test_missing_dependency_package_is_not_patched():
    d = _compile_diagnostic(
        "[ERROR] /p/src/main/java/pages/Login.java:[3,35] package com.microsoft.playwright does not exist"
    )
    assert find_rule(d) is None


def test_public_visibility_targets_owner_class():
    rule = find_rule(PROTECTED)
    assert rule.target(PROTECTED) == PAGE_PATH
    assert "public static void navigateTo(Page page)" in patch(PROTECTED, PAGE).content


def test_package_private_member_made_public():
    content = patch(PACKAGE_PRIVATE, PAGE).content
    assert "    public static void clickSignIn(Page page) {" in content
    assert "protected static void navigateTo" in content


def test_private_field_made_public():
    result = patch(PRIVATE_FIELD, PAGE)
    assert result.changed
    assert '    public static final String SIGN_IN = "#signin";' in result.content
    assert "page.locator(SIGN_IN).click();" in result.content
    assert not patch(PRIVATE_FIELD, result.content).changed


def test_package_private_field_made_public_but_not_locals():
    content = (
        "public class Login {\n"
        "    static String SIGN_IN = \"#signin\";\n"
        "\n"
        "    static void other() {\n"
        "        String SIGN_IN = \"local\";\n"
        "    }\n"
        "}\n"
    )
    patched = patch(PRIVATE_FIELD, content).content
    assert "    public static String SIGN_IN = \"#signin\";" in patched
    assert "        String SIGN_IN = \"local\";" in patched


def test_navigate_to_method_added_with_imports():
    content = patch(NAVIGATE, PAGE).content
    assert "public static void navigateToLogin(Page page) {" in content
    assert "import configs.loadProps;" in content
    assert content.rstrip().endswith("}")
    assert find_rule(NAVIGATE).target(NAVIGATE) == PAGE_PATH


def test_missing_method_signature_from_argument_types():
    content = patch(MISSING_METHOD, PAGE).content
    assert "public static void clickSignUp(Page page, String arg1) {" in content


def test_missing_method_without_owner_is_unrecoverable():
    d = _compile_diagnostic("error: cannot find symbol\n  symbol:   method doThing()")
    assert find_rule(d) is None


def test_locator_constant_inserted_after_class_header():
    content = patch(CONSTANT, PAGE).content
    assert 'public class Login extends BasePage {\n    public static final String LOGIN_BUTTON = "TODO";' in content


def test_lowercase_variable_has_no_rule():
    d = _compile_diagnostic(
        "[ERROR] /p/src/main/java/pages/Login.java:[20,30] cannot find symbol\n"
        "[ERROR]   symbol:   variable username\n"
        "[ERROR]   location: class pages.Login"
    )
    assert find_rule(d) is None


def test_semicolon_appended_to_reported_line():
    content = patch(SEMICOLON, STEPS).content
    assert "        Login.navigateTo(page);\n" in content


def test_semicolon_line_out_of_range_is_noop():
    d = Diagnostic(STEPS_PATH, 999, SYNTAX_ERROR, "x.java:[999,1] ';' expected")
    result = patch(d, STEPS)
    assert result.rule == "fix-missing-semicolon"
    assert not result.changed


def test_step_definition_stub_satisfies_feature():
    feature = "Feature: x\n  Scenario: y\n    Given user is on login page\n    Then user should be logged in\n"
    content = patch(UNDEFINED, STEPS).content
    assert '@Then("user should be logged in")' in content
    assert reconcile_files(feature, content).complete


def test_snippet_expression_used_verbatim():
    content = patch(SNIPPET, STEPS).content
    assert '@Then("user should see {string} message")' in content
    assert "(String arg0)" in content


@pytest.mark.parametrize("category", [ASSERTION_FAILURE, OTHER])
def test_no_rule_for_runtime_failures(category):
    d = Diagnostic("", None, category, "java.lang.AssertionError: boom", "runScenario")
    assert find_rule(d) is None


def test_custom_rule_list():
    rule = PatchRule("upper", lambda d: d.category == MISSING_IMPORT, lambda d, c: c.upper())
    d = Diagnostic("a.java", 1, MISSING_IMPORT, "package x does not exist")
    result = patch(d, "abc", rules=[rule])
    assert result == patch(d, "abc", rules=[rule])
    assert result.content == "ABC"
    assert result.rule == "upper"
    assert rule.target(d) == "a.java"


@pytest.mark.parametrize("fqcn, path", [
    ("pages.Login", "src/main/java/pages/Login.java"),
    ("configs.loadProps", "src/main/java/configs/loadProps.java"),
    ("stepDefs.LoginSteps", "src/test/java/stepDefs/LoginSteps.java"),
    ("pages.Login$Inner", "src/main/java/pages/Login.java"),
    ("Login", ""),
])
def test_class_to_path(fqcn, path):
    assert class_to_path(fqcn) == path


def test_unresolved_symbol_without_symbol_line_uses_subject():
    d = Diagnostic("a.java", 1, UNRESOLVED_SYMBOL, "cannot find symbol", "Page")
    assert find_rule(d).name == "add-known-import"
