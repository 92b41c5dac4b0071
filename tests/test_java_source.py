"""Tests for utils.java_source."""

from utils.java_source import (
    package_of, has_import, add_import, declares_method,
    method_names, insert_before_closing_brace, insert_after_class_header,
)

SOURCE = """package pages;

import com.microsoft.playwright.Page;

public class Login extends BasePage {
    protected static void navigateTo(Page page) {
        page.navigate("/");
    }
}
"""


def test_package_of():
    assert package_of(SOURCE) == "pages"
    assert package_of("class X {}") == ""


def test_has_import_direct_and_wildcard():
    assert has_import(SOURCE, "com.microsoft.playwright.Page")
    assert not has_import(SOURCE, "com.microsoft.playwright.Locator")
    assert has_import("import io.cucumber.java.en.*;\n", "io.cucumber.java.en.Given")


def test_add_import_goes_right_after_package_line():
    result = add_import(SOURCE, "com.microsoft.playwright.Locator")
    lines = result.splitlines()
    assert lines[0] == "package pages;"
    assert lines[1] == "import com.microsoft.playwright.Locator;"
    assert result.replace("import com.microsoft.playwright.Locator;\n", "", 1) == SOURCE


def test_add_import_noop_when_present_or_same_package():
    assert add_import(SOURCE, "com.microsoft.playwright.Page") == SOURCE
    assert add_import(SOURCE, "pages.BasePage") == SOURCE


def test_add_import_without_package_prepends():
    assert add_import("class X {}\n", "java.util.List") == "import java.util.List;\nclass X {}\n"


def test_declares_method_and_method_names():
    assert declares_method(SOURCE, "navigateTo")
    assert not declares_method(SOURCE, "navigate")
    assert method_names(SOURCE) == {"navigateTo"}


def test_insert_before_closing_brace():
    result = insert_before_closing_brace("class X {\n}\n", "    void y() {}\n")
    assert result == "class X {\n\n    void y() {}\n}\n"


def test_insert_after_class_header():
    result = insert_after_class_header(SOURCE, "    static final String A = \"a\";\n")
    assert "public class Login extends BasePage {\n    static final String A" in result
    assert insert_after_class_header("no class here", "x") == "no class here"
