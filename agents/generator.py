"""Generator agent — produces the page object, feature file and step definitions for a requirement."""

import logging
import os
import re
from string import Template

from utils.llm import call_llm, parse_files
from utils.naming import class_name, slugify, to_pascal_case
from utils.template_engine import render_template
from config.defaults import DEFAULTS
from config.stacks import BUILD_TOOLS
from core.reconciler import normalize_step, reconcile_files, insert_stubs
from core.state import FileEntry, TestRequirement

logger = logging.getLogger(__name__)

_PROMPT_FILE = os.path.join(os.path.dirname(__file__), "prompts", "generator.txt")

_STEP_KEYWORD_RE = re.compile(r"^(Given|When|Then|And|But)\s+", re.IGNORECASE)

# Required markers per generated file kind
REQUIRED_CONTENT = {
    "page": ["package pages;", "extends BasePage"],
    "feature": ["Feature:", "Scenario"],
    "steps": ["package stepDefs;"],
}

# One page-object method shape per recorded element action
_ACTION_METHODS = {
    "click": Template(
        "    public static void click${method}(Page page) {\n"
        "        page.locator(${constant}).click();\n"
        "    }\n"
    ),
    "fill": Template(
        "    public static void enter${method}(Page page, String text) {\n"
        "        page.locator(${constant}).fill(text);\n"
        "    }\n"
    ),
    "select": Template(
        "    public static void select${method}(Page page, String option) {\n"
        "        page.locator(${constant}).selectOption(option);\n"
        "    }\n"
    ),
    "check": Template(
        "    public static void check${method}(Page page) {\n"
        "        page.locator(${constant}).check();\n"
        "    }\n"
    ),
    "press": Template(
        "    public static void press${method}(Page page, String key) {\n"
        "        page.locator(${constant}).press(key);\n"
        "    }\n"
    ),
    "verify": Template(
        "    public static boolean is${method}Visible(Page page) {\n"
        "        return page.locator(${constant}).first().isVisible();\n"
        "    }\n"
    ),
}


def _load_prompt():
    with open(_PROMPT_FILE) as f:
        return f.read()


def _guess_language(filepath):
    """Guess language from file extension."""
    ext_map = {".java": "java", ".feature": "gherkin", ".properties": "properties"}
    _, ext = os.path.splitext(filepath)
    return ext_map.get(ext, "text")


def sanitize_step(step):
    """Feature step line cleanup: keyword defaulted to When, whitespace collapsed,
    trailing punctuation dropped. Returns "" for blank input."""
    m = _STEP_KEYWORD_RE.match(step.strip())
    keyword = m.group(1).capitalize() if m else "When"
    text = normalize_step(step.strip()[m.end():] if m else step)
    if not text:
        return ""
    return f"{keyword} {text}"


def _escape(text):
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _page_path(url):
    """'https://host/app/login?x=1' -> '/app/login'."""
    path = re.sub(r"^[a-z]+://[^/]+", "", url or "/")
    path = path.split("?", 1)[0].split("#", 1)[0]
    return path if path.startswith("/") else "/" + path


def validate_files(files):
    """Raise ValueError when a generated file lacks the markers its kind requires."""
    for kind, entry in files.items():
        missing = [marker for marker in REQUIRED_CONTENT[kind] if marker not in entry.content]
        if missing:
            raise ValueError(f"Generated {kind} file {entry.path} is missing: {', '.join(missing)}")


class GeneratorAgent:
    """Generates a Cucumber suite from a TestRequirement, from templates or via Claude."""

    name = "generator"

    def __init__(self, build_tool=None):
        self.stack = BUILD_TOOLS[build_tool or DEFAULTS["build_tool"]]

    def paths(self, name):
        """Relative paths of the three files for class name."""
        return {
            "page": f"{self.stack['page_dir']}/{name}.java",
            "feature": f"{self.stack['features_dir']}/{name}.feature",
            "steps": f"{self.stack['steps_dir']}/{name}Steps.java",
        }

    def run(self, requirement: TestRequirement, use_llm=False):
        """Return {"page"|"feature"|"steps": FileEntry} for the requirement.

        Step definitions are reconciled against the feature file, so the
        generated suite starts with no undefined steps.
        """
        name = class_name(requirement.name)
        logger.info("[Generate] %s (%s mode)", name, "llm" if use_llm else "template")
        if use_llm:
            files = self._from_llm(requirement, name)
        else:
            files = self._from_templates(requirement, name)
        validate_files(files)

        steps = files["steps"]
        result = reconcile_files(files["feature"].content, steps.content)
        if result.stubs:
            steps.content = insert_stubs(steps.content, result.stubs)
            logger.info("[Generate] added %d step stub(s) to %s", len(result.stubs), steps.path)
        return files

    def write(self, files, workspace):
        """Write generated files through the workspace. Returns relative paths."""
        return [workspace.write_file(entry.path, entry.content) for entry in files.values()]

    # -- template mode ------------------------------------------------------

    def _from_templates(self, requirement, name):
        paths = self.paths(name)
        story = requirement.story or slugify(requirement.name) or name
        description = requirement.description or "Generated test suite"

        locators, methods = [], []
        seen = set()
        for element in requirement.elements:
            constant = slugify(element.name).upper() or "ELEMENT"
            if constant in seen:
                continue
            seen.add(constant)
            locators.append(f'    private static final String {constant} = "{_escape(element.selector)}";\n')
            shape = _ACTION_METHODS.get(element.action, _ACTION_METHODS["click"])
            methods.append(shape.substitute(method=to_pascal_case(element.name), constant=constant))

        page = render_template("java", "page_object.java.tmpl", {
            "class_name": name,
            "description": description,
            "story": story,
            "page_path": _page_path(requirement.page_url),
            "locators": "".join(locators) + ("\n" if locators else ""),
            "methods": "".join("\n" + m for m in methods),
        })

        scenario_blocks = []
        for scenario in requirement.scenarios or []:
            lines = [f"  Scenario: {scenario.name}", f"    Given user navigates to {name} page"]
            for step in scenario.steps:
                clean = sanitize_step(step)
                if clean:
                    lines.append(f"    {clean}")
            scenario_blocks.append("\n".join(lines) + "\n")
        if not scenario_blocks:
            scenario_blocks.append(
                f"  Scenario: Open {name} page\n    Given user navigates to {name} page\n"
            )

        feature = render_template("java", "feature.tmpl", {
            "story_tag": slugify(story) or name,
            "class_name": name,
            "description": description,
            "scenarios": "\n".join(scenario_blocks),
        })

        steps = render_template("java", "steps.java.tmpl", {"class_name": name, "story": story})

        return {
            "page": FileEntry(path=paths["page"], content=page, language="java"),
            "feature": FileEntry(path=paths["feature"], content=feature, language="gherkin"),
            "steps": FileEntry(path=paths["steps"], content=steps, language="java"),
        }

    # -- LLM mode -----------------------------------------------------------

    def _from_llm(self, requirement, name):
        paths = self.paths(name)
        parts = [
            f"Class name: {name}",
            f"Story: {requirement.story or name}",
            f"Page URL: {requirement.page_url}",
            f"Description: {requirement.description}",
            "Elements:",
        ]
        for element in requirement.elements:
            parts.append(f"- {element.name}: {element.action} {element.selector}")
        parts.append("Scenarios:")
        for scenario in requirement.scenarios:
            parts.append(f"- {scenario.name}")
            parts.extend(f"    {sanitize_step(step)}" for step in scenario.steps if sanitize_step(step))
        parts.append("Files to produce: " + ", ".join(paths.values()))

        response = call_llm(_load_prompt(), "\n".join(parts))
        parsed = dict(parse_files(response))

        files = {}
        for kind, path in paths.items():
            if path not in parsed:
                raise ValueError(f"Model response did not include {path}")
            files[kind] = FileEntry(path=path, content=parsed[path], language=_guess_language(path))
        return files
