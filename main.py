#!/usr/bin/env python3
"""stepsmith - generate a Cucumber suite, then build, diagnose and patch it until it passes.

Usage:
    python main.py generate --name Login --scenario "Valid login|user enters \"bob\" into username;user should be logged in"
    python main.py generate --name Login --element "Sign In:click:#signin" --llm
    python main.py reconcile --feature src/test/resources/features/Login.feature \
                             --steps src/test/java/stepDefs/LoginSteps.java --write
    python main.py run --project-dir . --steps-file src/test/java/stepDefs/LoginSteps.java --tag Login
    python main.py build --name Login --scenario "..." --project-dir .
"""

import argparse
import logging
import os
import sys

from agents.builder import BuildAgent
from agents.generator import GeneratorAgent
from agents.patch_composer import PatchComposer
from config.defaults import DEFAULTS
from core.orchestrator import Orchestrator
from core.reconciler import reconcile_files, insert_stubs
from core.state import TestRequirement, Scenario, PageElement
from core.workspace import Workspace
from utils.naming import class_name

logger = logging.getLogger("stepsmith")


def _configure_logging(verbose=False):
    level = "DEBUG" if verbose else os.environ.get("STEPSMITH_LOG_LEVEL", DEFAULTS["log_level"])
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_scenario(value):
    """'Name|step one;step two' -> Scenario. Without '|' the whole value is the step list."""
    name, sep, steps = value.partition("|")
    if not sep:
        name, steps = "Generated scenario", value
    return Scenario(name=name.strip(), steps=[s.strip() for s in steps.split(";") if s.strip()])


def parse_element(value):
    """'name:action:selector' -> PageElement. The selector may itself contain ':'."""
    parts = value.split(":", 2)
    if len(parts) != 3 or not all(p.strip() for p in parts):
        raise argparse.ArgumentTypeError(f"Element must be name:action:selector, got {value!r}")
    name, action, selector = (p.strip() for p in parts)
    return PageElement(name=name, action=action, selector=selector)


def _requirement(args):
    return TestRequirement(
        name=args.name,
        description=args.description or "",
        page_url=args.url,
        story=args.story or "",
        elements=list(args.element or []),
        scenarios=[parse_scenario(s) for s in args.scenario or []],
    )


def cmd_generate(args):
    """Render page object, feature file and step definitions into the project."""
    generator = GeneratorAgent()
    files = generator.run(_requirement(args), use_llm=args.llm)

    if args.dry_run:
        for entry in files.values():
            print(f"--- {entry.path} ---")
            print(entry.content)
        return files

    written = generator.write(files, Workspace(args.project_dir))
    print(f"Generated {len(written)} file(s) in {os.path.realpath(args.project_dir)}:")
    for path in written:
        print(f"  {path}")
    return files


def cmd_reconcile(args):
    """Pre-flight check: feature steps with no step definition. Returns exit code."""
    with open(args.feature) as f:
        feature_text = f.read()
    with open(args.steps) as f:
        steps_text = f.read()

    result = reconcile_files(feature_text, steps_text)
    if result.complete:
        print("All feature steps have step definitions.")
        return 0

    print(f"{len(result.missing)} step(s) without a definition:")
    for step in result.missing:
        print(f"  - {step.text}")

    if args.write:
        with open(args.steps, "w") as f:
            f.write(insert_stubs(steps_text, result.stubs))
        print(f"\nInserted {len(result.stubs)} stub(s) into {args.steps}")
        return 0

    print("\nStubs (use --write to insert them):\n")
    print("\n".join(result.stubs))
    return 1


def _run_session(project_dir, steps_file, tag, max_attempts):
    workspace = Workspace(project_dir)
    builder = BuildAgent(workspace.root, tag=tag or "")
    orchestrator = Orchestrator(workspace, builder, steps_file=steps_file)
    result = orchestrator.run_session(max_attempts=max_attempts)
    print(PatchComposer().run(result))
    return 0 if result.ok else 1


def cmd_run(args):
    """Build/test/patch loop over an existing project. Returns exit code."""
    return _run_session(args.project_dir, args.steps_file, args.tag, args.max_attempts)


def cmd_build(args):
    """generate, then run on the generated suite. Returns exit code."""
    files = cmd_generate(args)
    if args.dry_run:
        return 0
    tag = args.tag or class_name(args.name)
    return _run_session(args.project_dir, files["steps"].path, tag, args.max_attempts)


def _add_generate_args(parser):
    parser.add_argument("--name", required=True, help="Feature / page name, e.g. 'Login'")
    parser.add_argument("--scenario", action="append",
                        help="'Scenario name|step;step;...' (repeatable)")
    parser.add_argument("--element", action="append", type=parse_element,
                        help="Page element 'name:action:selector' (repeatable)")
    parser.add_argument("--url", default="/", help="Page URL or path (default: /)")
    parser.add_argument("--story", help="Story id used for tags and docs")
    parser.add_argument("--description", help="Feature description")
    parser.add_argument("--project-dir", default=".", help="Maven project root (default: .)")
    parser.add_argument("--llm", action="store_true",
                        help="Generate with Claude instead of templates (needs ANTHROPIC_API_KEY)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print the generated files instead of writing them")


def _add_run_args(parser):
    parser.add_argument("--tag", help="Cucumber tag to run, without '@'")
    parser.add_argument("--max-attempts", type=int, default=DEFAULTS["max_attempts"],
                        help=f"Patch attempts before giving up (default: {DEFAULTS['max_attempts']})")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="stepsmith",
        description="Generate, build, diagnose and patch Cucumber test suites",
    )
    subparsers = parser.add_subparsers(dest="command")

    generate_parser = subparsers.add_parser("generate", help="Generate a test suite")
    _add_generate_args(generate_parser)

    reconcile_parser = subparsers.add_parser("reconcile", help="Find steps without definitions")
    reconcile_parser.add_argument("--feature", required=True, help="Path to the .feature file")
    reconcile_parser.add_argument("--steps", required=True, help="Path to the step definitions file")
    reconcile_parser.add_argument("--write", action="store_true",
                                  help="Insert stubs for missing steps into the steps file")

    run_parser = subparsers.add_parser("run", help="Build, test and patch until green")
    run_parser.add_argument("--project-dir", default=".", help="Maven project root (default: .)")
    run_parser.add_argument("--steps-file", default="",
                            help="Step definitions file, relative to the project root "
                                 "(default: the only file in src/test/java/stepDefs)")
    _add_run_args(run_parser)

    build_parser_ = subparsers.add_parser("build", help="generate, then run")
    _add_generate_args(build_parser_)
    _add_run_args(build_parser_)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(getattr(args, "verbose", False))

    try:
        if args.command == "generate":
            cmd_generate(args)
            code = 0
        elif args.command == "reconcile":
            code = cmd_reconcile(args)
        elif args.command == "run":
            code = cmd_run(args)
        elif args.command == "build":
            code = cmd_build(args)
        else:
            parser.print_help()
            code = 1
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
