"""Renders the Java/Gherkin scaffolding templates shipped under templates/."""

import functools
import os
from string import Template

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")


@functools.lru_cache(maxsize=32)
def load_template(category, template_name):
    """Template source for templates/<category>/<template_name>."""
    root = os.path.realpath(TEMPLATES_DIR)
    resolved = os.path.realpath(os.path.join(root, category, template_name))
    if not resolved.startswith(root + os.sep):
        raise ValueError(f"Template path escapes templates directory: {category}/{template_name}")
    with open(resolved, encoding="utf-8") as f:
        return Template(f.read())


def render_template(category, template_name, variables):
    """Fill every ${placeholder}. A placeholder without a value raises ValueError,
    so no half-rendered source reaches the project."""
    try:
        return load_template(category, template_name).substitute(variables)
    except KeyError as e:
        raise ValueError(f"Template {category}/{template_name} needs a value for {e.args[0]}") from None
