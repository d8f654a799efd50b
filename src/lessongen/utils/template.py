"""Placeholder substitution for prompt templates.

Templates use ``{{name}}`` placeholders. Names missing from the value mapping
(or mapped to None) render as an empty string so optional context blocks can
simply be left out.
"""

import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Replace every ``{{name}}`` placeholder in a template.

    Args:
        template: Template text containing ``{{name}}`` placeholders
        values: Mapping of placeholder name to value (coerced with str())

    Returns:
        Rendered text

    Example:
        >>> render_template("Level: {{userLevel}}{{missing}}", {"userLevel": "beginner"})
        'Level: beginner'
    """

    def _substitute(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)
