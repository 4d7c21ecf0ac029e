"""Template Resolver - Template variable resolution.

Resolves ``{{path.to.value}}`` references against the execution context.
Deliberately minimal: dotted lookups plus one ``json`` helper, no expressions,
so a user-supplied template can never run code.

    {{ user.name }}          -> value formatted as text
    {{json response.data}}   -> value serialized as JSON
    {{{ user.name }}}        -> same as double braces (nothing is ever escaped)
"""

import json
import re
from typing import Any, Callable, Dict, List, Mapping, Sequence

from nodeflow.core.logging import get_logger
from nodeflow.services.execution.exceptions import TemplateError

logger = get_logger(__name__)

# Triple braces first so "{{{x}}}" is not read as "{" + "{{x}}" + "}"
TEMPLATE_PATTERN = re.compile(r"\{\{\{\s*(.*?)\s*\}\}\}|\{\{\s*(.*?)\s*\}\}")


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def format_value(value: Any) -> str:
    """Format a context value for interpolation into text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (Mapping, list, tuple)):
        return _to_json(value)
    return str(value)


HELPERS: Dict[str, Callable[[Any], str]] = {
    "json": _to_json,
}


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """Navigate through nested mappings and lists using a dotted path.

    Raises:
        TemplateError: If any segment of the path does not exist
    """
    parts: List[str] = path.split(".")
    if not all(parts):
        raise TemplateError(f"Invalid template path '{path}'")

    current: Any = context
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, str) and part.isdigit() \
                and int(part) < len(current):
            current = current[int(part)]
        else:
            raise TemplateError(f"Template references unknown path '{path}'")
    return current


def _evaluate(expression: str, context: Mapping[str, Any]) -> str:
    tokens = expression.split()
    if len(tokens) == 1:
        return format_value(lookup_path(context, tokens[0]))
    if len(tokens) == 2:
        helper = HELPERS.get(tokens[0])
        if helper is None:
            raise TemplateError(f"Unknown template helper '{tokens[0]}'")
        return helper(lookup_path(context, tokens[1]))
    raise TemplateError(f"Invalid template expression '{{{{{expression}}}}}'")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Render every ``{{...}}`` reference in template against context.

    Raises:
        TemplateError: On a missing path, an unknown helper or a malformed expression
    """
    if "{{" not in template:
        return template

    def replace(match: "re.Match[str]") -> str:
        expression = match.group(1) if match.group(1) is not None else match.group(2)
        if not expression:
            raise TemplateError("Empty template expression")
        return _evaluate(expression, context)

    rendered = TEMPLATE_PATTERN.sub(replace, template)
    logger.debug("[TemplateResolver] Rendered template", references=template.count("{{"),
                 available_keys=list(context.keys()))
    return rendered
