"""
Template rendering for rule parameters and condition values.

Templates use double-brace syntax evaluated against session state:
- Variable paths: {{Customer.FirstName}}, {{Accounts.0.PostCode}}
- Helpers: {{json Accounts}}, {{formatCentsAsDollars Balance.Amount}}
- Sections: {{#if Customer}}...{{else}}...{{/if}},
  {{#ifeq a "b"}}...{{/ifeq}}, {{#each Accounts}}{{@index}} {{PostCode}}{{/each}}
"""

import json
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pytz

from ..core.errors import CallflowError


class TemplateError(CallflowError):
    """Raised when a template cannot be rendered."""
    pass


def is_template(value: Any) -> bool:
    """Check to see if a value could be a template."""
    if not isinstance(value, str):
        return False
    return "{{" in value and "}}" in value


# =============================================================================
# Helpers
# =============================================================================


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _human_date(moment: datetime) -> str:
    return f"{_ordinal(moment.day)} of {moment.strftime('%B %Y')}"


def _date_of_birth_human(value: Any) -> Any:
    """DDMMYYYY -> '3rd of March 1980'."""
    if value is None:
        return value
    parsed = datetime.strptime(str(value).replace("/", ""), "%d%m%Y")
    return _human_date(parsed)


def _date_local_human(value: Any, timezone: str) -> Any:
    if value is None:
        return value
    return _human_date(_parse_iso(value).astimezone(pytz.timezone(timezone)))


def _day_local_human(value: Any, timezone: str) -> Any:
    if value is None:
        return value
    local = _parse_iso(value).astimezone(pytz.timezone(timezone))
    return f"{local.strftime('%A')}, {_ordinal(local.day)} of {local.strftime('%B')}"


def _time_local_human(value: Any, timezone: str) -> Any:
    if value is None:
        return value
    local = _parse_iso(value).astimezone(pytz.timezone(timezone))
    hour = local.hour % 12 or 12
    return f"{hour}:{local.strftime('%M')}{'am' if local.hour < 12 else 'pm'}"


def _character_speech(separator: str) -> Callable[[Any], Any]:
    def helper(value: Any) -> Any:
        if value is None:
            return value
        return separator.join(str(value))
    return helper


def _format_cents_as_dollars(cents: Any) -> str:
    if cents is None or cents == "":
        return "unknown dollars"
    return f"${float(cents) * 0.01:.2f}"


DEFAULT_HELPERS: Dict[str, Callable[..., Any]] = {
    "json": lambda value: json.dumps(value),
    "inc": lambda value: int(value) + 1,
    "dateOfBirthHuman": _date_of_birth_human,
    "dateLocalHuman": _date_local_human,
    "dayLocalHuman": _day_local_human,
    "timeLocalHuman": _time_local_human,
    "characterSpeechSlow": _character_speech(", "),
    "characterSpeechFast": _character_speech(" "),
    "formatCentsAsDollars": _format_cents_as_dollars,
}


# =============================================================================
# Renderer
# =============================================================================


class TemplateRenderer:
    """Renders double-brace templates against a context mapping."""

    _section_pattern = re.compile(
        r"\{\{#(if|ifeq|each)\s+([^}]*)\}\}(.*?)\{\{/\1\}\}",
        re.DOTALL,
    )
    _expression_pattern = re.compile(r"\{\{\s*([^#/}][^}]*?)\s*\}\}")
    _token_pattern = re.compile(r'"[^"]*"|\'[^\']*\'|\S+')

    def __init__(self, helpers: Optional[Dict[str, Callable[..., Any]]] = None):
        self.helpers = dict(DEFAULT_HELPERS)
        if helpers:
            self.helpers.update(helpers)

    def is_template(self, value: Any) -> bool:
        return is_template(value)

    def render(self, template: str, context: Dict[str, Any]) -> str:
        """
        Render a template.

        Raises:
            TemplateError: If a helper fails or the template is malformed
        """
        try:
            text = self._render_sections(template, context)
            return self._render_expressions(text, context)
        except TemplateError:
            raise
        except Exception as e:
            raise TemplateError(f"Failed to render template: {template!r}: {e}") from e

    def _render_sections(self, text: str, context: Dict[str, Any]) -> str:
        def replace_section(match: "re.Match[str]") -> str:
            kind, arguments, body = match.group(1), match.group(2), match.group(3)
            values = [self._resolve_token(token, context) for token in self._tokens(arguments)]
            truthy_body, _, falsy_body = body.partition("{{else}}")

            if kind == "each":
                items = values[0] if values else None
                if not isinstance(items, list):
                    return self._render_sections(falsy_body, context)
                rendered: List[str] = []
                for index, item in enumerate(items):
                    scope = dict(context)
                    if isinstance(item, dict):
                        scope.update(item)
                    scope["this"] = item
                    scope["@index"] = index
                    section = self._render_sections(truthy_body, scope)
                    rendered.append(self._render_expressions(section, scope))
                return "".join(rendered)

            if kind == "ifeq":
                matched = len(values) == 2 and _loose_equals(values[0], values[1])
            else:
                matched = _truthy(values[0] if values else None)

            return self._render_sections(truthy_body if matched else falsy_body, context)

        previous = None
        while previous != text:
            previous = text
            text = self._section_pattern.sub(replace_section, text)
        return text

    def _render_expressions(self, text: str, context: Dict[str, Any]) -> str:
        def replace_expression(match: "re.Match[str]") -> str:
            tokens = self._tokens(match.group(1))
            if not tokens or tokens[0] == "else":
                return ""

            helper = self.helpers.get(tokens[0])
            if helper is not None and len(tokens) > 1:
                arguments = [self._resolve_token(token, context) for token in tokens[1:]]
                value = helper(*arguments)
            else:
                value = self._resolve_token(tokens[0], context)

            return _to_text(value)

        return self._expression_pattern.sub(replace_expression, text)

    def _tokens(self, expression: str) -> List[str]:
        return self._token_pattern.findall(expression.strip())

    def _resolve_token(self, token: str, context: Dict[str, Any]) -> Any:
        if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
            return token[1:-1]
        if token == "this":
            return context.get("this")
        if token.startswith("@"):
            return context.get(token)
        if re.fullmatch(r"-?\d+(\.\d+)?", token):
            return token
        return resolve_path(context, token)


def resolve_path(context: Any, path: str) -> Any:
    """
    Walk a dot-separated path through nested dicts and lists.

    A `length` segment over a list yields its length and numeric segments
    index lists. Missing segments yield None.
    """
    value = context
    for segment in path.split("."):
        if value is None:
            return None
        if isinstance(value, list):
            if segment == "length":
                value = len(value)
            elif segment.isdigit() and int(segment) < len(value):
                value = value[int(segment)]
            else:
                return None
        elif isinstance(value, dict):
            value = value.get(segment)
        else:
            return None
    return value


def _truthy(value: Any) -> bool:
    if isinstance(value, list):
        return len(value) > 0
    return bool(value)


def _loose_equals(left: Any, right: Any) -> bool:
    return _to_text(left) == _to_text(right)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
