"""Compat-key templates and key generation.

Templates are tried in declaration order and the mapper keeps the first key
that exists in the index, so the order of each table is significant.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import re
from typing import Final

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")

CSS_PATTERN_TEMPLATES: Final[tuple[str, ...]] = (
    "css.properties.${property}",
    "css.properties.${property}.${value}",
    # display: grid / flex / contents ... only filled in for ``display``
    "css.properties.display.${display_value}",
    "css.at-rules.${at_rule}",
    "css.at-rules.${at_rule}.${value}",
    "css.selectors.${selector}",
    "css.selectors.${selector}.${value}",
    "css.types.${type_name}",
    "css.types.${type_name}.${value}",
    "css.types.color.${type_name}",
    "css.types.gradient.${type_name}",
    "css.types.filter-function.${type_name}",
)

JS_PATTERN_TEMPLATES: Final[tuple[str, ...]] = (
    "api.${api_name}",
    # constructor keys repeat the interface name
    "api.${api_name}.${api_name}",
    "javascript.builtins.${api_name}",
    "javascript.builtins.${api_name}.${api_name}",
    "javascript.statements.${api_name}",
    "javascript.operators.${api_name}",
    "javascript.functions.${api_name}",
    "javascript.classes.${api_name}",
    "javascript.grammar.${api_name}",
    "javascript.builtins.globalThis.${api_name}",
    "webapi.${api_name}",
)

HTML_PATTERN_TEMPLATES: Final[tuple[str, ...]] = (
    "html.elements.${element_name}",
    "html.elements.${element_name}.${attribute}",
    "html.global_attributes.${attribute}",
)


def _substitute(template: str, substitutions: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        value = substitutions.get(match.group(1))
        # Empty values stay unresolved so the key is discarded below.
        return value if value else match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, template)


def generate_keys(templates: Iterable[str], substitutions: Mapping[str, str | None]) -> list[str]:
    """Fill ``${name}`` placeholders and drop keys that stay unresolved.

    A key is discarded when any placeholder has no non-empty substitution or
    when it contains the literal ``undefined``. Output order follows the
    template order.
    """
    values = {name: value for name, value in substitutions.items() if value}
    keys: list[str] = []
    for template in templates:
        key = _substitute(template, values)
        if "${" in key or "undefined" in key:
            continue
        if key not in keys:
            keys.append(key)
    return keys


def css_substitutions(
    *,
    property_name: str | None = None,
    value: str | None = None,
    at_rule: str | None = None,
    selector: str | None = None,
    type_name: str | None = None,
) -> dict[str, str | None]:
    return {
        "property": property_name,
        "value": value,
        "display_value": value if property_name == "display" else None,
        "at_rule": at_rule,
        "selector": selector,
        "type_name": type_name,
    }


def html_substitutions(
    *, element_name: str | None = None, attribute: str | None = None
) -> dict[str, str | None]:
    return {"element_name": element_name, "attribute": attribute}
