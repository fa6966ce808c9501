"""CSS walker."""

from __future__ import annotations

from enum import Enum
import re
from typing import Final

import tree_sitter

from ..mapper import TokenKind
from ..util.text import normalize_whitespace
from .base import WalkContext, Walker


class CssNode(Enum):
    DECLARATION = "declaration"
    PROPERTY = "property"
    SELECTOR = "selector"
    AT_RULE = "at-rule"


NODE_KINDS: Final[dict[str, CssNode]] = {
    "declaration": CssNode.DECLARATION,
    "property_name": CssNode.PROPERTY,
    "selectors": CssNode.SELECTOR,
    "at_rule": CssNode.AT_RULE,
    "media_statement": CssNode.AT_RULE,
    "import_statement": CssNode.AT_RULE,
    "keyframes_statement": CssNode.AT_RULE,
    "supports_statement": CssNode.AT_RULE,
    "charset_statement": CssNode.AT_RULE,
    "namespace_statement": CssNode.AT_RULE,
    "scope_statement": CssNode.AT_RULE,
}

_DECLARATION_RE = re.compile(r"([-\w]+)\s*:\s*([^;]+)")
_AT_RULE_RE = re.compile(r"@([\w-]+)")
_FUNCTION_RE = re.compile(r"([a-zA-Z][\w-]*)\(")
_VENDOR_PREFIX_RE = re.compile(r"^-(?:webkit|moz|ms|o)-")
_LOGICAL_SUFFIX_RE = re.compile(r"-(inline|block)-(start|end)$")
_CONTAINER_UNIT_RE = re.compile(r"\d+cq[whib]")

# (pattern, feature id, description)
ADVANCED_SELECTORS: Final[tuple[tuple[re.Pattern[str], str, str], ...]] = (
    (re.compile(r":has\("), "css-has", ":has() selector"),
    (re.compile(r":is\("), "css-is", ":is() selector"),
    (re.compile(r":where\("), "css-where", ":where() selector"),
    (re.compile(r":not\("), "css-not", ":not() selector"),
    (re.compile(r"::backdrop"), "dialog", "::backdrop pseudo-element"),
    (re.compile(r"::placeholder"), "css-placeholder", "::placeholder pseudo-element"),
    (re.compile(r"::marker"), "css-marker", "::marker pseudo-element"),
    (re.compile(r"::selection"), "css-selection", "::selection pseudo-element"),
    (re.compile(r"::part\("), "css-shadow-parts", "::part() pseudo-element"),
    (re.compile(r"::slotted\("), "css-slotted", "::slotted() pseudo-element"),
    (re.compile(r":focus-visible"), "css-focus-visible", ":focus-visible pseudo-class"),
    (re.compile(r":focus-within"), "css-focus-within", ":focus-within pseudo-class"),
    (re.compile(r":target"), "css-target", ":target pseudo-class"),
    (re.compile(r":nth-child\(.*of"), "css-nth-child-of", ":nth-child(... of S) selector"),
)

AT_RULE_FEATURES: Final[dict[str, str]] = {
    "container": "css-container-queries",
    "layer": "css-cascade-layers",
    "scope": "css-scope",
    "starting-style": "css-starting-style",
    "property": "css-properties-values-api",
    "keyframes": "css-animations",
    "media": "css-media-queries",
    "supports": "css-supports",
    "import": "css-import",
    "font-face": "css-font-face",
    "counter-style": "css-counter-styles",
}

MEDIA_FEATURES: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"prefers-color-scheme"), "prefers-color-scheme"),
    (re.compile(r"prefers-reduced-motion"), "prefers-reduced-motion"),
    (re.compile(r"prefers-contrast"), "prefers-contrast"),
    (re.compile(r"prefers-reduced-data"), "prefers-reduced-data"),
    (re.compile(r"prefers-reduced-transparency"), "prefers-reduced-transparency"),
    (re.compile(r"forced-colors"), "forced-colors"),
    (re.compile(r"hover:\s*hover"), "hover-media-query"),
    (re.compile(r"pointer:\s*fine"), "pointer-media-query"),
    (re.compile(r"any-hover"), "any-hover"),
    (re.compile(r"any-pointer"), "any-pointer"),
)

CONTAINER_PROPERTIES: Final[frozenset[str]] = frozenset(
    {"container", "container-type", "container-name"}
)
OVERSCROLL_PROPERTIES: Final[frozenset[str]] = frozenset(
    {"overscroll-behavior", "overscroll-behavior-x", "overscroll-behavior-y"}
)
GAP_PROPERTIES: Final[frozenset[str]] = frozenset({"gap", "row-gap", "column-gap"})


def value_features(property_name: str, value: str) -> list[str]:
    """Feature ids implied by a declaration's value (and a few property names)."""
    found: list[str] = []
    if property_name == "display":
        if "grid" in value:
            found.append("css-grid")
        if "flex" in value:
            found.append("flexbox")
        if "contents" in value:
            found.append("display-contents")
        if "subgrid" in value:
            found.append("css-subgrid")

    if "clamp(" in value or "min(" in value or "max(" in value:
        found.append("css-math-functions")
    if "var(" in value:
        found.append("custom-properties")
    if "calc(" in value:
        found.append("calc")

    if re.search(r"rgb\(.*/.*\)", value) or re.search(r"hsl\(.*/.*\)", value):
        found.append("css-color-4")
    if re.search(r"hwb\(|lch\(|lab\(", value):
        found.append("css-color-4")
    if "color(" in value:
        found.append("css-color-5")

    if "linear-gradient" in value or "radial-gradient" in value:
        found.append("css-gradients")
    if "conic-gradient" in value:
        found.append("css-conic-gradients")
    if "blur(" in value or "brightness(" in value or "contrast(" in value:
        found.append("css-filters")

    if property_name in ("backdrop-filter", "-webkit-backdrop-filter"):
        found.append("backdrop-filter")
    if property_name == "aspect-ratio":
        found.append("aspect-ratio")
    if _CONTAINER_UNIT_RE.search(value):
        found.append("css-container-queries")
    if property_name.startswith("view-transition"):
        found.append("view-transitions")
    if property_name.startswith("anchor-") or property_name == "position-anchor":
        found.append("css-anchor-positioning")
    if property_name in ("animation-timeline", "scroll-timeline"):
        found.append("scroll-driven-animations")
    return found


def property_features(property_name: str) -> list[tuple[str, str]]:
    """``(feature id, description)`` pairs for property families."""
    found: list[tuple[str, str]] = []
    if _LOGICAL_SUFFIX_RE.search(property_name):
        found.append(("css-logical-properties", "CSS logical property"))
    if property_name in CONTAINER_PROPERTIES:
        found.append(("css-container-queries", "CSS container property"))
    if (
        property_name.startswith(("scroll-snap-", "scroll-margin", "scroll-padding"))
        or property_name == "scroll-behavior"
    ):
        found.append(("css-scroll-snap", "CSS scroll property"))
    if property_name in OVERSCROLL_PROPERTIES:
        found.append(("css-overscroll-behavior", "CSS overscroll property"))
    if property_name.startswith("text-decoration-"):
        found.append(("css-text-decoration", "CSS text decoration property"))
    if property_name in GAP_PROPERTIES:
        found.append(("css-gap", "CSS gap property"))
    return found


def declaration_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    match = _DECLARATION_RE.match(ctx.text(node))
    if match is None:
        return
    property_name = match.group(1).strip().lower()
    value = normalize_whitespace(match.group(2))

    ctx.emit_resolution(
        ctx.mapper.resolve(TokenKind.CSS_PROPERTY, property_name, value),
        node,
        f"CSS property: {property_name}: {value}",
    )
    for feature in value_features(property_name, value):
        ctx.emit(feature, node, f"CSS value: {property_name}: {value}")
    for function_name in _FUNCTION_RE.findall(value):
        ctx.emit_resolution(
            ctx.mapper.resolve(TokenKind.CSS_TYPE, function_name),
            node,
            f"CSS function: {function_name}()",
        )


def property_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    property_name = ctx.text(node).strip().lower()
    ctx.emit_resolution(
        ctx.mapper.resolve(TokenKind.CSS_PROPERTY, property_name),
        node,
        f"CSS property: {property_name}",
    )
    for feature, description in property_features(property_name):
        ctx.emit(feature, node, f"{description}: {property_name}")


def selector_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    selector = normalize_whitespace(ctx.text(node))
    for resolution in ctx.mapper.resolve_selector(selector):
        ctx.emit_resolution(resolution, node, f"CSS selector: {selector}")
    for pattern, feature, description in ADVANCED_SELECTORS:
        if pattern.search(selector):
            ctx.emit(feature, node, f"CSS {description}")


def at_rule_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    text = ctx.text(node)
    match = _AT_RULE_RE.match(text)
    if match is None:
        return
    name = match.group(1).lower()
    context = f"CSS at-rule: @{name}"
    ctx.emit_resolution(ctx.mapper.resolve(TokenKind.CSS_AT_RULE, name), node, context)
    ctx.emit(AT_RULE_FEATURES.get(_VENDOR_PREFIX_RE.sub("", name)), node, context)

    if name == "media":
        prelude = text.split("{", 1)[0]
        for pattern, feature in MEDIA_FEATURES:
            if pattern.search(prelude):
                ctx.emit(feature, node, f"Media query feature: {feature}")


CSS_WALKER: Final[Walker[CssNode]] = Walker(
    "css",
    NODE_KINDS,
    {
        CssNode.DECLARATION: (declaration_rule,),
        CssNode.PROPERTY: (property_rule,),
        CssNode.SELECTOR: (selector_rule,),
        CssNode.AT_RULE: (at_rule_rule,),
    },
)
