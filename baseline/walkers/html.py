"""HTML walker, including embedded ``<style>`` and ``<script>`` bodies."""

from __future__ import annotations

from enum import Enum
import logging
from typing import Final

import tree_sitter

from ..mapper import TokenKind
from ..parsing import parse_bytes
from .base import WalkContext, Walker, collect_syntax_errors
from .css import CSS_WALKER
from .js import JS_WALKER

LOGGER = logging.getLogger(__name__)


class HtmlNode(Enum):
    TAG = "tag"
    STYLE = "style"
    SCRIPT = "script"


NODE_KINDS: Final[dict[str, HtmlNode]] = {
    "start_tag": HtmlNode.TAG,
    "self_closing_tag": HtmlNode.TAG,
    "style_element": HtmlNode.STYLE,
    "script_element": HtmlNode.SCRIPT,
}

MODERN_ELEMENTS: Final[dict[str, str]] = {
    "dialog": "dialog",
    "details": "details",
    "summary": "details",
    "template": "template",
    "slot": "slot",
    "canvas": "canvas",
    "video": "video",
    "audio": "audio",
    "picture": "picture",
    "source": "picture",
    "track": "track",
    "progress": "progress",
    "meter": "meter",
    "output": "output",
    "datalist": "datalist",
    "time": "time",
    "mark": "mark",
    "svg": "svg",
    "math": "mathml",
}

INPUT_TYPES: Final[dict[str, str]] = {
    "email": "input-email",
    "url": "input-url",
    "tel": "input-tel",
    "number": "input-number",
    "range": "input-range",
    "date": "input-date",
    "time": "input-time",
    "datetime-local": "input-datetime-local",
    "month": "input-month",
    "week": "input-week",
    "color": "input-color",
    "search": "input-search",
}

VALIDATION_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    {"required", "pattern", "min", "max", "minlength", "maxlength", "step"}
)

# attribute name -> (feature id, description)
FIXED_ATTRIBUTES: Final[dict[str, tuple[str, str]]] = {
    "contenteditable": ("contenteditable", "contenteditable attribute"),
    "spellcheck": ("spellcheck", "spellcheck attribute"),
    "draggable": ("drag-and-drop", "draggable attribute"),
    "decoding": ("img-decoding", "Image decoding attribute"),
    "referrerpolicy": ("referrer-policy", "Referrer policy attribute"),
    "crossorigin": ("cors", "CORS attribute"),
    "integrity": ("subresource-integrity", "Subresource Integrity"),
}

_SCRIPT_TYPES: Final[frozenset[str]] = frozenset(
    {"", "module", "text/javascript", "application/javascript", "text/ecmascript"}
)


def tag_name(ctx: WalkContext, tag: tree_sitter.Node) -> str | None:
    for child in tag.named_children:
        if child.type == "tag_name":
            return ctx.text(child).lower()
    return None


def attribute_pairs(
    ctx: WalkContext, tag: tree_sitter.Node
) -> list[tuple[tree_sitter.Node, str, str | None]]:
    """``(attribute node, lower-cased name, value)`` for each attribute of a tag."""
    pairs: list[tuple[tree_sitter.Node, str, str | None]] = []
    for attribute in tag.named_children:
        if attribute.type != "attribute":
            continue
        name: str | None = None
        value: str | None = None
        for child in attribute.named_children:
            if child.type == "attribute_name":
                name = ctx.text(child).lower()
            elif child.type == "attribute_value":
                value = ctx.text(child)
            elif child.type == "quoted_attribute_value":
                inner = [c for c in child.named_children if c.type == "attribute_value"]
                value = ctx.text(inner[0]) if inner else ""
        if name:
            pairs.append((attribute, name, value))
    return pairs


def element_features(ctx: WalkContext, node: tree_sitter.Node, name: str) -> None:
    context = f"HTML element: <{name}>"
    ctx.emit_resolution(ctx.mapper.resolve(TokenKind.HTML_ELEMENT, name), node, context)
    ctx.emit(MODERN_ELEMENTS.get(name), node, context)
    if "-" in name:
        ctx.emit("custom-elements", node, f"Custom element: <{name}>")


def attribute_features(
    ctx: WalkContext, node: tree_sitter.Node, element: str, name: str, value: str | None
) -> None:
    ctx.emit_resolution(
        ctx.mapper.resolve(TokenKind.HTML_ATTRIBUTE, name, element), node, f"HTML attribute: {name}"
    )
    if name.startswith("aria-"):
        ctx.emit("aria", node, f"ARIA attribute: {name}")
    if name.startswith("data-"):
        ctx.emit("dataset", node, f"Data attribute: {name}")
    if name in FIXED_ATTRIBUTES:
        feature, description = FIXED_ATTRIBUTES[name]
        ctx.emit(feature, node, description)
    if element == "input" and name == "type" and value:
        input_type = value.strip().lower()
        ctx.emit(INPUT_TYPES.get(input_type), node, f"Input type: {input_type}")
    if name in VALIDATION_ATTRIBUTES:
        ctx.emit("form-validation", node, f"Form validation: {name}")
    if name == "loading" and value is not None and value.strip().lower() == "lazy":
        ctx.emit("loading-lazy", node, "Lazy loading attribute")


def tag_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    name = tag_name(ctx, node)
    if not name:
        return
    element_features(ctx, node, name)
    for attribute, attribute_name, value in attribute_pairs(ctx, node):
        attribute_features(ctx, attribute, name, attribute_name, value)


def _start_tag(element: tree_sitter.Node) -> tree_sitter.Node | None:
    for child in element.named_children:
        if child.type == "start_tag":
            return child
    return None


def _raw_text(element: tree_sitter.Node) -> tree_sitter.Node | None:
    for child in element.named_children:
        if child.type == "raw_text":
            return child
    return None


def _walk_embedded(
    ctx: WalkContext, raw: tree_sitter.Node, grammar: str, walker: Walker
) -> None:
    start = ctx.base + raw.start_byte
    data = ctx.source.data[start : ctx.base + raw.end_byte]
    tree = parse_bytes(data, grammar)
    embedded = ctx.nested(walker.language, start)
    collect_syntax_errors(embedded, tree.root_node)
    walker.walk(embedded, tree.root_node)
    LOGGER.debug("Walked embedded %s block at byte %s", grammar, start)


def style_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    raw = _raw_text(node)
    if raw is not None:
        _walk_embedded(ctx, raw, "css", CSS_WALKER)


def script_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    raw = _raw_text(node)
    if raw is None:
        return
    tag = _start_tag(node)
    if tag is not None:
        for _attribute, name, value in attribute_pairs(ctx, tag):
            if name == "type" and (value or "").strip().lower() not in _SCRIPT_TYPES:
                return
    _walk_embedded(ctx, raw, "javascript", JS_WALKER)


HTML_WALKER: Final[Walker[HtmlNode]] = Walker(
    "html",
    NODE_KINDS,
    {
        HtmlNode.TAG: (tag_rule,),
        HtmlNode.STYLE: (style_rule,),
        HtmlNode.SCRIPT: (script_rule,),
    },
)
