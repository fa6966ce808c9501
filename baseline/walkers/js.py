"""JavaScript / TypeScript walker."""

from __future__ import annotations

from enum import Enum
import re
from typing import Final

import tree_sitter

from ..mapper import TokenKind
from .base import WalkContext, Walker


class JsNode(Enum):
    MEMBER = "member"
    CALL = "call"
    NEW = "new"
    ARROW = "arrow"
    ASYNC = "async"
    AWAIT = "await"
    VARIABLE = "variable"
    CLASS = "class"
    SPREAD = "spread"
    OPTIONAL_CHAIN = "optional-chain"
    NULLISH = "nullish"
    NUMBER = "number"
    TEMPLATE = "template"


NAMED_KINDS: Final[dict[str, JsNode]] = {
    "member_expression": JsNode.MEMBER,
    "call_expression": JsNode.CALL,
    "new_expression": JsNode.NEW,
    "arrow_function": JsNode.ARROW,
    "await_expression": JsNode.AWAIT,
    "variable_declarator": JsNode.VARIABLE,
    "class_declaration": JsNode.CLASS,
    "abstract_class_declaration": JsNode.CLASS,
    "class": JsNode.CLASS,
    "spread_element": JsNode.SPREAD,
    "optional_chain": JsNode.OPTIONAL_CHAIN,
    "number": JsNode.NUMBER,
    "template_string": JsNode.TEMPLATE,
}

# Anonymous tokens; ``class`` here would be the keyword, not the expression.
TOKEN_KINDS: Final[dict[str, JsNode]] = {
    "async": JsNode.ASYNC,
    "?.": JsNode.OPTIONAL_CHAIN,
    "??": JsNode.NULLISH,
}

GLOBAL_FUNCTIONS: Final[dict[str, str]] = {
    "fetch": "fetch",
    "requestAnimationFrame": "requestanimationframe",
    "requestIdleCallback": "requestidlecallback",
    "queueMicrotask": "queuemicrotask",
}

BUILTIN_CONSTRUCTORS: Final[dict[str, str]] = {
    "WeakMap": "weakmap",
    "WeakSet": "weakset",
    "Map": "map",
    "Set": "set",
    "Symbol": "symbol",
    "Proxy": "proxy",
    "Promise": "promises",
    "WeakRef": "weakref",
    "FinalizationRegistry": "finalizationregistry",
}

# Node types whose text is a dotted name when it is a plain path.
_PATH_NODE_TYPES: Final[frozenset[str]] = frozenset(
    {"identifier", "member_expression", "this", "property_identifier"}
)
_PATH_RE = re.compile(r"^[\w$]+(?:\.[\w$]+)*$")


def _dotted_path(ctx: WalkContext, node: tree_sitter.Node) -> str | None:
    if node.type not in _PATH_NODE_TYPES:
        return None
    path = ctx.text(node).replace("?.", ".")
    return path if _PATH_RE.match(path) else None


def callee_name(ctx: WalkContext, function: tree_sitter.Node) -> str | None:
    """``fetch`` for ``fetch()``, ``document.querySelector`` for a method call."""
    if function.type == "identifier":
        return ctx.text(function)
    if function.type != "member_expression":
        return None
    target = function.child_by_field_name("object")
    member = function.child_by_field_name("property")
    if target is None or member is None:
        return None
    target_path = _dotted_path(ctx, target)
    if target_path is None:
        return None
    return f"{target_path}.{ctx.text(member)}"


def member_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    text = ctx.text(node)
    ctx.emit_resolution(
        ctx.mapper.resolve(TokenKind.JS_PROPERTY, text), node, f"JS property access: {text}"
    )


def call_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    function = node.child_by_field_name("function")
    if function is None:
        return
    if function.type == "import":
        ctx.emit("dynamic-import", node, "Dynamic import()")
        return
    name = callee_name(ctx, function)
    if not name:
        return

    ctx.emit_resolution(
        ctx.mapper.resolve(TokenKind.JS_METHOD, f"{name}()"), node, f"JS method call: {name}()"
    )
    ctx.emit(GLOBAL_FUNCTIONS.get(name), node, f"JS function: {name}()")
    if name.endswith("Promise.allSettled"):
        ctx.emit("promise-allsettled", node, "Promise.allSettled()")
    elif name.endswith("Promise.any"):
        ctx.emit("promise-any", node, "Promise.any()")
    if name.startswith("Reflect."):
        ctx.emit("reflect", node, f"Reflect API: {name}()")


def new_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    constructor = node.child_by_field_name("constructor")
    if constructor is None:
        return
    name = ctx.text(constructor).strip()
    if not name:
        return
    context = f"JS constructor: new {name}()"
    ctx.emit_resolution(ctx.mapper.resolve(TokenKind.JS_CONSTRUCTOR, f"new {name}()"), node, context)
    ctx.emit(BUILTIN_CONSTRUCTORS.get(name), node, context)


def arrow_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("arrow-functions", node, "Arrow function syntax")


def async_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("async-functions", node, "Async function")


def await_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("async-await", node, "Await expression")


def variable_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    name = node.child_by_field_name("name")
    if name is not None and name.type in ("object_pattern", "array_pattern"):
        ctx.emit("destructuring-assignment", node, "Destructuring assignment")
    value = node.child_by_field_name("value")
    if value is not None and "`" in ctx.text(node):
        ctx.emit("template-literals", node, "Template literal")


def _member_name(member: tree_sitter.Node) -> tree_sitter.Node | None:
    return member.child_by_field_name("name") or member.child_by_field_name("property")


def _is_static(member: tree_sitter.Node) -> bool:
    if member.type == "class_static_block":
        return True
    return any(child.type == "static" and not child.is_named for child in member.children)


def class_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("es6-class", node, "ES6 Class")
    body = node.child_by_field_name("body")
    if body is None:
        return
    for member in body.named_children:
        name = _member_name(member)
        if name is not None and name.type == "private_property_identifier":
            ctx.emit("class-private-fields", node, "Private class fields")
        if _is_static(member):
            ctx.emit("class-static-members", node, "Static class members")


def spread_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("spread-operator", node, "Spread operator (...)")


def optional_chain_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("optional-chaining", node, "Optional chaining (?.)")


def nullish_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("nullish-coalescing", node, "Nullish coalescing (??)")


def number_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    if ctx.text(node).endswith("n"):
        ctx.emit("bigint", node, "BigInt")


def template_rule(ctx: WalkContext, node: tree_sitter.Node) -> None:
    ctx.emit("template-literals", node, "Template literal")


JS_WALKER: Final[Walker[JsNode]] = Walker(
    "js",
    NAMED_KINDS,
    {
        JsNode.MEMBER: (member_rule,),
        JsNode.CALL: (call_rule,),
        JsNode.NEW: (new_rule,),
        JsNode.ARROW: (arrow_rule,),
        JsNode.ASYNC: (async_rule,),
        JsNode.AWAIT: (await_rule,),
        JsNode.VARIABLE: (variable_rule,),
        JsNode.CLASS: (class_rule,),
        JsNode.SPREAD: (spread_rule,),
        JsNode.OPTIONAL_CHAIN: (optional_chain_rule,),
        JsNode.NULLISH: (nullish_rule,),
        JsNode.NUMBER: (number_rule,),
        JsNode.TEMPLATE: (template_rule,),
    },
    token_kinds=TOKEN_KINDS,
)
