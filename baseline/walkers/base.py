"""Shared walk machinery: node-kind dispatch, emission and syntax errors.

A walker is a table from tree-sitter node types to a closed set of node
kinds, and from each kind to the rules that fire on it. Rules are plain
functions taking the walk context and the node, so each one can be tested
on its own.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Generic, TypeVar

import tree_sitter

from ..constants import Confidence, Language
from ..mapper import FeatureMapper, Resolution
from ..model import DetectedFeature
from ..parsing import SourceText

LOGGER = logging.getLogger(__name__)

K = TypeVar("K", bound=Enum)


@dataclass
class WalkContext:
    """Per-walk state shared by every rule.

    ``base`` is the byte offset of the walked tree inside ``source``; it is
    non-zero for ``<style>``/``<script>`` bodies parsed out of an HTML file.
    """

    mapper: FeatureMapper
    source: SourceText
    language: Language
    base: int = 0
    features: list[DetectedFeature] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    seen: set[tuple[str, int, int]] = field(default_factory=set)

    def text(self, node: tree_sitter.Node) -> str:
        return self.source.slice(self.base + node.start_byte, self.base + node.end_byte)

    def position(self, node: tree_sitter.Node) -> tuple[int, int]:
        return self.source.position(self.base + node.start_byte)

    def add(self, feature: DetectedFeature) -> None:
        key = (feature.name, feature.line, feature.column)
        if key in self.seen:
            return
        self.seen.add(key)
        self.features.append(feature)

    def emit(
        self,
        name: str | None,
        node: tree_sitter.Node,
        context: str,
        confidence: Confidence = "high",
    ) -> None:
        if not name:
            return
        line, column = self.position(node)
        self.add(
            DetectedFeature(
                name=name,
                type=self.language,
                line=line,
                column=column,
                context=context,
                confidence=confidence,
            )
        )

    def emit_resolution(
        self, resolution: Resolution | None, node: tree_sitter.Node, context: str
    ) -> None:
        """Emit a mapper hit with the confidence of the strategy that produced it."""
        if resolution is not None:
            self.emit(resolution.feature_id, node, context, resolution.confidence)

    def nested(self, language: Language, base: int) -> WalkContext:
        """Context for an embedded tree; results land in this context's lists."""
        return WalkContext(
            mapper=self.mapper,
            source=self.source,
            language=language,
            base=base,
            features=self.features,
            warnings=self.warnings,
            seen=self.seen,
        )


Rule = Callable[[WalkContext, tree_sitter.Node], None]


def iter_nodes(root: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Pre-order traversal that does not recurse in Python."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


class Walker(Generic[K]):
    def __init__(
        self,
        language: Language,
        named_kinds: Mapping[str, K],
        rules: Mapping[K, Sequence[Rule]],
        token_kinds: Mapping[str, K] | None = None,
    ) -> None:
        self.language = language
        self.named_kinds = dict(named_kinds)
        self.token_kinds = dict(token_kinds or {})
        self.rules = {kind: tuple(kind_rules) for kind, kind_rules in rules.items()}

    def kind_of(self, node: tree_sitter.Node) -> K | None:
        table = self.named_kinds if node.is_named else self.token_kinds
        return table.get(node.type)

    def walk(self, ctx: WalkContext, root: tree_sitter.Node) -> None:
        for node in iter_nodes(root):
            kind = self.kind_of(node)
            if kind is None:
                continue
            for rule in self.rules.get(kind, ()):
                rule(ctx, node)


def collect_syntax_errors(ctx: WalkContext, root: tree_sitter.Node) -> None:
    """Record ERROR and MISSING nodes as warnings; nested errors count once."""
    if not root.has_error:
        return
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            line, column = ctx.position(node)
            ctx.warnings.append(f"Missing {node.type!r} at line {line}, column {column}")
            continue
        if node.is_error:
            line, column = ctx.position(node)
            ctx.warnings.append(f"Syntax error at line {line}, column {column}")
            continue
        if node.has_error:
            stack.extend(reversed(node.children))
