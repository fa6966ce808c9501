"""Syntax-tree walkers that turn parsed sources into detected features."""

from __future__ import annotations

import logging
from typing import Final

from ..constants import Language
from ..mapper import FeatureMapper
from ..model import DetectedFeature
from ..parsing import ParsedSource
from .base import WalkContext, Walker, collect_syntax_errors
from .css import CSS_WALKER
from .html import HTML_WALKER
from .js import JS_WALKER

LOGGER = logging.getLogger(__name__)

WALKERS: Final[dict[Language, Walker]] = {
    "css": CSS_WALKER,
    "js": JS_WALKER,
    "html": HTML_WALKER,
}


def detect_features(
    parsed: ParsedSource, mapper: FeatureMapper
) -> tuple[list[DetectedFeature], list[str]]:
    """Walk ``parsed`` and return ``(features, parse warnings)``.

    Syntax errors never stop detection: tree-sitter recovers and the walk runs
    over the recovered tree. If a rule itself fails, the enhanced-pattern text
    scan fills in what it can and the failure becomes a warning.
    """
    ctx = WalkContext(mapper=mapper, source=parsed.source, language=parsed.language)
    collect_syntax_errors(ctx, parsed.tree.root_node)
    try:
        WALKERS[parsed.language].walk(ctx, parsed.tree.root_node)
    except Exception as exc:
        LOGGER.warning("%s walker failed on %s: %s", parsed.language.upper(), parsed.path, exc)
        ctx.warnings.append(f"{parsed.language.upper()} walker error: {exc}")
        for feature in mapper.detect_in_text(parsed.source.text, parsed.language):
            ctx.add(feature)
    return ctx.features, ctx.warnings
