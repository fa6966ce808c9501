"""tree-sitter grammars and source position helpers."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
import logging
from pathlib import PurePath
import re

import tree_sitter
import tree_sitter_css
import tree_sitter_html
import tree_sitter_javascript
import tree_sitter_typescript

from .constants import EXTENSION_LANGUAGES, Language
from .exceptions import ParsingError

LOGGER = logging.getLogger(__name__)

_NEWLINE_RE = re.compile(rb"\n")

_GRAMMAR_LOADERS: dict[str, Callable[[], object]] = {
    "css": tree_sitter_css.language,
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "html": tree_sitter_html.language,
}

_SUFFIX_GRAMMARS: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
}

_LANGUAGE_GRAMMARS: dict[Language, str] = {
    "css": "css",
    "js": "javascript",
    "html": "html",
}


@lru_cache(maxsize=None)
def get_language(grammar: str) -> tree_sitter.Language:
    try:
        loader = _GRAMMAR_LOADERS[grammar]
    except KeyError:
        raise ValueError(f"Unknown grammar: {grammar}") from None
    return tree_sitter.Language(loader())


def language_for_path(path: str | PurePath) -> Language | None:
    return EXTENSION_LANGUAGES.get(PurePath(path).suffix.lower())


def grammar_for_path(path: str | PurePath) -> str | None:
    suffix = PurePath(path).suffix.lower()
    if suffix in _SUFFIX_GRAMMARS:
        return _SUFFIX_GRAMMARS[suffix]
    language = EXTENSION_LANGUAGES.get(suffix)
    return _LANGUAGE_GRAMMARS[language] if language else None


class SourceText:
    """UTF-8 source with byte offset -> 1-based (line, column) resolution.

    Columns count characters, not bytes, so a position printed for a line with
    non-ASCII text still points at the right character.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.data = text.encode("utf-8")
        self._line_starts = [0] + [match.end() for match in _NEWLINE_RE.finditer(self.data)]

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, len(self.data)))
        line_index = bisect_right(self._line_starts, offset) - 1
        line_start = self._line_starts[line_index]
        prefix = self.data[line_start:offset].decode("utf-8", errors="replace")
        return line_index + 1, len(prefix) + 1

    def slice(self, start: int, end: int) -> str:
        return self.data[start:end].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ParsedSource:
    path: str
    language: Language
    grammar: str
    source: SourceText
    tree: tree_sitter.Tree


def parse_bytes(data: bytes, grammar: str) -> tree_sitter.Tree:
    """Parse raw bytes with one of the bundled grammars."""
    parser = tree_sitter.Parser(get_language(grammar))
    return parser.parse(data)


def parse(source_text: str, path: str) -> ParsedSource:
    """Parse ``source_text`` with the grammar picked from ``path``'s extension."""
    language = language_for_path(path)
    grammar = grammar_for_path(path)
    if language is None or grammar is None:
        raise ParsingError(path, PurePath(path).suffix or "unknown", cause="unsupported file type")
    source = SourceText(source_text)
    try:
        tree = parse_bytes(source.data, grammar)
    except ValueError as exc:
        raise ParsingError(path, language, cause=str(exc)) from exc
    LOGGER.debug("Parsed %s with the %s grammar (%s lines)", path, grammar, source.line_count)
    return ParsedSource(path=path, language=language, grammar=grammar, source=source, tree=tree)
