"""Feature mapper: resolve syntactic fragments to feature ids.

Each token kind owns an ordered pipeline of named strategies. A pipeline
returns the first strategy hit, so precedence is the declared order:
direct compat-key lookup, alias tables, enhanced regex mappings and, for
JavaScript only, a fuzzy substring search over the index.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
import re
import time
from typing import Protocol

from .constants import Confidence, Language
from .dataset import FeatureIndex, load_index
from .model import DetectedFeature, FeatureRecord
from .patterns import (
    CSS_PATTERN_TEMPLATES,
    HTML_PATTERN_TEMPLATES,
    JS_PATTERN_TEMPLATES,
    css_substitutions,
    generate_keys,
    html_substitutions,
)

LOGGER = logging.getLogger(__name__)

_VENDOR_PREFIX_RE = re.compile(r"^-(?:webkit|moz|ms|o)-")
_JS_PATH_RE = re.compile(r"^[\w$]+(?:\.[\w$]+)*$")
_JS_CALLEE_RE = re.compile(r"([\w$]+(?:\.[\w$]+)*)\s*\(")
_JS_CONSTRUCTOR_RE = re.compile(r"new\s+([\w$]+(?:\.[\w$]+)*)")
_PSEUDO_RE = re.compile(r"::?([a-zA-Z][\w-]*)")
_CSS_VALUE_KEYWORD_RE = re.compile(r"^[a-z][a-z0-9-]*$")

FUZZY_PREFIXES: tuple[str, ...] = ("api.", "javascript.")
# Shorter identifiers would substring-match large parts of the index.
MIN_FUZZY_TOKEN_LENGTH = 4
# An attribute must not resolve to its element through the bare element key.
ATTRIBUTE_TEMPLATES: tuple[str, ...] = tuple(
    template for template in HTML_PATTERN_TEMPLATES if "${attribute}" in template
)


class TokenKind(str, Enum):
    CSS_PROPERTY = "css-property"
    CSS_AT_RULE = "css-at-rule"
    CSS_TYPE = "css-type"
    JS_PROPERTY = "js-property"
    JS_METHOD = "js-method"
    JS_CONSTRUCTOR = "js-constructor"
    HTML_ELEMENT = "html-element"
    HTML_ATTRIBUTE = "html-attribute"


@dataclass(frozen=True)
class EnhancedMapping:
    language: Language
    trigger: re.Pattern[str]
    feature_id: str
    confidence: Confidence = "high"


def _enhanced(
    language: Language, pattern: str, feature_id: str, confidence: Confidence = "high"
) -> EnhancedMapping:
    return EnhancedMapping(language, re.compile(pattern), feature_id, confidence)


ENHANCED_MAPPINGS: tuple[EnhancedMapping, ...] = (
    _enhanced("css", r":has\(", "css-has"),
    _enhanced("css", r"::backdrop", "dialog"),
    _enhanced("css", r"@container", "css-container-queries"),
    _enhanced("css", r"@layer", "css-cascade-layers"),
    _enhanced("css", r"@starting-style", "css-starting-style"),
    _enhanced("css", r"@scope", "css-scope"),
    _enhanced("css", r"@property", "css-properties-values-api"),
    _enhanced("css", r"::view-transition", "view-transitions"),
    _enhanced("css", r":popover-open", "popover", "medium"),
    _enhanced("js", r"new\s+IntersectionObserver", "intersectionobserver"),
    _enhanced("js", r"new\s+ResizeObserver", "resizeobserver"),
    _enhanced("js", r"new\s+MutationObserver", "mutationobserver"),
    _enhanced("js", r"new\s+AbortController", "abortcontroller"),
    _enhanced("js", r"\bfetch\s*\(", "fetch"),
    _enhanced("js", r"\bstructuredClone\s*\(", "structured-clone"),
    _enhanced("js", r"\.startViewTransition\s*\(", "view-transitions"),
    _enhanced("js", r"\bcustomElements\.define\s*\(", "custom-elements"),
    _enhanced("js", r"\.attachShadow\s*\(", "shadow-dom"),
    _enhanced("js", r"navigator\.clipboard", "async-clipboard", "medium"),
    _enhanced("html", r"<dialog", "dialog"),
    _enhanced("html", r"<details", "details"),
    _enhanced("html", r"<template", "template"),
    _enhanced("html", r"<search\b", "search"),
    _enhanced("html", r"\spopover(?=[\s=>])", "popover", "medium"),
)


@dataclass(frozen=True)
class Fragment:
    """A syntactic token prepared for resolution.

    ``names`` are the candidate names fed to key templates and alias tables,
    in preference order. ``text`` is the raw fragment enhanced patterns test.
    """

    kind: TokenKind
    text: str
    names: tuple[str, ...]
    qualifier: str | None = None


@dataclass(frozen=True)
class Resolution:
    feature_id: str
    strategy: str
    confidence: Confidence
    key: str | None = None


class Strategy(Protocol):
    name: str

    def resolve(self, fragment: Fragment) -> Resolution | None: ...


Substitutions = Callable[[str, Fragment], Mapping[str, str | None]]


class DirectKeyStrategy:
    """Generate compat keys from templates and look them up exactly."""

    name = "direct-key"

    def __init__(
        self, index: FeatureIndex, templates: Sequence[str], substitutions: Substitutions
    ) -> None:
        self._index = index
        self._templates = tuple(templates)
        self._substitutions = substitutions

    def candidate_keys(self, fragment: Fragment) -> list[str]:
        keys: list[str] = []
        for name in fragment.names:
            for key in generate_keys(self._templates, self._substitutions(name, fragment)):
                if key not in keys:
                    keys.append(key)
        return keys

    def resolve(self, fragment: Fragment) -> Resolution | None:
        for key in self.candidate_keys(fragment):
            record = self._index.get(key)
            if record is not None:
                return Resolution(record.feature_id, self.name, "high", key)
        return None


class AliasTableStrategy:
    """Look names up in a table derived from the index at initialization."""

    name = "alias"

    def __init__(self, table: Mapping[str, str], normalize: Callable[[str], str] = str.lower) -> None:
        self._table = table
        self._normalize = normalize

    def resolve(self, fragment: Fragment) -> Resolution | None:
        for name in fragment.names:
            feature_id = self._table.get(self._normalize(name))
            if feature_id is not None:
                return Resolution(feature_id, self.name, "high")
        return None


class EnhancedPatternStrategy:
    """Test the raw fragment against the hand-curated regex table."""

    name = "enhanced"

    def __init__(self, mappings: Sequence[EnhancedMapping]) -> None:
        self._mappings = tuple(mappings)

    def matches(self, fragment: Fragment) -> list[Resolution]:
        return [
            Resolution(mapping.feature_id, self.name, mapping.confidence)
            for mapping in self._mappings
            if mapping.trigger.search(fragment.text)
        ]

    def resolve(self, fragment: Fragment) -> Resolution | None:
        for mapping in self._mappings:
            if mapping.trigger.search(fragment.text):
                return Resolution(mapping.feature_id, self.name, mapping.confidence)
        return None


class FuzzyKeyStrategy:
    """Substring search over ``api.``/``javascript.`` keys.

    The token has to appear as whole dotted segments of the key. Ties are
    broken by shortest key, then lexicographic order, so the result does not
    depend on dataset insertion order.
    """

    name = "fuzzy"

    def __init__(
        self,
        index: FeatureIndex,
        prefixes: Sequence[str] = FUZZY_PREFIXES,
        min_length: int = MIN_FUZZY_TOKEN_LENGTH,
    ) -> None:
        self._min_length = min_length
        # (padded lowercase key, key, record), shortest key first.
        self._candidates: tuple[tuple[str, str, FeatureRecord], ...] = tuple(
            (f".{key.lower()}.", key, record)
            for key, record in sorted(index.items(), key=lambda item: (len(item[0]), item[0]))
            if key.startswith(tuple(prefixes))
        )

    def resolve(self, fragment: Fragment) -> Resolution | None:
        if not fragment.names:
            return None
        needle = fragment.names[0]
        if len(needle) < self._min_length:
            return None
        # Only whole dotted segments count: "fetch" must not match "prefetch".
        segment = f".{needle.lower()}."
        for padded, key, record in self._candidates:
            if segment in padded:
                return Resolution(record.feature_id, self.name, "low", key)
        return None


class ResolutionPipeline:
    def __init__(self, kind: TokenKind, strategies: Sequence[Strategy]) -> None:
        self.kind = kind
        self.strategies = tuple(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [strategy.name for strategy in self.strategies]

    def resolve(self, fragment: Fragment) -> Resolution | None:
        for strategy in self.strategies:
            resolution = strategy.resolve(fragment)
            if resolution is not None:
                return resolution
        return None


def _unprefixed_variants(name: str) -> tuple[str, ...]:
    unprefixed = _VENDOR_PREFIX_RE.sub("", name)
    return (name, unprefixed) if unprefixed != name else (name,)


def _js_path_variants(path: str) -> tuple[str, ...]:
    """``document.querySelector`` also tries ``Document.querySelector``."""
    capitalized = path[:1].upper() + path[1:]
    return (path, capitalized) if capitalized != path else (path,)


def _css_value_keyword(value: str | None) -> str | None:
    if not value:
        return None
    head = value.replace("!important", " ").strip().split(maxsplit=1)
    if not head:
        return None
    keyword = head[0].lower()
    return keyword if _CSS_VALUE_KEYWORD_RE.match(keyword) else None


def _build_alias_tables(index: FeatureIndex) -> dict[str, dict[str, str]]:
    tables: dict[str, dict[str, str]] = {
        "css_properties": {},
        "css_selectors": {},
        "css_at_rules": {},
        "js_apis": {},
        "js_constructors": {},
        "html_elements": {},
        "html_attributes": {},
    }
    for key, record in index.items():
        feature_id = record.feature_id
        if key.startswith("css.properties."):
            name = key.removeprefix("css.properties.")
            if "." not in name:
                tables["css_properties"][name.replace("_", "-")] = feature_id
        elif key.startswith("css.selectors."):
            name = key.removeprefix("css.selectors.")
            if "." not in name:
                tables["css_selectors"][name] = feature_id
        elif key.startswith("css.at-rules."):
            name = key.removeprefix("css.at-rules.")
            if "." not in name:
                tables["css_at_rules"][name.replace("_", "-")] = feature_id
        elif key.startswith("api."):
            path = key.removeprefix("api.")
            if "." in path:
                tables["js_apis"][path.lower()] = feature_id
            elif path[:1].isupper():
                tables["js_constructors"][path] = feature_id
            else:
                tables["js_apis"][path.lower()] = feature_id
        elif key.startswith("html.elements."):
            name = key.removeprefix("html.elements.")
            if "." not in name:
                tables["html_elements"][name] = feature_id
        elif key.startswith("html.global_attributes."):
            name = key.removeprefix("html.global_attributes.")
            if "." not in name:
                tables["html_attributes"][name] = feature_id
    return tables


class FeatureMapper:
    """Maps CSS/JS/HTML fragments to feature ids.

    Queries made before :meth:`initialize` completes log a warning and
    resolve to nothing.
    """

    def __init__(
        self, index: FeatureIndex, enhanced: Sequence[EnhancedMapping] = ENHANCED_MAPPINGS
    ) -> None:
        self.index = index
        self.initialized = False
        self._enhanced = tuple(enhanced)
        self._alias_tables: dict[str, dict[str, str]] = {}
        self._pipelines: dict[TokenKind, ResolutionPipeline] = {}
        self._selector_direct: DirectKeyStrategy | None = None

    async def initialize(self) -> None:
        if self.initialized:
            return
        started = time.perf_counter()
        self._alias_tables = _build_alias_tables(self.index)
        self._pipelines = self._build_pipelines()
        self._selector_direct = DirectKeyStrategy(
            self.index,
            CSS_PATTERN_TEMPLATES,
            lambda name, _fragment: css_substitutions(selector=name),
        )
        self.initialized = True
        LOGGER.debug(
            "Feature mapper initialized in %.1fms: %s",
            (time.perf_counter() - started) * 1000,
            self.stats(),
        )

    def _enhanced_for(self, language: Language) -> EnhancedPatternStrategy:
        return EnhancedPatternStrategy([m for m in self._enhanced if m.language == language])

    def _build_pipelines(self) -> dict[TokenKind, ResolutionPipeline]:
        index = self.index
        tables = self._alias_tables
        css_enhanced = self._enhanced_for("css")
        js_enhanced = self._enhanced_for("js")
        html_enhanced = self._enhanced_for("html")

        def _css_property(name: str, fragment: Fragment) -> Mapping[str, str | None]:
            return css_substitutions(property_name=name, value=fragment.qualifier)

        def _js_api(name: str, _fragment: Fragment) -> Mapping[str, str | None]:
            return {"api_name": name}

        def _html_element(name: str, _fragment: Fragment) -> Mapping[str, str | None]:
            return html_substitutions(element_name=name)

        def _html_attribute(name: str, fragment: Fragment) -> Mapping[str, str | None]:
            return html_substitutions(element_name=fragment.qualifier, attribute=name)

        js_fuzzy = FuzzyKeyStrategy(index)
        return {
            TokenKind.CSS_PROPERTY: ResolutionPipeline(
                TokenKind.CSS_PROPERTY,
                [
                    DirectKeyStrategy(index, CSS_PATTERN_TEMPLATES, _css_property),
                    AliasTableStrategy(tables["css_properties"]),
                    css_enhanced,
                ],
            ),
            TokenKind.CSS_AT_RULE: ResolutionPipeline(
                TokenKind.CSS_AT_RULE,
                [
                    DirectKeyStrategy(
                        index,
                        CSS_PATTERN_TEMPLATES,
                        lambda name, _fragment: css_substitutions(at_rule=name),
                    ),
                    AliasTableStrategy(tables["css_at_rules"]),
                    css_enhanced,
                ],
            ),
            TokenKind.CSS_TYPE: ResolutionPipeline(
                TokenKind.CSS_TYPE,
                [
                    DirectKeyStrategy(
                        index,
                        CSS_PATTERN_TEMPLATES,
                        lambda name, _fragment: css_substitutions(type_name=name),
                    ),
                ],
            ),
            TokenKind.JS_PROPERTY: ResolutionPipeline(
                TokenKind.JS_PROPERTY,
                [
                    DirectKeyStrategy(index, JS_PATTERN_TEMPLATES, _js_api),
                    AliasTableStrategy(tables["js_apis"]),
                    js_enhanced,
                    js_fuzzy,
                ],
            ),
            TokenKind.JS_METHOD: ResolutionPipeline(
                TokenKind.JS_METHOD,
                [
                    DirectKeyStrategy(index, JS_PATTERN_TEMPLATES, _js_api),
                    AliasTableStrategy(tables["js_apis"]),
                    js_enhanced,
                    js_fuzzy,
                ],
            ),
            TokenKind.JS_CONSTRUCTOR: ResolutionPipeline(
                TokenKind.JS_CONSTRUCTOR,
                [
                    DirectKeyStrategy(index, JS_PATTERN_TEMPLATES, _js_api),
                    AliasTableStrategy(tables["js_constructors"], normalize=str),
                    js_enhanced,
                    js_fuzzy,
                ],
            ),
            TokenKind.HTML_ELEMENT: ResolutionPipeline(
                TokenKind.HTML_ELEMENT,
                [
                    DirectKeyStrategy(index, HTML_PATTERN_TEMPLATES, _html_element),
                    AliasTableStrategy(tables["html_elements"]),
                    html_enhanced,
                ],
            ),
            TokenKind.HTML_ATTRIBUTE: ResolutionPipeline(
                TokenKind.HTML_ATTRIBUTE,
                [
                    DirectKeyStrategy(index, ATTRIBUTE_TEMPLATES, _html_attribute),
                    AliasTableStrategy(tables["html_attributes"]),
                    html_enhanced,
                ],
            ),
        }

    def pipeline(self, kind: TokenKind) -> ResolutionPipeline:
        return self._pipelines[kind]

    def _ready(self) -> bool:
        if not self.initialized:
            LOGGER.warning("Feature mapper queried before initialization; no match returned")
        return self.initialized

    # -- fragment preparation -------------------------------------------------

    @staticmethod
    def fragment(kind: TokenKind, token: str, qualifier: str | None = None) -> Fragment | None:
        token = token.strip()
        if not token:
            return None
        if kind is TokenKind.CSS_PROPERTY:
            name = token.lower()
            return Fragment(kind, name, _unprefixed_variants(name), _css_value_keyword(qualifier))
        if kind is TokenKind.CSS_AT_RULE:
            name = token.lstrip("@").lower()
            return Fragment(kind, f"@{name}", _unprefixed_variants(name))
        if kind is TokenKind.CSS_TYPE:
            name = token.lower().rstrip("(")
            return Fragment(kind, f"{name}(", (name,))
        if kind is TokenKind.JS_PROPERTY:
            path = token.replace("?.", ".")
            if not _JS_PATH_RE.match(path):
                return None
            return Fragment(kind, token, _js_path_variants(path))
        if kind is TokenKind.JS_METHOD:
            match = _JS_CALLEE_RE.match(token)
            names = _js_path_variants(match.group(1)) if match else ()
            return Fragment(kind, token, names)
        if kind is TokenKind.JS_CONSTRUCTOR:
            match = _JS_CONSTRUCTOR_RE.search(token)
            names = (match.group(1),) if match else ()
            return Fragment(kind, token, names)
        if kind is TokenKind.HTML_ELEMENT:
            name = token.lower()
            return Fragment(kind, f"<{name}", (name,))
        name = token.lower()
        return Fragment(kind, name, (name,), qualifier.lower() if qualifier else None)

    # -- resolution -----------------------------------------------------------

    def resolve(self, kind: TokenKind, token: str, qualifier: str | None = None) -> Resolution | None:
        if not self._ready():
            return None
        fragment = self.fragment(kind, token, qualifier)
        if fragment is None:
            return None
        resolution = self._pipelines[kind].resolve(fragment)
        if resolution is not None:
            LOGGER.debug("%s %r -> %s via %s", kind.value, token, resolution.feature_id, resolution.strategy)
        return resolution

    def resolve_selector(self, selector: str) -> list[Resolution]:
        """All features a selector string uses, in order of first appearance."""
        if not self._ready() or self._selector_direct is None:
            return []
        found: list[Resolution] = []
        seen: set[str] = set()

        def _add(resolution: Resolution | None) -> None:
            if resolution is not None and resolution.feature_id not in seen:
                seen.add(resolution.feature_id)
                found.append(resolution)

        selector_table = AliasTableStrategy(self._alias_tables["css_selectors"])
        for name in _PSEUDO_RE.findall(selector):
            fragment = Fragment(TokenKind.CSS_PROPERTY, selector, (name.lower(),))
            _add(self._selector_direct.resolve(fragment) or selector_table.resolve(fragment))
        whole = Fragment(TokenKind.CSS_PROPERTY, selector, ())
        for resolution in self._enhanced_for("css").matches(whole):
            _add(resolution)
        return found

    def _map(self, kind: TokenKind, token: str, qualifier: str | None = None) -> str | None:
        resolution = self.resolve(kind, token, qualifier)
        return resolution.feature_id if resolution is not None else None

    def map_css_property(self, property_name: str, value: str | None = None) -> str | None:
        return self._map(TokenKind.CSS_PROPERTY, property_name, value)

    def map_css_selector(self, selector: str) -> list[str]:
        return [resolution.feature_id for resolution in self.resolve_selector(selector)]

    def map_css_at_rule(self, at_rule: str) -> str | None:
        return self._map(TokenKind.CSS_AT_RULE, at_rule)

    def map_js_property(self, property_access: str) -> str | None:
        return self._map(TokenKind.JS_PROPERTY, property_access)

    def map_js_method(self, method_call: str) -> str | None:
        return self._map(TokenKind.JS_METHOD, method_call)

    def map_js_constructor(self, constructor: str) -> str | None:
        return self._map(TokenKind.JS_CONSTRUCTOR, constructor)

    def map_html_element(self, element: str) -> str | None:
        return self._map(TokenKind.HTML_ELEMENT, element)

    def map_html_attribute(self, attribute: str, element: str | None = None) -> str | None:
        return self._map(TokenKind.HTML_ATTRIBUTE, attribute, element)

    # -- whole-text scan ------------------------------------------------------

    def detect_in_text(self, content: str, language: Language) -> list[DetectedFeature]:
        """Re-scan raw text with the enhanced table, independent of any tree."""
        if not self._ready():
            return []
        detected: list[DetectedFeature] = []
        for mapping in self._enhanced:
            if mapping.language != language:
                continue
            pattern = re.compile(mapping.trigger.pattern, re.IGNORECASE)
            for match in pattern.finditer(content):
                start = match.start()
                line = content.count("\n", 0, start) + 1
                column = start - (content.rfind("\n", 0, start) + 1) + 1
                detected.append(
                    DetectedFeature(
                        name=mapping.feature_id,
                        type=language,
                        line=line,
                        column=column,
                        context=match.group(0),
                        confidence=mapping.confidence,
                    )
                )
        detected.sort(key=lambda feature: (feature.line, feature.column))
        return detected

    def stats(self) -> dict[str, int | bool]:
        stats: dict[str, int | bool] = {"initialized": self.initialized}
        for name, table in self._alias_tables.items():
            stats[name] = len(table)
        stats["enhanced_mappings"] = len(self._enhanced)
        return stats


class MapperProvider:
    """Builds one :class:`FeatureMapper` on first use and shares it.

    Concurrent callers of :meth:`get` await the same in-flight build; a
    failed build is forgotten so the next call retries.
    """

    def __init__(self, index_loader: Callable[[], FeatureIndex] | None = None) -> None:
        self._index_loader = index_loader or load_index
        self._mapper: FeatureMapper | None = None
        self._pending: asyncio.Task[FeatureMapper] | None = None
        self.builds = 0

    @classmethod
    def for_dataset(cls, dataset: str | None = None) -> MapperProvider:
        return cls(lambda: load_index(dataset))

    async def _build(self) -> FeatureMapper:
        self.builds += 1
        index = await asyncio.to_thread(self._index_loader)
        mapper = FeatureMapper(index)
        await mapper.initialize()
        return mapper

    async def get(self) -> FeatureMapper:
        if self._mapper is not None:
            return self._mapper
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._build())
        pending = self._pending
        try:
            mapper = await pending
        except BaseException:
            if self._pending is pending:
                self._pending = None
            raise
        self._mapper = mapper
        self._pending = None
        return mapper
