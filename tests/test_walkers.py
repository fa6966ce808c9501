from __future__ import annotations

import asyncio
import re

import pytest
import tree_sitter

from baseline import walkers
from baseline.dataset import build_index
from baseline.mapper import FeatureMapper
from baseline.model import DetectedFeature
from baseline.parsing import SourceText, parse
from baseline.walkers import detect_features
from baseline.walkers.base import WalkContext

_WARNING_RE = re.compile(r"^(Syntax error|Missing '.*') at line \d+, column \d+$")


def _detect(mapper: FeatureMapper, source: str, path: str) -> tuple[list[DetectedFeature], list[str]]:
    return detect_features(parse(source, path), mapper)


def _names(features: list[DetectedFeature]) -> list[str]:
    return [feature.name for feature in features]


def test_css_display_grid(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "a { display: grid; }", "style.css")

    assert _names(features) == ["css-grid"]
    assert (features[0].line, features[0].column) == (1, 5)
    assert features[0].type == "css"


def test_css_function_in_value_is_resolved_once(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, ".card { backdrop-filter: blur(4px); }", "style.css")

    assert _names(features) == ["backdrop-filter", "css-filters"]


def test_css_selectors_and_at_rules(mapper: FeatureMapper) -> None:
    source = "@container (min-width: 400px) {\n  .a { color: red; }\n}\n.card:has(img) { color: red; }\n"
    features, _ = _detect(mapper, source, "style.css")
    names = _names(features)

    assert "css-container-queries" in names
    assert "css-has" in names
    has = next(feature for feature in features if feature.name == "css-has")
    assert has.line == 4


def test_css_media_features_only_from_prelude(mapper: FeatureMapper) -> None:
    source = "@media (prefers-color-scheme: dark) {\n  a { color: white; }\n}\n"
    features, _ = _detect(mapper, source, "style.css")

    assert "prefers-color-scheme" in _names(features)
    assert "css-media-queries" in _names(features)


def test_js_destructuring(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "const {a,b} = obj;", "app.js")

    assert _names(features) == ["destructuring-assignment"]


def test_js_async_and_await_positions(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "async function f(){ await g(); }", "app.js")

    assert [(feature.name, feature.line, feature.column) for feature in features] == [
        ("async-functions", 1, 1),
        ("async-await", 1, 21),
    ]


def test_js_calls_constructors_and_syntax(mapper: FeatureMapper) -> None:
    source = (
        "const io = new IntersectionObserver(cb);\n"
        "fetch(url).then((r) => r.json());\n"
        "const n = 10n;\n"
        "const v = a?.b ?? c;\n"
        "const s = `x${y}`;\n"
        "const m = new WeakMap();\n"
    )
    features, _ = _detect(mapper, source, "app.js")
    names = set(_names(features))

    assert {
        "intersectionobserver",
        "fetch",
        "arrow-functions",
        "bigint",
        "optional-chaining",
        "nullish-coalescing",
        "template-literals",
        "weakmap",
    } <= names


def test_js_classes(mapper: FeatureMapper) -> None:
    source = "class A {\n  #secret = 1;\n  static count = 0;\n}\n"
    features, _ = _detect(mapper, source, "app.js")

    assert {"es6-class", "class-private-fields", "class-static-members"} <= set(_names(features))


def test_dynamic_import(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "import('./mod.js');", "app.js")

    assert "dynamic-import" in _names(features)


def test_typescript_uses_js_walker(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "const x: number = a ?? 1;", "app.ts")

    assert "nullish-coalescing" in _names(features)
    assert all(feature.type == "js" for feature in features)


def test_html_custom_element_and_aria(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, '<foo-bar aria-label="x"></foo-bar>', "index.html")

    assert [(feature.name, feature.line, feature.column) for feature in features] == [
        ("custom-elements", 1, 1),
        ("aria", 1, 10),
    ]


def test_html_elements_and_attributes(mapper: FeatureMapper) -> None:
    source = (
        "<dialog open></dialog>\n"
        '<input type="email" required>\n'
        '<img src="a.png" loading="lazy">\n'
        '<div popover data-id="1"></div>\n'
    )
    features, _ = _detect(mapper, source, "index.html")
    names = _names(features)

    assert names.count("dialog") == 1
    assert {"input-email", "form-validation", "loading-lazy", "popover", "dataset"} <= set(names)


def test_embedded_style_positions(mapper: FeatureMapper) -> None:
    source = "<html>\n<style>\n.a { display: grid; }\n</style>\n</html>\n"
    features, _ = _detect(mapper, source, "index.html")
    grid = [feature for feature in features if feature.name == "css-grid"]

    assert len(grid) == 1
    assert grid[0].type == "css"
    assert (grid[0].line, grid[0].column) == (3, 6)


def test_embedded_script_positions(mapper: FeatureMapper) -> None:
    source = "<p>hi</p>\n<script>\nconst {a} = o;\n</script>\n"
    features, _ = _detect(mapper, source, "index.html")
    found = [feature for feature in features if feature.name == "destructuring-assignment"]

    assert len(found) == 1
    assert found[0].type == "js"
    assert (found[0].line, found[0].column) == (3, 7)


def test_non_javascript_script_is_skipped(mapper: FeatureMapper) -> None:
    source = '<script type="text/template">\nconst {a} = o;\n</script>\n'
    features, _ = _detect(mapper, source, "index.html")

    assert "destructuring-assignment" not in _names(features)


def test_detection_is_idempotent(mapper: FeatureMapper) -> None:
    source = "<div popover>\n<style>.a:has(b) { display: grid; }</style>\n<script>fetch(u);</script>\n</div>\n"

    assert _detect(mapper, source, "index.html") == _detect(mapper, source, "index.html")


def test_syntax_errors_become_warnings(mapper: FeatureMapper) -> None:
    _, warnings = _detect(mapper, "let x = (1 + ;\n", "app.js")

    assert warnings
    assert all(_WARNING_RE.match(warning) for warning in warnings)


def test_walker_failure_falls_back_to_text_scan(
    mapper: FeatureMapper, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _boom(ctx: WalkContext, root: tree_sitter.Node) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(walkers.JS_WALKER, "walk", _boom)

    features, warnings = _detect(mapper, "const a = 1;\nfetch(url);\n", "app.js")

    assert warnings == ["JS walker error: boom"]
    assert [(feature.name, feature.line, feature.column) for feature in features] == [("fetch", 2, 1)]


def test_source_text_columns_count_characters() -> None:
    source = SourceText("é = 1;\nab")

    assert source.position(0) == (1, 1)
    assert source.position(len("é".encode("utf-8"))) == (1, 2)
    assert source.position(len("é = 1;\n".encode("utf-8")) + 1) == (2, 2)
    assert source.line_count == 2


def _confidences(features: list[DetectedFeature]) -> list[tuple[str, str]]:
    return [(feature.name, feature.confidence) for feature in features]


def test_fuzzy_hit_keeps_low_confidence() -> None:
    index = build_index(
        {
            "intersectionobserver": {
                "status": {"baseline": "high"},
                "compat_features": ["api.IntersectionObserver.observe"],
            }
        }
    )
    sparse = FeatureMapper(index)
    asyncio.run(sparse.initialize())

    features, _ = _detect(sparse, "observe();", "app.js")

    assert _confidences(features) == [("intersectionobserver", "low")]


def test_mapper_confidence_reaches_detected_features(mapper: FeatureMapper) -> None:
    direct, _ = _detect(mapper, "fetch(url);", "app.js")
    enhanced, _ = _detect(mapper, "const c = navigator.clipboard;", "app.js")

    assert _confidences(direct) == [("fetch", "high")]
    assert ("async-clipboard", "medium") in _confidences(enhanced)


@pytest.mark.parametrize(
    ("source", "feature"),
    [
        ("a { margin-inline-start: 1px; }", "css-logical-properties"),
        ("a { padding-block-end: 1px; }", "css-logical-properties"),
        ("a { scroll-snap-type: x mandatory; }", "css-scroll-snap"),
        ("a { scroll-behavior: smooth; }", "css-scroll-snap"),
        ("a { overscroll-behavior: contain; }", "css-overscroll-behavior"),
        ("a { text-decoration-thickness: 2px; }", "css-text-decoration"),
        ("a { gap: 1rem; }", "css-gap"),
        ("a { column-gap: 1rem; }", "css-gap"),
        ("a { container-type: inline-size; }", "css-container-queries"),
        ("a { width: 50cqw; }", "css-container-queries"),
        ("a { aspect-ratio: 16 / 9; }", "aspect-ratio"),
        ("a { display: contents; }", "display-contents"),
        ("a { width: clamp(1rem, 2vw, 3rem); }", "css-math-functions"),
        ("a { color: var(--accent); }", "custom-properties"),
        ("a { width: calc(100% - 1rem); }", "calc"),
        ("a { background: conic-gradient(red, blue); }", "css-conic-gradients"),
        ("a { background: linear-gradient(red, blue); }", "css-gradients"),
        ("a { anchor-name: --tip; }", "css-anchor-positioning"),
        ("a { animation-timeline: scroll(); }", "scroll-driven-animations"),
        ("a { view-transition-name: hero; }", "view-transitions"),
    ],
)
def test_css_property_and_value_table(mapper: FeatureMapper, source: str, feature: str) -> None:
    features, _ = _detect(mapper, source, "style.css")

    assert feature in _names(features)


@pytest.mark.parametrize(
    ("source", "feature"),
    [
        (":is(h1, h2) { color: red; }", "css-is"),
        ("a:where(.x) { color: red; }", "css-where"),
        ("a:not(.x) { color: red; }", "css-not"),
        ("dialog::backdrop { color: red; }", "dialog"),
        ("input::placeholder { color: red; }", "css-placeholder"),
        ("li::marker { color: red; }", "css-marker"),
        ("p::selection { color: red; }", "css-selection"),
        ("x-tab::part(label) { color: red; }", "css-shadow-parts"),
        ("::slotted(span) { color: red; }", "css-slotted"),
        ("a:focus-visible { color: red; }", "css-focus-visible"),
        ("form:focus-within { color: red; }", "css-focus-within"),
        ("h2:target { color: red; }", "css-target"),
        ("li:nth-child(2n of li) { color: red; }", "css-nth-child-of"),
    ],
)
def test_css_selector_table(mapper: FeatureMapper, source: str, feature: str) -> None:
    features, _ = _detect(mapper, source, "style.css")

    assert feature in _names(features)


@pytest.mark.parametrize(
    ("source", "feature"),
    [
        ("@layer base;", "css-cascade-layers"),
        ("@scope (.card) {\n  a { color: red; }\n}", "css-scope"),
        ("@starting-style {\n  a { opacity: 0; }\n}", "css-starting-style"),
        ("@property --x {\n  syntax: '<length>';\n  inherits: false;\n}", "css-properties-values-api"),
        ("@keyframes spin {\n  from { opacity: 0; }\n}", "css-animations"),
        ("@-webkit-keyframes spin {\n  from { opacity: 0; }\n}", "css-animations"),
        ("@supports (display: grid) {\n  a { color: red; }\n}", "css-supports"),
        ('@import url("base.css");', "css-import"),
        ("@font-face {\n  font-family: Brand;\n}", "css-font-face"),
        ("@counter-style thumbs {\n  system: cyclic;\n}", "css-counter-styles"),
    ],
)
def test_css_at_rule_table(mapper: FeatureMapper, source: str, feature: str) -> None:
    features, _ = _detect(mapper, source, "style.css")

    assert feature in _names(features)


@pytest.mark.parametrize(
    ("query", "feature"),
    [
        ("(prefers-reduced-motion: reduce)", "prefers-reduced-motion"),
        ("(prefers-contrast: more)", "prefers-contrast"),
        ("(prefers-reduced-data: reduce)", "prefers-reduced-data"),
        ("(prefers-reduced-transparency: reduce)", "prefers-reduced-transparency"),
        ("(forced-colors: active)", "forced-colors"),
        ("(hover: hover)", "hover-media-query"),
        ("(pointer: fine)", "pointer-media-query"),
        ("(any-hover: hover)", "any-hover"),
        ("(any-pointer: coarse)", "any-pointer"),
    ],
)
def test_media_query_features(mapper: FeatureMapper, query: str, feature: str) -> None:
    features, _ = _detect(mapper, f"@media {query} {{\n  a {{ color: red; }}\n}}\n", "style.css")

    assert feature in _names(features)


@pytest.mark.parametrize(
    ("source", "feature"),
    [
        ("Promise.allSettled(tasks);", "promise-allsettled"),
        ("Promise.any(tasks);", "promise-any"),
        ("Reflect.ownKeys(target);", "reflect"),
        ("requestAnimationFrame(draw);", "requestanimationframe"),
        ("requestIdleCallback(work);", "requestidlecallback"),
        ("queueMicrotask(job);", "queuemicrotask"),
        ("const s = new WeakSet();", "weakset"),
        ("const m = new Map();", "map"),
        ("const s = new Set();", "set"),
        ("const y = new Symbol();", "symbol"),
        ("const p = new Proxy(target, handler);", "proxy"),
        ("const p = new Promise(run);", "promises"),
        ("const r = new WeakRef(target);", "weakref"),
        ("const r = new FinalizationRegistry(cleanup);", "finalizationregistry"),
        ("call(...args);", "spread-operator"),
        ("const copy = [...items];", "spread-operator"),
    ],
)
def test_js_rule_table(mapper: FeatureMapper, source: str, feature: str) -> None:
    features, _ = _detect(mapper, source, "app.js")

    assert feature in _names(features)


@pytest.mark.parametrize(
    ("source", "feature"),
    [
        ('<div contenteditable="true"></div>', "contenteditable"),
        ('<textarea spellcheck="false"></textarea>', "spellcheck"),
        ('<li draggable="true"></li>', "drag-and-drop"),
        ('<img src="a.png" decoding="async">', "img-decoding"),
        ('<a href="/" referrerpolicy="no-referrer"></a>', "referrer-policy"),
        ('<img src="a.png" crossorigin="anonymous">', "cors"),
        ('<script src="a.js" integrity="sha384-abc"></script>', "subresource-integrity"),
        ('<input type="date">', "input-date"),
        ('<input type="color">', "input-color"),
        ('<input minlength="3">', "form-validation"),
        ("<details><summary>More</summary></details>", "details"),
        ("<progress></progress>", "progress"),
        ("<math></math>", "mathml"),
    ],
)
def test_html_rule_table(mapper: FeatureMapper, source: str, feature: str) -> None:
    features, _ = _detect(mapper, source, "index.html")

    assert feature in _names(features)


def test_selector_context_collapses_whitespace(mapper: FeatureMapper) -> None:
    features, _ = _detect(mapper, "a,\n    b:has(img) {\n  color: red;\n}\n", "style.css")

    has = [feature for feature in features if feature.name == "css-has"]

    assert has
    assert "\n" not in has[0].context
    assert has[0].context == "CSS selector: a, b:has(img)"
