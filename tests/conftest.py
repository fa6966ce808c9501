from __future__ import annotations

import asyncio
from typing import Any

import pytest

from baseline.dataset import FeatureIndex, build_index
from baseline.mapper import FeatureMapper


def _feature(name: str, baseline: object, *keys: str, low: str | None = None, high: str | None = None) -> dict[str, Any]:
    status: dict[str, Any] = {"baseline": baseline}
    if low:
        status["baseline_low_date"] = low
    if high:
        status["baseline_high_date"] = high
    return {"kind": "feature", "name": name, "compat_features": list(keys), "status": status}


@pytest.fixture
def dataset_payload() -> dict[str, Any]:
    return {
        "features": {
            "css-grid": _feature(
                "Grid",
                "high",
                "css.properties.display.grid",
                "css.properties.grid-template-columns",
                low="2017-10-17",
                high="2020-04-17",
            ),
            "flexbox": _feature("Flexbox", "high", "css.properties.display.flex", "css.properties.flex"),
            "backdrop-filter": _feature(
                "Backdrop filter", "low", "css.properties.backdrop-filter", low="2024-09-16"
            ),
            "css-filters": _feature(
                "Filter effects", "high", "css.properties.filter", "css.types.filter-function.blur"
            ),
            "css-has": _feature(":has()", "low", "css.selectors.has", low="2023-12-19"),
            "css-container-queries": _feature(
                "Container queries", "low", "css.at-rules.container", low="2023-02-14"
            ),
            "destructuring-assignment": _feature(
                "Destructuring", "high", "javascript.operators.destructuring"
            ),
            "async-functions": _feature(
                "Async functions", "high", "javascript.statements.async_function"
            ),
            "async-await": _feature("await", "high", "javascript.operators.await"),
            "fetch": _feature("Fetch", "high", "api.fetch", "api.Request"),
            "abortcontroller": _feature(
                "AbortController", "high", "api.AbortController", "api.AbortSignal.timeout"
            ),
            "intersectionobserver": _feature(
                "Intersection observer",
                "high",
                "api.IntersectionObserver",
                "api.IntersectionObserver.observe",
            ),
            "resizeobserver": _feature(
                "Resize observer", "high", "api.ResizeObserver", "api.ResizeObserver.observe"
            ),
            "view-transitions": _feature(
                "View transitions", False, "api.Document.startViewTransition"
            ),
            "dialog": _feature("<dialog>", "high", "html.elements.dialog"),
            "custom-elements": _feature(
                "Custom elements", "high", "api.CustomElementRegistry.define"
            ),
            "aria": _feature("ARIA", "low"),
            "popover": _feature("Popover", "low", "html.global_attributes.popover"),
            "old-feature": {"kind": "moved", "redirect_target": "fetch"},
            "no-status": {"kind": "feature", "name": "No status", "compat_features": ["api.Nothing"]},
        }
    }


@pytest.fixture
def feature_index(dataset_payload: dict[str, Any]) -> FeatureIndex:
    return build_index(dataset_payload)


@pytest.fixture
def mapper(feature_index: FeatureIndex) -> FeatureMapper:
    feature_mapper = FeatureMapper(feature_index)
    asyncio.run(feature_mapper.initialize())
    return feature_mapper
