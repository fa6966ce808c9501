"""Constants used across pybaseline."""

from __future__ import annotations

from typing import Final, Literal

Language = Literal["css", "js", "html"]
BaselineStatus = Literal["high", "low", False]
Severity = Literal["error", "warn", "info"]
Confidence = Literal["high", "medium", "low"]

MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024

EXTENSION_LANGUAGES: Final[dict[str, Language]] = {
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".less": "css",
    ".js": "js",
    ".mjs": "js",
    ".cjs": "js",
    ".jsx": "js",
    ".ts": "js",
    ".tsx": "js",
    ".html": "html",
    ".htm": "html",
}

EXCLUDED_DIRS: Final[frozenset[str]] = frozenset({"node_modules"})

WEB_FEATURES_DATA_URL: Final[str] = (
    "https://github.com/web-platform-dx/web-features/releases/latest/download/data.json"
)
DATASET_ENV_VAR: Final[str] = "BASELINE_DATASET"
CACHE_DIR_ENV_VAR: Final[str] = "BASELINE_CACHE_DIR"
DEBUG_ENV_VAR: Final[str] = "BASELINE_DEBUG"
CACHED_DATASET_NAME: Final[str] = "web-features.json"

CONFIG_FILE_NAMES: Final[tuple[str, ...]] = (
    ".baseline.config.json",
    "baseline.config.json",
)

REPORT_FILE_NAMES: Final[dict[str, str]] = {
    "json": "baseline-report.json",
    "html": "baseline-report.html",
    "text": "baseline-report.txt",
}

STATUS_LABEL_MAP: Final[dict[str, str]] = {
    "high": "fully baseline",
    "low": "newly baseline",
    "false": "not baseline",
}

SEVERITY_ICON_MAP: Final[dict[str, str]] = {
    "error": "✗",
    "warn": "⚠",
    "info": "ℹ",
}

SEVERITY_STYLE_MAP: Final[dict[str, str]] = {
    "error": "red",
    "warn": "yellow",
    "info": "blue",
}

DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
