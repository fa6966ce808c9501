"""Configuration file discovery, validation, presets and dotted-key editing."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import copy
from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
import re
from typing import Any, Final, Literal, get_args

from .constants import CONFIG_FILE_NAMES
from .exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

RuleLevel = Literal["error", "warn", "off"]
TargetBaseline = Literal["high", "low"]
OutputFormat = Literal["console", "json", "html", "text"]
PresetName = Literal["strict", "balanced", "legacy"]

RULE_LEVELS: Final[tuple[str, ...]] = get_args(RuleLevel)
TARGET_BASELINES: Final[tuple[str, ...]] = get_args(TargetBaseline)
OUTPUT_FORMATS: Final[tuple[str, ...]] = get_args(OutputFormat)
PRESET_NAMES: Final[tuple[str, ...]] = get_args(PresetName)

DEFAULT_IGNORE: Final[tuple[str, ...]] = (
    "node_modules/**",
    "dist/**",
    "build/**",
    ".git/**",
    "*.min.js",
    "*.min.css",
)
DEFAULT_INCLUDE: Final[tuple[str, ...]] = (
    "**/*.html",
    "**/*.css",
    "**/*.js",
    "**/*.ts",
    "**/*.jsx",
    "**/*.tsx",
)
PRESET_INCLUDE: Final[tuple[str, ...]] = (
    "src/**",
    "lib/**",
    "app/**",
    "components/**",
    "styles/**",
    "*.html",
    "*.css",
    "*.js",
    "*.ts",
)

_TOP_LEVEL_KEYS: Final[frozenset[str]] = frozenset(
    {"strict", "targets", "rules", "ignore", "include", "autofix", "outputFormat"}
)
_TARGET_KEYS: Final[frozenset[str]] = frozenset({"baseline", "browsers"})
_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d*\.\d+$")


@dataclass(frozen=True)
class Targets:
    baseline: TargetBaseline = "high"
    browsers: tuple[str, ...] | None = None


@dataclass(frozen=True)
class BaselineConfig:
    strict: bool = False
    targets: Targets = field(default_factory=Targets)
    rules: Mapping[str, RuleLevel] = field(default_factory=dict)
    ignore: tuple[str, ...] = DEFAULT_IGNORE
    include: tuple[str, ...] = DEFAULT_INCLUDE
    # Persisted for compatibility; nothing in this tool rewrites source files.
    autofix: bool = False
    output_format: OutputFormat = "console"

    def rule_for(self, feature_id: str) -> RuleLevel | None:
        return self.rules.get(feature_id)

    def to_dict(self) -> dict[str, Any]:
        targets: dict[str, Any] = {"baseline": self.targets.baseline}
        if self.targets.browsers is not None:
            targets["browsers"] = list(self.targets.browsers)
        return {
            "strict": self.strict,
            "targets": targets,
            "rules": dict(self.rules),
            "ignore": list(self.ignore),
            "include": list(self.include),
            "autofix": self.autofix,
            "outputFormat": self.output_format,
        }


@dataclass(frozen=True)
class LoadedConfig:
    """A configuration plus where it came from and any load problem."""

    config: BaselineConfig
    path: Path | None = None
    error: str | None = None


def _expect(condition: bool, message: str, path: str | None, key: str) -> None:
    if not condition:
        raise ConfigurationError(message, config_path=path, config_key=key)


def _string_list(value: Any, path: str | None, key: str) -> tuple[str, ...]:
    _expect(
        isinstance(value, list) and all(isinstance(item, str) for item in value),
        "Expected a list of strings",
        path,
        key,
    )
    return tuple(value)


def config_from_dict(data: Any, *, path: str | None = None) -> BaselineConfig:
    """Validate a decoded config document; missing keys take defaults."""
    _expect(isinstance(data, dict), "Configuration must be a JSON object", path, "<root>")
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    _expect(not unknown, "Unknown configuration key", path, ", ".join(unknown))

    defaults = BaselineConfig()
    strict = data.get("strict", defaults.strict)
    _expect(isinstance(strict, bool), "Expected true or false", path, "strict")
    autofix = data.get("autofix", defaults.autofix)
    _expect(isinstance(autofix, bool), "Expected true or false", path, "autofix")

    output_format = data.get("outputFormat", defaults.output_format)
    _expect(
        output_format in OUTPUT_FORMATS,
        f"Expected one of {', '.join(OUTPUT_FORMATS)}",
        path,
        "outputFormat",
    )

    raw_targets = data.get("targets", {})
    _expect(isinstance(raw_targets, dict), "Expected an object", path, "targets")
    unknown = sorted(set(raw_targets) - _TARGET_KEYS)
    _expect(not unknown, "Unknown configuration key", path, ", ".join(f"targets.{k}" for k in unknown))
    baseline = raw_targets.get("baseline", defaults.targets.baseline)
    _expect(baseline in TARGET_BASELINES, "Expected high or low", path, "targets.baseline")
    browsers = raw_targets.get("browsers")
    targets = Targets(
        baseline=baseline,
        browsers=_string_list(browsers, path, "targets.browsers") if browsers is not None else None,
    )

    raw_rules = data.get("rules", {})
    _expect(isinstance(raw_rules, dict), "Expected an object", path, "rules")
    for feature_id, level in raw_rules.items():
        _expect(
            level in RULE_LEVELS,
            f"Expected one of {', '.join(RULE_LEVELS)}",
            path,
            f"rules.{feature_id}",
        )

    return BaselineConfig(
        strict=strict,
        targets=targets,
        rules=dict(raw_rules),
        ignore=_string_list(data.get("ignore", list(defaults.ignore)), path, "ignore"),
        include=_string_list(data.get("include", list(defaults.include)), path, "include"),
        autofix=autofix,
        output_format=output_format,
    )


def read_config_file(path: Path) -> BaselineConfig:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration ({exc})", config_path=str(path)) from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Invalid JSON at line {exc.lineno}, column {exc.colno}", config_path=str(path)
        ) from exc
    return config_from_dict(data, path=str(path))


def config_candidates(explicit: str | os.PathLike[str] | None = None, cwd: Path | None = None) -> list[Path]:
    root = cwd or Path.cwd()
    candidates = [Path(explicit)] if explicit else []
    candidates.extend(root / name for name in CONFIG_FILE_NAMES)
    return candidates


def load_config(explicit: str | os.PathLike[str] | None = None, cwd: Path | None = None) -> LoadedConfig:
    """Load the first config file that exists.

    A missing explicit file or one that fails validation is reported and the
    default configuration is used instead; loading never aborts a run.
    """
    if explicit and not Path(explicit).is_file():
        missing = ConfigurationError("Configuration file not found", config_path=str(explicit))
        LOGGER.warning("Ignoring configuration file %s: %s", explicit, missing)
        return LoadedConfig(BaselineConfig(), Path(explicit), str(missing))
    for candidate in config_candidates(explicit, cwd):
        if not candidate.is_file():
            continue
        try:
            config = read_config_file(candidate)
        except ConfigurationError as exc:
            LOGGER.warning("Ignoring configuration file %s: %s", candidate, exc)
            return LoadedConfig(BaselineConfig(), candidate, str(exc))
        LOGGER.debug("Loaded configuration from %s", candidate)
        return LoadedConfig(config, candidate)
    return LoadedConfig(BaselineConfig())


def preset_config(preset: PresetName = "balanced") -> BaselineConfig:
    if preset == "strict":
        return BaselineConfig(
            strict=True,
            targets=Targets("high"),
            rules={
                "css-grid": "error",
                "flexbox": "error",
                "async-functions": "error",
                "fetch": "error",
                "custom-elements": "error",
                "shadow-dom": "error",
            },
            include=PRESET_INCLUDE,
            autofix=True,
        )
    if preset == "legacy":
        return BaselineConfig(
            targets=Targets("low"),
            rules={
                "css-grid": "warn",
                "flexbox": "warn",
                "async-functions": "warn",
                "fetch": "warn",
                "custom-elements": "warn",
                "shadow-dom": "off",
            },
            include=PRESET_INCLUDE,
        )
    if preset == "balanced":
        return BaselineConfig(
            rules={
                "css-grid": "warn",
                "flexbox": "off",
                "async-functions": "off",
                "fetch": "off",
                "custom-elements": "warn",
                "shadow-dom": "warn",
            },
            include=PRESET_INCLUDE,
        )
    raise ConfigurationError(f"Unknown preset {preset!r}", config_key="preset")


def save_config(config: BaselineConfig, path: Path) -> None:
    path.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")


def coerce_value(raw: str) -> Any:
    """``true``/``false`` to bool, numeric strings to numbers, else unchanged."""
    if raw == "true":
        return True
    if raw == "false":
        return False
    if _INT_RE.match(raw):
        return int(raw)
    if _FLOAT_RE.match(raw):
        return float(raw)
    return raw


def _split_key(key: str) -> list[str]:
    parts = key.split(".")
    if not all(parts):
        raise ConfigurationError("Invalid dotted key", config_key=key)
    return parts


def get_value(config: BaselineConfig, key: str) -> Any:
    current: Any = config.to_dict()
    for part in _split_key(key):
        if not isinstance(current, dict) or part not in current:
            raise ConfigurationError("Key not found in configuration", config_key=key)
        current = current[part]
    return current


def set_value(config: BaselineConfig, key: str, raw: str) -> BaselineConfig:
    """Return a new configuration with ``key`` set, re-validated."""
    data = copy.deepcopy(config.to_dict())
    parts = _split_key(key)
    current = data
    for part in parts[:-1]:
        child = current.setdefault(part, {})
        if not isinstance(child, dict):
            raise ConfigurationError("Cannot set a key below a non-object value", config_key=key)
        current = child
    current[parts[-1]] = coerce_value(raw)
    return config_from_dict(data)


def rules_summary(rules: Mapping[str, RuleLevel]) -> Sequence[tuple[str, RuleLevel]]:
    return sorted(rules.items())
