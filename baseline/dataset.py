"""Feature dataset loading and the compat-key reverse index."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .constants import CACHE_DIR_ENV_VAR, CACHED_DATASET_NAME, DATASET_ENV_VAR, BaselineStatus
from .exceptions import DatasetError
from .model import FeatureRecord

LOGGER = logging.getLogger(__name__)

_SKIPPED_KINDS = frozenset({"moved", "split"})


def bundled_dataset() -> Path:
    """Return the offline snapshot shipped with the package."""
    return Path(__file__).resolve().parent / "data" / CACHED_DATASET_NAME


def cache_path() -> Path:
    """Location of a dataset downloaded by ``baseline update-data``."""
    override = os.environ.get(CACHE_DIR_ENV_VAR, "").strip()
    root = Path(override) if override else Path.home() / ".cache" / "pybaseline"
    return root / CACHED_DATASET_NAME


def resolve_dataset_source(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Pick the dataset file: explicit path, env var, downloaded cache, bundled snapshot."""
    if explicit:
        return Path(explicit)
    from_env = os.environ.get(DATASET_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env)
    cached = cache_path()
    if cached.is_file():
        return cached
    return bundled_dataset()


def read_dataset(source: Path) -> dict[str, Any]:
    """Read and decode a dataset JSON document."""
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatasetError(str(source), cause=exc.__class__.__name__) from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DatasetError(str(source), cause=f"invalid JSON at line {exc.lineno}") from exc
    if not isinstance(payload, dict):
        raise DatasetError(str(source), cause="top-level value is not an object")
    return payload


def iter_feature_entries(payload: Mapping[str, Any]) -> Iterator[tuple[str, Mapping[str, Any]]]:
    """Yield ``(feature_id, entry)`` pairs from either supported dataset shape."""
    features = payload.get("features")
    table = features if isinstance(features, dict) else payload
    for feature_id, entry in table.items():
        if not isinstance(feature_id, str) or not isinstance(entry, dict):
            continue
        if entry.get("kind") in _SKIPPED_KINDS:
            continue
        yield feature_id, entry


def _record_for(feature_id: str, entry: Mapping[str, Any]) -> FeatureRecord | None:
    status = entry.get("status")
    if not isinstance(status, dict) or "baseline" not in status:
        return None
    baseline = status["baseline"]
    if baseline is not False and baseline not in ("high", "low"):
        return None
    name = entry.get("name")
    return FeatureRecord(
        feature_id=feature_id,
        name=name if isinstance(name, str) and name else feature_id,
        baseline_status=baseline,
        baseline_low_date=status.get("baseline_low_date"),
        baseline_high_date=status.get("baseline_high_date"),
    )


class FeatureIndex:
    """Read-only map from compat keys (and feature ids) to feature records.

    Lookups are exact string matches. When two features list the same compat
    key the later entry wins; the dataset does not treat that as an error.
    """

    def __init__(self, records: Mapping[str, FeatureRecord]) -> None:
        self._records: Mapping[str, FeatureRecord] = MappingProxyType(dict(records))
        self._sorted_keys: tuple[str, ...] = tuple(sorted(self._records))

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def get(self, key: str) -> FeatureRecord | None:
        return self._records.get(key)

    def items(self) -> Iterator[tuple[str, FeatureRecord]]:
        return iter(self._records.items())

    def status_of(self, key: str) -> BaselineStatus:
        """Baseline status for a feature id or compat key; unknown keys are ``False``."""
        record = self._records.get(key)
        return record.baseline_status if record is not None else False

    def feature_ids(self) -> set[str]:
        return {record.feature_id for record in self._records.values()}

    def search(self, term: str) -> list[tuple[str, FeatureRecord]]:
        """Case-insensitive substring search over keys, sorted by key."""
        needle = term.lower()
        return [(key, self._records[key]) for key in self._sorted_keys if needle in key.lower()]

    def prefix_groups(self) -> dict[str, list[str]]:
        """Group dotted compat keys by their first two segments."""
        groups: dict[str, list[str]] = {}
        for key in sorted(self._records):
            parts = key.split(".")
            if len(parts) < 2:
                continue
            groups.setdefault(f"{parts[0]}.{parts[1]}", []).append(key)
        return groups


def build_index(payload: Mapping[str, Any]) -> FeatureIndex:
    """Map every feature id and each of its compat keys to the feature's record."""
    records: dict[str, FeatureRecord] = {}
    for feature_id, entry in iter_feature_entries(payload):
        record = _record_for(feature_id, entry)
        if record is None:
            continue
        records[feature_id] = record
        compat_features = entry.get("compat_features")
        if not isinstance(compat_features, list):
            continue
        for compat_key in compat_features:
            if isinstance(compat_key, str) and compat_key:
                records[compat_key] = record
    LOGGER.debug("Indexed %s dataset keys", len(records))
    return FeatureIndex(records)


def load_index(source: str | os.PathLike[str] | None = None) -> FeatureIndex:
    """Resolve, read and index a dataset snapshot."""
    resolved = resolve_dataset_source(source)
    LOGGER.debug("Loading feature dataset from %s", resolved)
    return build_index(read_dataset(resolved))
