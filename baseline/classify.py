"""Turn detected features into severity-tagged results."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Final

from .config import BaselineConfig
from .constants import STATUS_LABEL_MAP, BaselineStatus, Severity
from .dataset import FeatureIndex
from .model import DetectedFeature, FeatureRecord, FeatureResult

SEVERITY_BY_STATUS: Final[dict[str, Severity]] = {
    "false": "error",
    "low": "warn",
    "high": "info",
}


def status_key(status: BaselineStatus) -> str:
    return "false" if status is False else str(status)


def default_severity(status: BaselineStatus) -> Severity:
    return SEVERITY_BY_STATUS[status_key(status)]


def result_message(feature: DetectedFeature, record: FeatureRecord | None) -> str:
    if record is None:
        return f"{feature.context} - {feature.name} is not in the feature dataset"
    message = (
        f"{feature.context} - {feature.name} is "
        f"{STATUS_LABEL_MAP[status_key(record.baseline_status)]}"
    )
    if record.baseline_status == "high" and record.baseline_high_date:
        message += f" (since {record.baseline_high_date})"
    elif record.baseline_status == "low" and record.baseline_low_date:
        message += f" (since {record.baseline_low_date})"
    return message


def to_result(feature: DetectedFeature, index: FeatureIndex) -> FeatureResult:
    record = index.get(feature.name)
    status: BaselineStatus = record.baseline_status if record is not None else False
    return FeatureResult(
        feature=feature.name,
        status=status,
        severity=default_severity(status),
        message=result_message(feature, record),
        line=feature.line,
        column=feature.column,
        known=record is not None,
    )


def apply_rules(results: Iterable[FeatureResult], config: BaselineConfig) -> list[FeatureResult]:
    """Drop ``off`` features and force configured severities."""
    applied: list[FeatureResult] = []
    for result in results:
        rule = config.rule_for(result.feature)
        if rule == "off":
            continue
        applied.append(replace(result, severity=rule) if rule else result)
    return applied


def apply_target_baseline(results: Iterable[FeatureResult], target: str) -> list[FeatureResult]:
    """With a ``low`` target, newly available features are informational."""
    if target != "low":
        return list(results)
    return [
        replace(result, severity="info")
        if result.status == "low" and result.severity == "warn"
        else result
        for result in results
    ]


def classify(
    detected: Sequence[DetectedFeature], index: FeatureIndex, config: BaselineConfig
) -> list[FeatureResult]:
    results = [to_result(feature, index) for feature in detected]
    results = apply_rules(results, config)
    return apply_target_baseline(results, config.targets.baseline)


def count_severities(results: Iterable[FeatureResult]) -> tuple[int, int]:
    errors = warnings = 0
    for result in results:
        if result.severity == "error":
            errors += 1
        elif result.severity == "warn":
            warnings += 1
    return errors, warnings


def file_passed(errors: int, warnings: int, *, strict: bool) -> bool:
    return errors == 0 and (warnings == 0 or not strict)
