"""Data models for the dataset index, detection and scan results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import BaselineStatus, Confidence, Language, Severity


@dataclass(frozen=True)
class FeatureRecord:
    feature_id: str
    name: str
    baseline_status: BaselineStatus
    baseline_low_date: str | None = None
    baseline_high_date: str | None = None


@dataclass(frozen=True)
class DetectedFeature:
    name: str
    type: Language
    line: int
    column: int
    context: str
    confidence: Confidence = "high"


@dataclass(frozen=True)
class FeatureResult:
    feature: str
    status: BaselineStatus
    severity: Severity
    message: str
    line: int | None = None
    column: int | None = None
    fixable: bool = False
    known: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            "status": self.status,
            "severity": self.severity,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "fixable": self.fixable,
            "known": self.known,
        }


@dataclass(frozen=True)
class FileResult:
    file: str
    features: list[FeatureResult]
    errors: int
    warnings: int
    passed: bool
    parse_warnings: list[str] = field(default_factory=list)
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "features": [feature.to_dict() for feature in self.features],
            "errors": self.errors,
            "warnings": self.warnings,
            "passed": self.passed,
            "parseWarnings": list(self.parse_warnings),
            "error": self.error,
        }


@dataclass(frozen=True)
class ScanSummary:
    total_files: int
    total_errors: int
    total_warnings: int
    passed_files: int
    failed_files: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalFiles": self.total_files,
            "totalErrors": self.total_errors,
            "totalWarnings": self.total_warnings,
            "passedFiles": self.passed_files,
            "failedFiles": self.failed_files,
        }


@dataclass(frozen=True)
class ScanReport:
    results: list[FileResult]
    summary: ScanSummary
    strict: bool = False

    @property
    def exit_code(self) -> int:
        if self.summary.total_errors > 0:
            return 1
        if self.strict and self.summary.total_warnings > 0:
            return 1
        if any(result.error is not None for result in self.results):
            return 1
        return 0
