from __future__ import annotations

from datetime import datetime
import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from baseline.model import FeatureResult, FileResult, ScanReport, ScanSummary
from baseline.report import overall_status, render_console, render_html, render_json, render_text, write_report
from baseline.util.text import ellipsize, normalize_whitespace, plural, progress_label

_STAMP = datetime(2024, 5, 1, 12, 30, 0)


def _report() -> ScanReport:
    failing = FileResult(
        file="src/<app>.js",
        features=[
            FeatureResult(
                feature="view-transitions",
                status=False,
                severity="error",
                message="JS function: document.startViewTransition() - view-transitions is not baseline",
                line=4,
                column=1,
            ),
            FeatureResult(
                feature="css-has",
                status="low",
                severity="warn",
                message="CSS selector: a:has(b) - css-has is newly baseline (since 2023-12-19)",
                line=9,
                column=3,
            ),
        ],
        errors=1,
        warnings=1,
        passed=False,
        parse_warnings=["Syntax error at line 2, column 5"],
    )
    clean = FileResult(file="clean.css", features=[], errors=0, warnings=0, passed=True)
    summary = ScanSummary(
        total_files=2, total_errors=1, total_warnings=1, passed_files=1, failed_files=1
    )
    return ScanReport(results=[failing, clean], summary=summary)


def _empty_report() -> ScanReport:
    clean = FileResult(file="clean.css", features=[], errors=0, warnings=0, passed=True)
    return ScanReport(results=[clean], summary=ScanSummary(1, 0, 0, 1, 0))


def test_overall_status() -> None:
    clean = FileResult(file="a.css", features=[], errors=0, warnings=0, passed=True)
    warned = FileResult(file="a.css", features=[], errors=0, warnings=2, passed=True)

    assert overall_status(ScanReport([clean], ScanSummary(1, 1, 0, 0, 1))) == "Failed"
    assert overall_status(ScanReport([warned], ScanSummary(1, 0, 2, 1, 0))) == "Warning"
    assert overall_status(ScanReport([clean], ScanSummary(1, 0, 0, 1, 0))) == "Passed"


def test_overall_status_follows_exit_code() -> None:
    warned = FileResult(file="a.css", features=[], errors=0, warnings=2, passed=False)
    missing = FileResult(
        file="gone.css",
        features=[],
        errors=0,
        warnings=0,
        passed=False,
        error={"code": "FILE_SYSTEM_ERROR", "message": "Cannot read gone.css"},
    )
    strict = ScanReport([warned], ScanSummary(1, 0, 2, 0, 1), strict=True)
    unreadable = ScanReport([missing], ScanSummary(1, 0, 0, 0, 1))

    assert strict.exit_code == 1
    assert overall_status(strict) == "Failed"
    assert overall_status(unreadable) == "Failed"
    assert "Status:         FAILED" in render_text(unreadable, generated_at=_STAMP)


def test_render_json_shape() -> None:
    payload = json.loads(render_json(_report()))

    assert payload["summary"] == {
        "totalFiles": 2,
        "totalErrors": 1,
        "totalWarnings": 1,
        "passedFiles": 1,
        "failedFiles": 1,
    }
    first = payload["results"][0]
    assert first["file"] == "src/<app>.js"
    assert first["parseWarnings"] == ["Syntax error at line 2, column 5"]
    assert first["features"][0]["status"] is False
    assert first["features"][1]["status"] == "low"
    assert first["error"] is None


def test_render_text_sections() -> None:
    text = render_text(_report(), generated_at=_STAMP)

    assert "BASELINE COMPATIBILITY REPORT" in text
    assert "Generated: 2024-05-01 12:30:00" in text
    assert "Status:         FAILED" in text
    assert "ERRORS (1):" in text
    assert "WARNINGS (1):" in text
    assert "(Line 4)" in text
    assert "clean.css" not in text


def test_render_text_all_clear() -> None:
    text = render_text(_empty_report(), generated_at=_STAMP)

    assert "Status:         PASSED" in text
    assert "All Clear!" in text


def test_render_html_escapes_names() -> None:
    html = render_html(_report(), generated_at=_STAMP)

    assert "src/&lt;app&gt;.js" in html
    assert "src/<app>.js" not in html
    assert "Generated on 2024-05-01 12:30:00" in html
    assert "view-transitions" in html
    assert "Errors (1)" in html


def test_render_html_all_clear() -> None:
    assert "No baseline compatibility issues found." in render_html(_empty_report())


def test_render_console_output() -> None:
    console = Console(file=io.StringIO(), record=True, width=120)

    console.print(render_console(_report(), verbose=True))
    output = console.export_text()

    assert "Detailed Results" in output
    assert "src/<app>.js" in output
    assert "view-transitions (line 4)" in output
    assert "parse: Syntax error at line 2, column 5" in output
    assert "Results Summary" in output
    assert "Baseline compatibility check failed" in output


def test_render_console_hides_info_unless_verbose() -> None:
    info = FileResult(
        file="grid.css",
        features=[
            FeatureResult(
                feature="css-grid",
                status="high",
                severity="info",
                message="CSS property: display: grid - css-grid is fully baseline",
                line=1,
                column=5,
            )
        ],
        errors=0,
        warnings=0,
        passed=True,
    )
    report = ScanReport(results=[info], summary=ScanSummary(1, 0, 0, 1, 0))
    quiet = Console(file=io.StringIO(), record=True, width=120)
    loud = Console(file=io.StringIO(), record=True, width=120)

    quiet.print(render_console(report))
    loud.print(render_console(report, verbose=True))

    quiet_text = quiet.export_text()

    assert "css-grid (line 1)" not in quiet_text
    assert "css-grid (line 1)" in loud.export_text()
    assert "All files passed" in quiet_text


def test_write_report_default_names(tmp_path: Path) -> None:
    report = _report()

    json_path = write_report(report, "json", directory=tmp_path)
    text_path = write_report(report, "text", directory=tmp_path)
    html_path = write_report(report, "html", tmp_path / "custom.html")

    assert json_path == tmp_path / "baseline-report.json"
    assert text_path == tmp_path / "baseline-report.txt"
    assert html_path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")


def test_write_report_rejects_console(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        write_report(_report(), "console", directory=tmp_path)


def test_text_helpers() -> None:
    assert ellipsize("abcdef", 4) == "abc…"
    assert ellipsize("abc", 4) == "abc"
    assert ellipsize("abc", 0) == ""
    assert progress_label(3, 12) == "[ 3/12]"
    assert plural(1, "file") == "1 file"
    assert plural(2, "file") == "2 files"
    assert normalize_whitespace("  a \n\t b  ") == "a b"
