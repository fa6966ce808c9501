"""Console, JSON, text and HTML renderers for scan reports."""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path
from typing import Final

from jinja2 import Environment, FileSystemLoader, select_autoescape
from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .constants import REPORT_FILE_NAMES, SEVERITY_ICON_MAP, SEVERITY_STYLE_MAP
from .model import FeatureResult, FileResult, ScanReport

TEMPLATES_DIR: Final[Path] = Path(__file__).resolve().parent / "templates"
RULE_WIDTH: Final[int] = 70

_SECTIONS: Final[tuple[tuple[str, str, str], ...]] = (
    # severity, console title, text title
    ("error", "Errors", "ERRORS"),
    ("warn", "Warnings", "WARNINGS"),
    ("info", "Info", "INFO"),
)


def overall_status(report: ScanReport) -> str:
    """Heading for a report; agrees with the exit code."""
    if report.exit_code:
        return "Failed"
    if report.summary.total_warnings > 0:
        return "Warning"
    return "Passed"


def by_severity(result: FileResult, severity: str) -> list[FeatureResult]:
    return [feature for feature in result.features if feature.severity == severity]


def files_to_show(report: ScanReport) -> list[FileResult]:
    return [result for result in report.results if result.features or result.error]


def _line_label(feature: FeatureResult) -> str:
    return str(feature.line) if feature.line else "N/A"


def _error_line(result: FileResult) -> str:
    error = result.error or {}
    return f"[{error.get('code', 'ERROR')}] {error.get('message', '')}"


def render_summary(report: ScanReport) -> Panel:
    summary = report.summary
    status = overall_status(report)
    style = {"Failed": "red", "Warning": "yellow", "Passed": "green"}[status]
    lines = [
        Text.assemble(("Status: ", "bold"), (status, f"bold {style}")),
        Text.assemble(("Files checked: ", "blue"), str(summary.total_files)),
        Text.assemble(("Errors: ", "red"), str(summary.total_errors)),
        Text.assemble(("Warnings: ", "yellow"), str(summary.total_warnings)),
        Text.assemble(("Passed: ", "green"), str(summary.passed_files)),
    ]
    if summary.failed_files:
        lines.append(Text.assemble(("Failed: ", "red"), str(summary.failed_files)))
    return Panel(Group(*lines), title="Results Summary", border_style="blue")


def render_file(result: FileResult, *, verbose: bool = False) -> Group:
    icon, style = ("✓", "green") if result.passed else ("✗", "red")
    lines: list[Text] = [Text.assemble((f"{icon} ", style), (result.file, "bold"))]
    if result.error:
        lines.append(Text(f"  {_error_line(result)}", style="red"))
    for severity, title, _ in _SECTIONS:
        features = by_severity(result, severity)
        if not features or (severity == "info" and not verbose):
            continue
        lines.append(Text(f"  {title}:", style=SEVERITY_STYLE_MAP[severity]))
        for feature in features:
            lines.append(
                Text(
                    f"    {SEVERITY_ICON_MAP[severity]} {feature.feature} "
                    f"(line {_line_label(feature)}): {feature.message}"
                )
            )
    if verbose:
        for warning in result.parse_warnings:
            lines.append(Text(f"  parse: {warning}", style="dim"))
    lines.append(Text(""))
    return Group(*lines)


def render_console(report: ScanReport, *, verbose: bool = False) -> Group:
    """Rich renderable with per-file details followed by the summary."""
    blocks: list[Group | Panel | Text] = []
    shown = files_to_show(report)
    if shown:
        blocks.append(Text("Detailed Results", style="bold"))
        blocks.append(Text(""))
        blocks.extend(render_file(result, verbose=verbose) for result in shown)
    blocks.append(render_summary(report))
    if report.exit_code:
        blocks.append(Text("✗ Baseline compatibility check failed", style="red"))
    else:
        blocks.append(Text("✓ All files passed baseline compatibility check", style="green"))
    return Group(*blocks)


def render_json(report: ScanReport) -> str:
    payload = {
        "results": [result.to_dict() for result in report.results],
        "summary": report.summary.to_dict(),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_text(report: ScanReport, generated_at: datetime | None = None) -> str:
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    summary = report.summary
    heavy, light = "=" * RULE_WIDTH, "-" * RULE_WIDTH
    lines = [
        heavy,
        "BASELINE COMPATIBILITY REPORT",
        heavy,
        f"Generated: {stamp}",
        "",
        "SUMMARY",
        light,
        f"Status:         {overall_status(report).upper()}",
        f"Files Checked:  {summary.total_files}",
        f"Errors:         {summary.total_errors}",
        f"Warnings:       {summary.total_warnings}",
        f"Passed:         {summary.passed_files}",
        f"Failed:         {summary.failed_files}",
        "",
    ]

    shown = files_to_show(report)
    if shown:
        lines.extend(["DETAILED RESULTS", heavy, ""])
        for result in shown:
            lines.append(f"{'✓' if result.passed else '✗'} {result.file}")
            lines.append(light)
            if result.error:
                lines.append(f"  {_error_line(result)}")
                lines.append("")
            for severity, _, title in _SECTIONS:
                features = by_severity(result, severity)
                if not features:
                    continue
                lines.append(f"  {title} ({len(features)}):")
                for feature in features:
                    lines.append(
                        f"    {SEVERITY_ICON_MAP[severity]} {feature.feature} "
                        f"(Line {_line_label(feature)})"
                    )
                    lines.append(f"      {feature.message}")
                lines.append("")
            lines.append("")
    else:
        lines.extend(["RESULT", heavy, "", "✓ All Clear! No baseline compatibility issues found.", ""])

    lines.extend(
        [heavy, "Generated by pybaseline - Web Platform Baseline Compatibility Checker", heavy]
    )
    return "\n".join(lines)


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_html(report: ScanReport, generated_at: datetime | None = None) -> str:
    template = _environment().get_template("report.html.j2")
    summary = report.summary
    status = overall_status(report)
    return template.render(
        generated_at=(generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S"),
        summary=summary,
        status=status,
        status_color={"Failed": "#dc2626", "Warning": "#f59e0b", "Passed": "#16a34a"}[status],
        files=[
            {
                "result": result,
                "error": _error_line(result) if result.error else None,
                "sections": [
                    (severity, title, by_severity(result, severity))
                    for severity, title, _ in _SECTIONS
                    if by_severity(result, severity)
                ],
            }
            for result in files_to_show(report)
        ],
        icons=SEVERITY_ICON_MAP,
    )


def write_report(
    report: ScanReport,
    output_format: str,
    output: Path | None = None,
    *,
    directory: Path | None = None,
) -> Path:
    """Write a json/html/text report and return where it went."""
    renderers = {"json": render_json, "html": render_html, "text": render_text}
    if output_format not in renderers:
        raise ValueError(f"No file renderer for format {output_format!r}")
    target = output or (directory or Path.cwd()) / REPORT_FILE_NAMES[output_format]
    target.write_text(renderers[output_format](report), encoding="utf-8")
    return target
