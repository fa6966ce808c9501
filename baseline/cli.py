"""Console script for pybaseline."""

from __future__ import annotations

import asyncio
from dataclasses import replace
import json
import logging
import os
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from . import __version__ as _version
from .classify import status_key
from .config import (
    OUTPUT_FORMATS,
    PRESET_NAMES,
    BaselineConfig,
    config_candidates,
    get_value,
    load_config,
    preset_config,
    read_config_file,
    rules_summary,
    save_config,
    set_value,
)
from .constants import (
    CONFIG_FILE_NAMES,
    DEBUG_ENV_VAR,
    DEFAULT_TIMEOUT_SECONDS,
    STATUS_LABEL_MAP,
    WEB_FEATURES_DATA_URL,
)
from .dataset import FeatureIndex, load_index
from .exceptions import BaselineError, format_error
from .http import download_dataset
from .mapper import FeatureMapper, MapperProvider
from .report import render_console, write_report
from .scanner import Scanner, discover_files
from .util.text import ellipsize, plural, progress_label

LOGGER = logging.getLogger(__name__)

_STATS_GROUP_LIMIT = 20


def _configure_logging(verbose: bool) -> None:
    debug = verbose or os.environ.get(DEBUG_ENV_VAR, "").strip() == "1"
    package_logger = logging.getLogger("baseline")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def _load_index(dataset: str | None) -> FeatureIndex:
    try:
        return load_index(dataset)
    except BaselineError as exc:
        raise click.ClickException(format_error(exc)) from exc


def _existing_config_path() -> Path | None:
    for candidate in config_candidates():
        if candidate.is_file():
            return candidate
    return None


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(_version, "-v", "--version")
def main() -> None:
    """
    Check web code against the Baseline web platform status

    \b
    Example usages:
      baseline check src/
      baseline check --format json --output report.json
      baseline lookup container
    """


@main.command()
@click.argument("path", required=False, default=".", type=click.Path(path_type=Path))
@click.option("--strict", is_flag=True, help="Fail on warnings as well as errors.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default=None,
    help="Report format (defaults to the configured outputFormat).",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Report file for json, html and text formats.",
)
@click.option("--quiet", is_flag=True, help="Suppress progress output.")
@click.option("--verbose", is_flag=True, help="Show info-level results and debug logging.")
@click.option("--config", "config_path", default=None, help="Configuration file to use.")
@click.option("--dataset", default=None, help="web-features data.json snapshot to use.")
@click.pass_context
def check(
    ctx: click.Context,
    path: Path,
    strict: bool,
    output_format: str | None,
    output: Path | None,
    quiet: bool,
    verbose: bool,
    config_path: str | None,
    dataset: str | None,
) -> None:
    """Check files under PATH for Baseline compatibility."""
    _configure_logging(verbose)
    console = Console()

    loaded = load_config(config_path)
    if loaded.error and not quiet:
        console.print(f"⚠ Using default configuration: {loaded.error}", style="yellow")
    settings = loaded.config
    if strict:
        settings = replace(settings, strict=True)
    output_format = output_format or settings.output_format
    LOGGER.debug("Checking %s with %s configuration", path, loaded.path or "default")

    try:
        files = discover_files(path)
    except BaselineError as exc:
        raise click.ClickException(format_error(exc)) from exc
    if not files:
        console.print("No files found to check", style="yellow")
        return

    if not quiet:
        console.print(f"Checking {plural(len(files), 'file')}...", style="bold")

    def _progress(position: int, total: int, name: str) -> None:
        console.print(
            Text.assemble((f"{progress_label(position, total)} ", "dim"), ellipsize(name, 100))
        )

    scanner = Scanner(MapperProvider.for_dataset(dataset), settings)
    try:
        report = asyncio.run(scanner.scan(files, None if quiet else _progress))
    except BaselineError as exc:
        raise click.ClickException(format_error(exc)) from exc

    if output_format == "console":
        console.print(render_console(report, verbose=verbose))
    else:
        target = write_report(report, output_format, output)
        if not quiet:
            console.print(f"✓ Report written to {target}", style="green")
    ctx.exit(report.exit_code)


@main.command()
@click.option(
    "--preset",
    type=click.Choice(PRESET_NAMES),
    default="balanced",
    show_default=True,
    help="Starting configuration.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file.")
def init(preset: str, force: bool) -> None:
    """Create a configuration file in the current directory."""
    console = Console()
    target = Path.cwd() / CONFIG_FILE_NAMES[0]
    if target.exists() and not force:
        console.print(f"⚠ Configuration file already exists at {target.name}", style="yellow")
        console.print('Use --force to overwrite or run "baseline config" to modify')
        raise SystemExit(1)

    settings = preset_config(preset)  # type: ignore[arg-type]
    save_config(settings, target)
    console.print(f"✓ Configuration file created: {target.name}", style="green")
    console.print(Text.assemble(("Preset: ", "blue"), preset))
    console.print(
        Text.assemble(("Strict mode: ", "blue"), "enabled" if settings.strict else "disabled")
    )
    console.print(Text.assemble(("Target baseline: ", "blue"), settings.targets.baseline))


def _show_config(console: Console, settings: BaselineConfig, path: Path) -> None:
    console.print(f"Baseline configuration ({path})", style="bold")
    console.print(
        Text.assemble(("Strict mode: ", "blue"), "enabled" if settings.strict else "disabled")
    )
    console.print(Text.assemble(("Target baseline: ", "blue"), settings.targets.baseline))
    console.print(
        Text.assemble(("Auto-fix: ", "blue"), "enabled" if settings.autofix else "disabled")
    )
    console.print(Text.assemble(("Output format: ", "blue"), settings.output_format))
    console.print("Include patterns:", style="bold")
    for pattern in settings.include:
        console.print(Text.assemble(("  + ", "green"), pattern))
    console.print("Ignore patterns:", style="bold")
    for pattern in settings.ignore:
        console.print(Text.assemble(("  - ", "red"), pattern))
    console.print("Rules:", style="bold")
    rules = rules_summary(settings.rules)
    if not rules:
        console.print("  No custom rules defined", style="dim")
    for feature_id, level in rules:
        style = {"error": "red", "warn": "yellow"}.get(level, "dim")
        console.print(Text.assemble(f"  {feature_id}: ", (level, style)))


@main.command("config")
@click.option("--get", "get_key", default=None, metavar="KEY", help="Print one dotted key.")
@click.option(
    "--set",
    "set_pair",
    nargs=2,
    default=None,
    metavar="KEY VALUE",
    help="Set one dotted key and save.",
)
def config_command(get_key: str | None, set_pair: tuple[str, str] | None) -> None:
    """View or edit the configuration file."""
    console = Console()
    if get_key and set_pair:
        raise click.UsageError("--get and --set cannot be combined")
    path = _existing_config_path()
    if path is None:
        console.print("⚠ No configuration file found", style="yellow")
        console.print('Run "baseline init" to create one.')
        raise SystemExit(1)

    try:
        settings = read_config_file(path)
        if get_key:
            console.print(
                Text.assemble((f"{get_key}: ", "cyan"), json.dumps(get_value(settings, get_key), indent=2))
            )
            return
        if set_pair:
            key, raw = set_pair
            updated = set_value(settings, key, raw)
            save_config(updated, path)
            console.print(f"✓ Updated {key} to {get_value(updated, key)}", style="green")
            return
    except BaselineError as exc:
        raise click.ClickException(format_error(exc)) from exc
    _show_config(console, settings, path)


@main.command()
@click.argument("term")
@click.option("--dataset", default=None, help="web-features data.json snapshot to use.")
def lookup(term: str, dataset: str | None) -> None:
    """List dataset compat keys containing TERM."""
    console = Console()
    matches = _load_index(dataset).search(term)
    if not matches:
        console.print(f"No matches found for {term!r}", style="yellow")
        raise SystemExit(1)
    console.print(f"{plural(len(matches), 'match')} for {term!r}", style="bold")
    for key, record in matches:
        label = STATUS_LABEL_MAP[status_key(record.baseline_status)]
        console.print(
            Text.assemble(
                (key, "cyan"), "  ", (record.feature_id, "bold"), f"  {record.name}  ({label})"
            )
        )


@main.command()
@click.option("--dataset", default=None, help="web-features data.json snapshot to use.")
def stats(dataset: str | None) -> None:
    """Show dataset key groups and mapper table sizes."""
    console = Console()
    index = _load_index(dataset)
    mapper = FeatureMapper(index)
    asyncio.run(mapper.initialize())

    console.print(
        f"Dataset: {plural(len(index.feature_ids()), 'feature')}, {plural(len(index), 'key')}",
        style="bold",
    )
    groups = sorted(index.prefix_groups().items(), key=lambda item: (-len(item[1]), item[0]))
    console.print("Key groups:", style="bold")
    for prefix, keys in groups[:_STATS_GROUP_LIMIT]:
        console.print(Text.assemble(("  ", ""), (prefix, "cyan"), f": {len(keys)}"))
    if len(groups) > _STATS_GROUP_LIMIT:
        console.print(f"  ... {len(groups) - _STATS_GROUP_LIMIT} more", style="dim")
    console.print("Mapper tables:", style="bold")
    for name, value in mapper.stats().items():
        console.print(Text.assemble(("  ", ""), (name, "cyan"), f": {value}"))


@main.command("update-data")
@click.option("--url", default=WEB_FEATURES_DATA_URL, show_default=True, help="Dataset URL.")
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT_SECONDS,
    show_default=True,
    help="Request timeout in seconds.",
)
def update_data(url: str, timeout: float) -> None:
    """Download the latest web-features dataset into the local cache."""
    console = Console()
    try:
        target = download_dataset(url, timeout=timeout)
    except BaselineError as exc:
        raise click.ClickException(format_error(exc)) from exc
    console.print(f"✓ Dataset saved to {target}", style="green")
