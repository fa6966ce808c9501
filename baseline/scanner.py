"""Scan orchestration: discover, read, parse, walk, classify, summarize."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import logging
import os
from pathlib import Path
import time

from .classify import classify, count_severities, file_passed
from .config import BaselineConfig
from .constants import EXCLUDED_DIRS, EXTENSION_LANGUAGES, MAX_FILE_SIZE
from .exceptions import BaselineError, FileSizeError, FileSystemError
from .mapper import MapperProvider
from .model import FileResult, ScanReport, ScanSummary
from .parsing import parse
from .walkers import detect_features

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def discover_files(target: Path) -> list[Path]:
    """Return scannable files under ``target`` in a stable order.

    Hidden directories and ``node_modules`` are skipped. A file target is
    returned as-is, whatever its extension.
    """
    if target.is_file():
        return [target]
    if not target.is_dir():
        raise FileSystemError(str(target), "access", cause="path does not exist")
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(target):
        dirnames[:] = sorted(
            name for name in dirnames if not name.startswith(".") and name not in EXCLUDED_DIRS
        )
        for name in sorted(filenames):
            if Path(name).suffix.lower() in EXTENSION_LANGUAGES:
                found.append(Path(dirpath) / name)
    return found


def read_source(path: Path, max_size: int = MAX_FILE_SIZE) -> str:
    """Read a source file, rejecting oversized files before reading them."""
    try:
        size = path.stat().st_size
    except FileNotFoundError as exc:
        raise FileSystemError(str(path), "find", cause="no such file") from exc
    except OSError as exc:
        raise FileSystemError(str(path), "stat", cause=exc.strerror) from exc
    if size > max_size:
        raise FileSizeError(str(path), size, max_size)
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FileSystemError(str(path), "read", cause=exc.strerror) from exc


def display_path(path: Path, root: Path | None = None) -> str:
    try:
        return os.path.relpath(path, root or Path.cwd())
    except ValueError:
        return str(path)


def summarize(results: Sequence[FileResult]) -> ScanSummary:
    passed = sum(1 for result in results if result.passed)
    return ScanSummary(
        total_files=len(results),
        total_errors=sum(result.errors for result in results),
        total_warnings=sum(result.warnings for result in results),
        passed_files=passed,
        failed_files=len(results) - passed,
    )


class Scanner:
    """Scans files one at a time against a shared feature mapper."""

    def __init__(
        self,
        provider: MapperProvider,
        config: BaselineConfig,
        *,
        max_file_size: int = MAX_FILE_SIZE,
        root: Path | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.max_file_size = max_file_size
        self.root = root

    async def scan_file(self, path: Path) -> FileResult:
        shown = display_path(path, self.root)
        started = time.perf_counter()
        try:
            mapper = await self.provider.get()
            source_text = await asyncio.to_thread(read_source, path, self.max_file_size)
            parsed = parse(source_text, str(path))
            detected, warnings = detect_features(parsed, mapper)
        except BaselineError as exc:
            if not exc.file_local:
                raise
            LOGGER.warning("Skipping %s: %s", shown, exc)
            return FileResult(file=shown, features=[], errors=0, warnings=0, passed=False, error=exc.to_dict())

        results = classify(detected, mapper.index, self.config)
        errors, warning_count = count_severities(results)
        LOGGER.debug(
            "Scanned %s in %.1fms: %s features, %s parse warnings",
            shown,
            (time.perf_counter() - started) * 1000,
            len(results),
            len(warnings),
        )
        return FileResult(
            file=shown,
            features=results,
            errors=errors,
            warnings=warning_count,
            passed=file_passed(errors, warning_count, strict=self.config.strict),
            parse_warnings=warnings,
        )

    async def scan(
        self, paths: Sequence[Path], progress: ProgressCallback | None = None
    ) -> ScanReport:
        results: list[FileResult] = []
        for position, path in enumerate(paths, start=1):
            if progress is not None:
                progress(position, len(paths), display_path(path, self.root))
            results.append(await self.scan_file(path))
        return ScanReport(results=results, summary=summarize(results), strict=self.config.strict)


async def scan_target(
    target: Path,
    config: BaselineConfig,
    provider: MapperProvider,
    progress: ProgressCallback | None = None,
) -> ScanReport:
    scanner = Scanner(provider, config)
    return await scanner.scan(discover_files(target), progress)
