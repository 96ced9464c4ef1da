"""Probe implementations: measure a signal, then hand the count to the engine."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import psutil

from ..errors import ResourceError
from ..scanner import IncrementalScanner, LineFilter
from .engine import VerdictEngine, plural
from .models import (
    CpuCheckOptions,
    DirectoryCheckOptions,
    DiskCheckOptions,
    FileCheckOptions,
    Verdict,
)

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# File content
# ---------------------------------------------------------------------------


def run_file_check(options: FileCheckOptions) -> Verdict:
    """Count lines matching the filter, resuming from the statefile if any."""
    scanner = IncrementalScanner(
        options.filename,
        options.line_filter,
        statefile=options.statefile,
    )
    result = scanner.scan()
    LOGGER.debug(
        "Scan of %s matched %s line(s) between offsets %s and %s.",
        options.filename,
        result.count,
        result.start_offset,
        result.final_offset,
    )
    engine = VerdictEngine(
        options.label,
        describe=plural("matching line"),
        empty_message="No matching lines found",
    )
    verdict = engine.evaluate(result.count, options.warning, options.critical)
    return _with_details(verdict, result.lines)


# ---------------------------------------------------------------------------
# Directory contents
# ---------------------------------------------------------------------------


def collect_directory_entries(
    directory: Path,
    line_filter: LineFilter,
    *,
    recursive: bool = False,
) -> list[Path]:
    """Return regular files under *directory* whose names pass *line_filter*."""
    if not directory.is_dir():
        raise ResourceError(f"Directory {directory} does not exist or is not a directory.")
    candidates = directory.rglob("*") if recursive else directory.iterdir()
    try:
        entries = [
            path
            for path in candidates
            if path.is_file() and line_filter.matches(path.name)
        ]
    except OSError as exc:
        raise ResourceError(f"Unable to list {directory}: {exc}") from exc
    return sorted(entries)


def run_directory_check(options: DirectoryCheckOptions) -> Verdict:
    """Count matching files in a directory."""
    entries = collect_directory_entries(
        options.directory,
        options.line_filter,
        recursive=options.recursive,
    )
    engine = VerdictEngine(
        options.label,
        describe=plural("matching file"),
        empty_message="No matching files found",
    )
    verdict = engine.evaluate(len(entries), options.warning, options.critical)
    return _with_details(
        verdict,
        [str(entry.relative_to(options.directory)) for entry in entries],
    )


# ---------------------------------------------------------------------------
# Disk usage
# ---------------------------------------------------------------------------


def run_disk_check(options: DiskCheckOptions) -> Verdict:
    """Evaluate the used-space percentage of the filesystem holding a path."""
    path = options.path
    try:
        usage = shutil.disk_usage(path)
    except OSError as exc:
        raise ResourceError(f"Unable to determine disk usage for {path}: {exc}") from exc

    total = usage.total or 1
    percent_used = round((usage.used / total) * 100)

    def _describe(count: int) -> str:
        return f"{count}% disk space used on {path}"

    engine = VerdictEngine(
        options.label,
        describe=_describe,
        empty_message=_describe(0),
        uom="%",
    )
    verdict = engine.evaluate(percent_used, options.warning, options.critical)
    return _with_details(
        verdict,
        [f"total={usage.total} used={usage.used} free={usage.free}"],
    )


# ---------------------------------------------------------------------------
# CPU idle
# ---------------------------------------------------------------------------


def run_cpu_check(options: CpuCheckOptions) -> Verdict:
    """Sample CPU times and evaluate the idle percentage."""
    times = psutil.cpu_times_percent(interval=options.interval)
    idle = round(times.idle)

    def _describe(count: int) -> str:
        return f"{count}% CPU idle"

    engine = VerdictEngine(
        options.label,
        describe=_describe,
        empty_message=_describe(0),
        uom="%",
    )
    verdict = engine.evaluate(idle, options.warning, options.critical)
    return _with_details(
        verdict,
        [f"user={times.user} system={times.system} idle={times.idle}"],
    )


def _with_details(verdict: Verdict, details: list[str] | tuple[str, ...]) -> Verdict:
    return Verdict(
        severity=verdict.severity,
        summary=verdict.summary,
        detail_lines=tuple(details),
        perfdata=verdict.perfdata,
    )


__all__ = [
    "collect_directory_entries",
    "run_cpu_check",
    "run_directory_check",
    "run_disk_check",
    "run_file_check",
]
