"""Probe evaluation infrastructure."""

from __future__ import annotations

from .engine import VerdictEngine, plural
from .models import (
    CpuCheckOptions,
    DirectoryCheckOptions,
    DiskCheckOptions,
    FileCheckOptions,
    PerfData,
    Severity,
    Verdict,
)
from .probes import (
    collect_directory_entries,
    run_cpu_check,
    run_directory_check,
    run_disk_check,
    run_file_check,
)

__all__ = [
    "CpuCheckOptions",
    "DirectoryCheckOptions",
    "DiskCheckOptions",
    "FileCheckOptions",
    "PerfData",
    "Severity",
    "Verdict",
    "VerdictEngine",
    "collect_directory_entries",
    "plural",
    "run_cpu_check",
    "run_directory_check",
    "run_disk_check",
    "run_file_check",
]
