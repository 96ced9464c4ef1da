"""Probe tests covering file, directory, disk and CPU measurements."""
from __future__ import annotations

from collections import namedtuple
from pathlib import Path
from types import SimpleNamespace

import pytest

from healthprobes.checks import probes
from healthprobes.checks.models import (
    CpuCheckOptions,
    DirectoryCheckOptions,
    DiskCheckOptions,
    FileCheckOptions,
    Severity,
)
from healthprobes.errors import ResourceError
from healthprobes.scanner import LineFilter
from healthprobes.thresholds import RangeThreshold

DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])


def test_file_check_counts_matching_lines(tmp_path: Path) -> None:
    """Matched lines become the count and the verbose details."""
    target = tmp_path / "app.log"
    target.write_text("START\nRUNNING\nSTOP\n", encoding="utf-8")

    verdict = probes.run_file_check(
        FileCheckOptions(filename=target, line_filter=LineFilter.compile("RUNNING"))
    )

    assert verdict.severity is Severity.OK
    assert verdict.render(verbose=True) == [
        "OK - Found 1 matching line|'matches'=1;;",
        "RUNNING",
    ]


def test_file_check_with_statefile_reports_only_new_lines(tmp_path: Path) -> None:
    """Second run with nothing appended is critical without thresholds."""
    target = tmp_path / "app.log"
    target.write_text("ERROR a\nERROR b\n", encoding="utf-8")
    options = FileCheckOptions(
        filename=target,
        line_filter=LineFilter.compile("ERROR"),
        statefile=tmp_path / "app.state",
        critical=RangeThreshold.parse("@1:"),
    )

    first = probes.run_file_check(options)
    second = probes.run_file_check(options)

    assert first.severity is Severity.CRITICAL
    assert first.summary == "2 matching lines (critical threshold '@1:' triggered)"
    assert second.severity is Severity.OK
    assert second.summary == "0 matching lines"


def test_file_check_custom_label(tmp_path: Path) -> None:
    """The perfdata label is configurable."""
    target = tmp_path / "app.log"
    target.write_text("hit\n", encoding="utf-8")

    verdict = probes.run_file_check(
        FileCheckOptions(filename=target, line_filter=LineFilter.compile("hit"), label="hits")
    )

    assert verdict.status_line() == "OK - Found 1 matching line|'hits'=1;;"


def _populate(root: Path) -> None:
    (root / "nested").mkdir()
    (root / "a.log").write_text("", encoding="utf-8")
    (root / "b.txt").write_text("", encoding="utf-8")
    (root / "skip.log").write_text("", encoding="utf-8")
    (root / "nested" / "c.log").write_text("", encoding="utf-8")
    (root / "dir.log").mkdir()


def test_collect_directory_entries_top_level_only(tmp_path: Path) -> None:
    """Non-recursive listing ignores subdirectories and directory names."""
    _populate(tmp_path)

    entries = probes.collect_directory_entries(tmp_path, LineFilter.compile(r"\.log$"))

    assert [entry.name for entry in entries] == ["a.log", "skip.log"]


def test_collect_directory_entries_recursive_with_exclude(tmp_path: Path) -> None:
    """Recursive listing descends, and exclude drops names."""
    _populate(tmp_path)

    entries = probes.collect_directory_entries(
        tmp_path,
        LineFilter.compile(r"\.log$", "^skip"),
        recursive=True,
    )

    assert [entry.relative_to(tmp_path).as_posix() for entry in entries] == [
        "a.log",
        "nested/c.log",
    ]


def test_directory_check_verdict(tmp_path: Path) -> None:
    """Relative paths are reported as detail lines."""
    _populate(tmp_path)

    verdict = probes.run_directory_check(
        DirectoryCheckOptions(
            directory=tmp_path,
            line_filter=LineFilter.compile(r"\.log$"),
            recursive=True,
            warning=RangeThreshold.parse("2"),
        )
    )

    assert verdict.severity is Severity.WARNING
    assert verdict.status_line() == (
        "WARNING - 3 matching files (warning threshold '2' triggered)|'files'=3;2;"
    )
    assert len(verdict.detail_lines) == 3


def test_directory_check_empty_is_critical(tmp_path: Path) -> None:
    """No matching files without thresholds is critical."""
    verdict = probes.run_directory_check(
        DirectoryCheckOptions(directory=tmp_path, line_filter=LineFilter.compile("x"))
    )

    assert verdict.status_line() == "CRITICAL - No matching files found|'files'=0;;"


def test_directory_check_missing_directory(tmp_path: Path) -> None:
    """A missing directory is a resource error."""
    with pytest.raises(ResourceError, match="not a directory"):
        probes.collect_directory_entries(tmp_path / "missing", LineFilter.compile("x"))


def test_disk_check_reports_percentage(monkeypatch: pytest.MonkeyPatch) -> None:
    """Used percentage is rounded and compared against the thresholds."""
    monkeypatch.setattr(
        probes.shutil, "disk_usage", lambda path: DiskUsage(total=1000, used=855, free=145)
    )

    verdict = probes.run_disk_check(
        DiskCheckOptions(
            path=Path("/data"),
            warning=RangeThreshold.parse("~:80"),
            critical=RangeThreshold.parse("~:90"),
        )
    )

    assert verdict.severity is Severity.WARNING
    assert verdict.status_line() == (
        "WARNING - 86% disk space used on /data (warning threshold '~:80' triggered)"
        "|'used'=86%;~:80;~:90"
    )
    assert verdict.detail_lines == ("total=1000 used=855 free=145",)


def test_disk_check_unreadable_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """OS errors from the usage call become resource errors."""

    def _fail(path: Path) -> DiskUsage:
        raise FileNotFoundError(2, "No such file or directory")

    monkeypatch.setattr(probes.shutil, "disk_usage", _fail)

    with pytest.raises(ResourceError, match="Unable to determine disk usage"):
        probes.run_disk_check(DiskCheckOptions(path=Path("/missing")))


def test_cpu_check_uses_idle_percentage(monkeypatch: pytest.MonkeyPatch) -> None:
    """Idle percentage below the lower bound alerts."""
    calls: list[float] = []

    def _fake(interval: float) -> SimpleNamespace:
        calls.append(interval)
        return SimpleNamespace(user=90.0, system=6.6, idle=3.4)

    monkeypatch.setattr(probes.psutil, "cpu_times_percent", _fake)

    verdict = probes.run_cpu_check(
        CpuCheckOptions(
            interval=0.25,
            warning=RangeThreshold.parse("10:"),
            critical=RangeThreshold.parse("5:"),
        )
    )

    assert calls == [0.25]
    assert verdict.severity is Severity.CRITICAL
    assert verdict.status_line() == (
        "CRITICAL - 3% CPU idle (critical threshold '5:' triggered)|'idle'=3%;10:;5:"
    )
