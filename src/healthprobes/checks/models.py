"""Data models for probe verdicts and per-probe options."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..exit_codes import ExitCode
from ..scanner import LineFilter
from ..thresholds import RangeThreshold

# Schedulers split plugin output on ``|`` to find perfdata.
_PERFDATA_SEPARATOR = "|"


class Severity(Enum):
    """Verdict severity, ordered by escalation."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3

    @property
    def exit_code(self) -> ExitCode:
        """Return the process exit code for this severity."""
        return ExitCode(self.value)


@dataclass(frozen=True, slots=True)
class PerfData:
    """One perfdata tuple rendered as ``'label'=value<uom>;warn;crit``."""

    label: str
    value: int | float
    warn: str = ""
    crit: str = ""
    uom: str = ""

    def __post_init__(self) -> None:
        """Reject labels that would break the perfdata grammar."""
        if "'" in self.label or "=" in self.label:
            raise ValueError(f"Perfdata label contains illegal characters: {self.label!r}")

    def __str__(self) -> str:
        """Return the scheduler-facing textual form."""
        return f"'{self.label}'={self.value}{self.uom};{self.warn};{self.crit}"


def _screen(text: str) -> str:
    return text.replace(_PERFDATA_SEPARATOR, "").rstrip("\n")


@dataclass(frozen=True, slots=True)
class Verdict:
    """Terminal outcome of a probe run."""

    severity: Severity
    summary: str
    detail_lines: Sequence[str] = field(default_factory=tuple)
    perfdata: Sequence[PerfData] = field(default_factory=tuple)

    @classmethod
    def unknown(cls, message: str) -> Verdict:
        """Build the verdict reported for fatal configuration/resource errors."""
        return cls(severity=Severity.UNKNOWN, summary=message)

    @property
    def exit_code(self) -> ExitCode:
        """Return the process exit code for this verdict."""
        return self.severity.exit_code

    def status_line(self) -> str:
        """Return ``<SEVERITY> - <summary>[|<perfdata...>]``."""
        line = f"{self.severity.name} - {_screen(self.summary)}"
        if self.perfdata:
            line += _PERFDATA_SEPARATOR + " ".join(str(item) for item in self.perfdata)
        return line

    def render(self, *, verbose: bool = False) -> list[str]:
        """Return the output lines, appending detail lines when *verbose*."""
        lines = [self.status_line()]
        if verbose:
            lines.extend(_screen(detail) for detail in self.detail_lines)
        return lines


# ---------------------------------------------------------------------------
# Per-probe options
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileCheckOptions:
    """Immutable inputs for the file-content probe."""

    filename: Path
    line_filter: LineFilter
    warning: RangeThreshold | None = None
    critical: RangeThreshold | None = None
    statefile: Path | None = None
    label: str = "matches"


@dataclass(frozen=True, slots=True)
class DirectoryCheckOptions:
    """Immutable inputs for the directory-contents probe."""

    directory: Path
    line_filter: LineFilter
    recursive: bool = False
    warning: RangeThreshold | None = None
    critical: RangeThreshold | None = None
    label: str = "files"


@dataclass(frozen=True, slots=True)
class DiskCheckOptions:
    """Immutable inputs for the disk-usage probe."""

    path: Path
    warning: RangeThreshold | None = None
    critical: RangeThreshold | None = None
    label: str = "used"


@dataclass(frozen=True, slots=True)
class CpuCheckOptions:
    """Immutable inputs for the CPU idle probe."""

    interval: float = 1.0
    warning: RangeThreshold | None = None
    critical: RangeThreshold | None = None
    label: str = "idle"


__all__ = [
    "CpuCheckOptions",
    "DirectoryCheckOptions",
    "DiskCheckOptions",
    "FileCheckOptions",
    "PerfData",
    "Severity",
    "Verdict",
]
