"""Incremental pattern scanning of a growing file.

When a statefile is configured the scanner resumes at the byte offset the
previous run reached, as long as the file is still the same inode and has
not shrunk below that offset. A different inode means the file was rotated
or replaced; a shorter file means it was truncated. Both restart at 0.
"""
from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Literal

from .errors import ConfigError, ResourceError
from .state import ScanState

LOGGER = logging.getLogger(__name__)

ScanReason = Literal["stateless", "first-run", "resumed", "truncated", "rotated"]


@dataclass(frozen=True, slots=True)
class LineFilter:
    """Include/exclude predicate applied to every line."""

    include: re.Pattern[str]
    exclude: re.Pattern[str] | None = None

    @classmethod
    def compile(cls, include: str | None, exclude: str | None = None) -> LineFilter:
        """Compile pattern strings, raising :class:`ConfigError` when invalid."""
        if not include:
            raise ConfigError("An include pattern is required.")
        include_re = _compile(include, "include")
        exclude_re = _compile(exclude, "exclude") if exclude else None
        return cls(include=include_re, exclude=exclude_re)

    def matches(self, line: str) -> bool:
        """Return ``True`` when *line* passes the include and exclude patterns."""
        if self.include.search(line) is None:
            return False
        return self.exclude is None or self.exclude.search(line) is None

    def filter_lines(self, lines: Iterable[str]) -> list[str]:
        """Return the matching lines from *lines* in their original order."""
        return [line for line in lines if self.matches(line)]


def _compile(pattern: str, label: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid {label} pattern {pattern!r}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Matched lines plus the position the scan reached."""

    lines: Sequence[str]
    final_offset: int
    final_inode: int
    start_offset: int = 0
    reason: ScanReason = "stateless"

    @property
    def count(self) -> int:
        """Return the number of matched lines."""
        return len(self.lines)


class IncrementalScanner:
    """Scan a file for matching lines, optionally resuming from saved state."""

    def __init__(
        self,
        path: Path,
        line_filter: LineFilter,
        *,
        statefile: Path | None = None,
    ) -> None:
        """Store the target file, its line filter and optional statefile."""
        self._path = path
        self._filter = line_filter
        self._statefile = statefile

    def scan(self) -> ScanResult:
        """Read new content, collect matching lines and persist the new offset."""
        try:
            handle = self._path.open("rb")
        except OSError as exc:
            raise ResourceError(f"Unable to open {self._path}: {exc.strerror or exc}") from exc

        with handle:
            info = os.fstat(handle.fileno())
            start, reason = self._resume_point(info.st_ino, info.st_size)
            LOGGER.debug(
                "Scanning %s (inode=%s size=%s) from offset %s [%s].",
                self._path,
                info.st_ino,
                info.st_size,
                start,
                reason,
            )
            if start:
                handle.seek(start)
            lines, final_offset = self._read_matches(handle, start)

        result = ScanResult(
            lines=tuple(lines),
            final_offset=final_offset,
            final_inode=info.st_ino,
            start_offset=start,
            reason=reason,
        )
        if self._statefile is not None:
            ScanState(inode=result.final_inode, offset=result.final_offset).save(self._statefile)
        return result

    def _resume_point(self, inode: int, size: int) -> tuple[int, ScanReason]:
        if self._statefile is None:
            return 0, "stateless"
        previous = ScanState.load(self._statefile)
        if previous is None:
            return 0, "first-run"
        if previous.inode != inode:
            return 0, "rotated"
        if previous.offset > size:
            return 0, "truncated"
        return previous.offset, "resumed"

    def _read_matches(self, handle: BinaryIO, offset: int) -> tuple[list[str], int]:
        matched: list[str] = []
        for raw in iter(handle.readline, b""):
            offset += len(raw)
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if self._filter.matches(line):
                matched.append(line)
        return matched, offset


__all__ = ["IncrementalScanner", "LineFilter", "ScanReason", "ScanResult"]
