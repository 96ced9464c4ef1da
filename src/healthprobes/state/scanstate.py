"""Persisted scan position for a watched file.

The statefile is a tiny ``key=value`` text record::

    inode=1234567
    offset=4096

Only ``inode`` and ``offset`` are recognised; other keys are ignored and the
order is irrelevant. Anything that cannot be read back as both fields counts
as "no prior state". Writes go through a temporary file in the same
directory followed by :func:`os.replace`, so a reader never observes a
partial record.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..errors import ResourceError

LOGGER = logging.getLogger(__name__)

_FIELDS = ("inode", "offset")


@dataclass(frozen=True, slots=True)
class ScanState:
    """Inode identity and byte offset reached by the previous run."""

    inode: int
    offset: int

    # ------------------------------------------------------------------
    # Text codec
    # ------------------------------------------------------------------
    def dumps(self) -> str:
        """Serialise the state into the statefile record format."""
        return f"inode={self.inode}\noffset={self.offset}\n"

    @classmethod
    def loads(cls, text: str) -> ScanState | None:
        """Parse a statefile record, returning ``None`` when incomplete."""
        values: dict[str, int] = {}
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            if key not in _FIELDS:
                continue
            value = value.strip()
            if not (value.isascii() and value.isdigit()):
                return None
            values[key] = int(value)
        if any(field not in values for field in _FIELDS):
            return None
        return cls(inode=values["inode"], offset=values["offset"])

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Path) -> ScanState | None:
        """Read state from *path*; missing or unusable files yield ``None``."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.debug("No statefile at %s; starting from offset 0.", path)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.debug("Ignoring unreadable statefile %s: %s", path, exc)
            return None
        state = cls.loads(text)
        if state is None:
            LOGGER.debug("Ignoring malformed statefile %s.", path)
        return state

    def save(self, path: Path) -> None:
        """Atomically write the state to *path*.

        Raises :class:`ResourceError` when *path* is a symbolic link or when
        the record cannot be written.
        """
        if path.is_symlink():
            raise ResourceError(f"Refusing to write statefile through symbolic link {path}.")

        tmp_path: Path | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
            tmp_path = Path(tmp_name)
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(self.dumps())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise ResourceError(f"Unable to write statefile {path}: {exc}") from exc
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
        LOGGER.debug("Saved state inode=%s offset=%s to %s.", self.inode, self.offset, path)


__all__ = ["ScanState"]
