"""Process exit codes understood by monitoring schedulers."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Fixed plugin exit statuses; schedulers branch on these values."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3
