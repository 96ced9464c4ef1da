"""Error taxonomy shared by every probe.

Core modules raise these exceptions close to the fault; only the CLI turns
them into a status line and an exit code. Nothing is retried.
"""
from __future__ import annotations

from .exit_codes import ExitCode


class ProbeError(RuntimeError):
    """Base class for failures that end a probe run as UNKNOWN."""

    exit_code: ExitCode = ExitCode.UNKNOWN


class ConfigError(ProbeError):
    """Raised for invalid operator input detected before measurement."""


class ResourceError(ProbeError):
    """Raised when the environment prevents a measurement or state write."""


__all__ = ["ConfigError", "ProbeError", "ResourceError"]
