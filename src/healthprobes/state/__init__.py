"""Persisted scan state helpers."""
from __future__ import annotations

from .scanstate import ScanState

__all__ = ["ScanState"]
