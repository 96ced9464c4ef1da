"""Structured operation log and debug trace wiring.

Every probe invocation can append one JSON record to
``<logs_dir>/operations.jsonl`` describing what ran and how it ended. The
logger never interferes with the probe itself: an unavailable directory or a
failed write simply disables it for the rest of the process.

The human debug trace (``--debug``) is separate. It routes the standard
library loggers used across the package to stderr via Rich, so diagnostics
never reach the scheduler-facing status line.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

OPERATIONS_LOG_NAME = "operations.jsonl"
_DEBUG_HANDLER_NAME = "healthprobes-debug"


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _sanitize(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_sanitize(item) for item in value]
    return str(value)


class OperationScope:
    """Collects steps and the final result for one logged operation."""

    def __init__(self, command: str) -> None:
        """Start an empty scope for *command*."""
        self.command = command
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None

    @property
    def completed(self) -> bool:
        """Return ``True`` once a result has been recorded."""
        return self.result is not None

    def add_step(self, name: str, *, status: str = "success", detail: object = None) -> None:
        """Record an intermediate step."""
        step: dict[str, object] = {"name": name, "status": status, "at": _timestamp()}
        if detail is not None:
            step["detail"] = _sanitize(detail)
        self.steps.append(step)

    def success(self, message: str, *, context: Mapping[str, object] | None = None) -> None:
        """Record a successful outcome."""
        self._finish("success", message, rc=0, context=context)

    def warning(
        self,
        message: str,
        *,
        rc: int = 0,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record an outcome that completed but needs attention."""
        self._finish(
            "warning",
            message,
            rc=rc,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        rc: int = 3,
        errors: Sequence[str] | None = None,
        warnings: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record a failed outcome; ``errors`` defaults to the message."""
        self._finish(
            "error",
            message,
            rc=rc,
            warnings=warnings,
            errors=list(errors) if errors else [message],
            context=context,
        )

    def _finish(
        self,
        status: str,
        message: str,
        *,
        rc: int,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, object] = {"status": status, "message": message, "rc": rc}
        if warnings:
            result["warnings"] = list(warnings)
        if errors:
            result["errors"] = list(errors)
        if context:
            result["context"] = _sanitize(context)
        self.result = result


class StructuredLogger:
    """Append-only JSONL operation log."""

    def __init__(self, logs_dir: Path | None) -> None:
        """Prepare the log directory, disabling the logger when unusable."""
        self._logs_dir = logs_dir
        self._enabled = logs_dir is not None
        self._operations_log_path = (
            logs_dir / OPERATIONS_LOG_NAME if logs_dir is not None else None
        )
        if logs_dir is not None:
            try:
                logs_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logging.getLogger(__name__).debug(
                    "Operation log disabled; cannot create %s: %s", logs_dir, exc
                )
                self._enabled = False

    @property
    def enabled(self) -> bool:
        """Return ``True`` while records are being written."""
        return self._enabled

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield a scope and write its record when the block exits."""
        scope = OperationScope(command)
        started_at = _timestamp()
        start = time.perf_counter()
        try:
            yield scope
        except Exception as exc:
            if not scope.completed:
                scope.error(f"Unhandled error: {exc}")
            raise
        finally:
            if not scope.completed:
                scope.error("Operation ended without recording a result.")
            record = {
                "op_id": uuid.uuid4().hex,
                "command": command,
                "args": _sanitize(args or {}),
                "target": _sanitize(target or {}),
                "started_at": started_at,
                "finished_at": _timestamp(),
                "duration_ms": int((time.perf_counter() - start) * 1000),
                "steps": scope.steps,
                "result": scope.result,
            }
            self._write(record)

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled or self._operations_log_path is None:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=False) + "\n")
        except OSError as exc:
            logging.getLogger(__name__).debug(
                "Operation log disabled after write failure: %s", exc
            )
            self._enabled = False


def configure_debug(enabled: bool, *, console: Console | None = None) -> None:
    """Route package debug logging to stderr when *enabled*."""
    package_logger = logging.getLogger("healthprobes")
    for handler in list(package_logger.handlers):
        if handler.get_name() == _DEBUG_HANDLER_NAME:
            package_logger.removeHandler(handler)
    if not enabled:
        package_logger.setLevel(logging.NOTSET)
        return
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.set_name(_DEBUG_HANDLER_NAME)
    handler.setLevel(logging.DEBUG)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


__all__ = ["OperationScope", "StructuredLogger", "configure_debug"]
