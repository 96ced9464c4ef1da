"""Failure-mode tests for the structured logging subsystem."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from rich.console import Console
from rich.logging import RichHandler

from healthprobes.logging import StructuredLogger, configure_debug


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    path = logger._operations_log_path  # type: ignore[attr-defined]
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_structured_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logger gracefully disables itself when log directory cannot be created."""
    log_dir = tmp_path / "logs"

    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger.enabled is False

    with logger.operation("file", args={"pattern": "ERROR"}) as op:
        op.success("OK - Found 1 matching line")


def test_structured_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Write failures mark the logger disabled so subsequent writes are skipped."""
    logger = StructuredLogger(tmp_path / "logs")
    operations_path = logger._operations_log_path  # type: ignore[attr-defined]

    original_open = Path.open

    def fail_once(self: Path, *args: object, **kwargs: object) -> object:
        if self == operations_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_once)

    with logger.operation("file") as op:
        op.success("done")

    assert logger.enabled is False

    with logger.operation("file") as op:
        op.success("done")


def test_logger_without_directory_is_disabled() -> None:
    """No configured directory means nothing is written."""
    logger = StructuredLogger(None)

    with logger.operation("cpu") as op:
        op.success("OK - 50% CPU idle")

    assert logger.enabled is False


def test_operation_record_shape(tmp_path: Path) -> None:
    """Each operation appends one JSON line with steps and result."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation(
        "file",
        args={"pattern": "ERROR", "statefile": Path("/var/lib/app.state")},
        target={"kind": "file", "path": Path("/var/log/app.log")},
    ) as op:
        op.add_step("options.parsed", detail={"label": "matches"})
        op.success("OK - Found 1 matching line")

    [record] = _records(logger)
    assert record["command"] == "file"
    assert record["args"] == {"pattern": "ERROR", "statefile": "/var/lib/app.state"}
    assert record["target"] == {"kind": "file", "path": "/var/log/app.log"}
    assert [step["name"] for step in record["steps"]] == ["options.parsed"]  # type: ignore[index]
    assert record["result"] == {
        "status": "success",
        "message": "OK - Found 1 matching line",
        "rc": 0,
    }
    assert isinstance(record["duration_ms"], int)


def test_operation_scope_warning_sanitises_context(tmp_path: Path) -> None:
    """Warnings should be recorded with JSON-safe context values."""
    logger = StructuredLogger(tmp_path / "logs")

    class Custom:
        def __str__(self) -> str:
            return "<custom>"

    with logger.operation("disk", args={"path": Path("foo")}) as op:
        op.warning(
            "warned",
            rc=1,
            warnings=("note",),
            errors=("err",),
            context={"path": Path("/var/lib"), "obj": Custom()},
        )

    [record] = _records(logger)
    result = record["result"]
    assert result["status"] == "warning"  # type: ignore[index]
    assert result["rc"] == 1  # type: ignore[index]
    assert result["warnings"] == ["note"]  # type: ignore[index]
    assert result["errors"] == ["err"]  # type: ignore[index]
    assert result["context"] == {"path": "/var/lib", "obj": "<custom>"}  # type: ignore[index]


def test_operation_scope_error_defaults_error_list(tmp_path: Path) -> None:
    """Errors should default to the message when not provided."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("file") as op:
        op.error("boom", errors=None, context={"value": {1, 2}})

    [record] = _records(logger)
    result = record["result"]
    assert result["status"] == "error"  # type: ignore[index]
    assert result["rc"] == 3  # type: ignore[index]
    assert result["errors"] == ["boom"]  # type: ignore[index]
    assert result["context"] == {"value": "{1, 2}"}  # type: ignore[index]


def test_unhandled_exception_is_recorded_and_reraised(tmp_path: Path) -> None:
    """An exception escaping the block is logged as an error and propagated."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(RuntimeError, match="kaboom"):
        with logger.operation("file"):
            raise RuntimeError("kaboom")

    [record] = _records(logger)
    assert record["result"]["message"] == "Unhandled error: kaboom"  # type: ignore[index]


def test_operation_without_result_is_recorded_as_error(tmp_path: Path) -> None:
    """Forgetting to record a result still produces a complete record."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("file"):
        pass

    [record] = _records(logger)
    assert record["result"]["status"] == "error"  # type: ignore[index]


def test_configure_debug_attaches_single_rich_handler() -> None:
    """Enabling twice keeps one handler; disabling removes it."""
    package_logger = logging.getLogger("healthprobes")
    console = Console(stderr=True)

    configure_debug(True, console=console)
    configure_debug(True, console=console)
    rich_handlers = [h for h in package_logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert package_logger.level == logging.DEBUG

    configure_debug(False)
    assert not [h for h in package_logger.handlers if isinstance(h, RichHandler)]
    assert package_logger.level == logging.NOTSET
