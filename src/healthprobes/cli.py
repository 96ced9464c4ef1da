"""Typer-powered command line surface for ``healthprobes``.

Each subcommand is one monitoring probe. Whatever happens, a run prints
exactly one status line of the form ``<SEVERITY> - <summary>[|perfdata]``
and exits with the plugin status code (0 OK, 1 WARNING, 2 CRITICAL,
3 UNKNOWN) so that schedulers can branch on it.
"""
from __future__ import annotations

import sys
import textwrap
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, TypeVar

import click
import typer
from rich.console import Console

from . import __version__
from .checks import (
    CpuCheckOptions,
    DirectoryCheckOptions,
    DiskCheckOptions,
    FileCheckOptions,
    Severity,
    Verdict,
    run_cpu_check,
    run_directory_check,
    run_disk_check,
    run_file_check,
)
from .config import ProbeSettings, load_config
from .errors import ConfigError, ProbeError
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger, configure_debug
from .scanner import LineFilter
from .thresholds import RangeThreshold, parse_optional

console = Console(highlight=False, markup=False, emoji=False, soft_wrap=True)
err_console = Console(stderr=True)

T = TypeVar("T")

_THRESHOLD_MANUAL = textwrap.dedent(
    """
    THRESHOLDS
      N or :N   alert if the value is outside 0..N
      N:        alert if the value is below N
      ~:N       alert if the value is above N
      N:M       alert if the value is outside N..M
      ~:        never alert
      @<range>  alert if the value is inside the range instead

      The critical threshold is checked first, then the warning threshold.
      Without any threshold a count of zero is CRITICAL.

    EXIT CODES
      0 OK, 1 WARNING, 2 CRITICAL, 3 UNKNOWN
    """
).strip()

_MANUALS: dict[str, str] = {
    "file": textwrap.dedent(
        """
        healthprobes file - count lines of a file that match a pattern

        Every line matching --pattern and not matching --exclude is counted.
        With --statefile the probe remembers the inode and byte offset it
        reached and only reads content appended since the previous run. A
        replaced (rotated) or truncated file is read again from the start.

        STATEFILE
          inode=<unsigned integer>
          offset=<unsigned integer>

          The statefile is replaced atomically and is never written through
          a symbolic link.
        """
    ).strip(),
    "directory": textwrap.dedent(
        """
        healthprobes directory - count files in a directory

        Regular files whose names match --pattern (default: everything) and
        do not match --exclude are counted, descending into subdirectories
        with --recursive.
        """
    ).strip(),
    "disk": textwrap.dedent(
        """
        healthprobes disk - used space percentage of a filesystem

        Reports the percentage of used space on the filesystem holding
        --path. Default thresholds come from the configuration file.
        """
    ).strip(),
    "cpu": textwrap.dedent(
        """
        healthprobes cpu - CPU idle percentage

        Samples CPU times over --interval seconds and reports the idle
        percentage. Use lower-bound thresholds such as 10: to alert when
        idle time drops.
        """
    ).strip(),
}


def _manual_callback(ctx: typer.Context, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    name = ctx.info_name or ""
    console.print(_MANUALS.get(name, ""))
    console.print()
    console.print(_THRESHOLD_MANUAL)
    raise typer.Exit(code=0)


CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Override the path to the healthprobes YAML config file.",
)
PATTERN_OPTION = typer.Option(
    None,
    "--pattern",
    "-p",
    metavar="REGEX",
    help="Include regular expression.",
)
EXCLUDE_OPTION = typer.Option(
    None,
    "--exclude",
    "-x",
    metavar="REGEX",
    help="Exclude regular expression applied after --pattern.",
)
WARNING_OPTION = typer.Option(
    None,
    "--warning",
    "-w",
    metavar="RANGE",
    help="Warning threshold expression.",
)
CRITICAL_OPTION = typer.Option(
    None,
    "--critical",
    "-c",
    metavar="RANGE",
    help="Critical threshold expression.",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Append matched lines or entries to the output.",
)
DEBUG_OPTION = typer.Option(
    False,
    "--debug",
    "-d",
    help="Emit a diagnostic trace on stderr.",
)
MAN_OPTION = typer.Option(
    False,
    "--man",
    "-m",
    is_eager=True,
    callback=_manual_callback,
    help="Show the probe manual and exit.",
)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Monitoring probes reporting OK/WARNING/CRITICAL/UNKNOWN with perfdata.",
)


@dataclass
class RuntimeContext:
    """Objects shared by the probe commands of one invocation."""

    settings: ProbeSettings
    logger: StructuredLogger


@dataclass
class _RootOptions:
    config_file: Path | None = None


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    root = ctx.find_object(_RootOptions)
    config_file = root.config_file if root is not None else None
    try:
        settings = load_config(config_file=config_file)
    except ConfigError as exc:
        _emit(Verdict.unknown(str(exc)))
        raise typer.Exit(code=ExitCode.UNKNOWN) from exc
    return RuntimeContext(settings=settings, logger=StructuredLogger(settings.logs_dir))


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the healthprobes version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"healthprobes {__version__}")
        raise typer.Exit(code=0)

    ctx.obj = _RootOptions(config_file=config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _emit(verdict: Verdict, *, verbose: bool = False) -> None:
    # Verdict lines bypass Rich so tabs and spacing reach stdout unchanged.
    for line in verdict.render(verbose=verbose):
        typer.echo(line)


def _threshold(expression: str | None, kind: str) -> RangeThreshold | None:
    try:
        return parse_optional(expression)
    except ConfigError as exc:
        raise ConfigError(f"Invalid --{kind} threshold: {exc}") from exc


def _require(value: T | None, option: str) -> T:
    if value is None or value == "":
        raise ConfigError(f"Missing required option {option}.")
    return value


def _label(value: str) -> str:
    label = value.strip()
    if not label or "'" in label or "=" in label:
        raise ConfigError(f"Invalid perfdata label {value!r}.")
    return label


def _fail(op: OperationScope, exc: ProbeError) -> NoReturn:
    """Report a fatal error as UNKNOWN and terminate the command."""
    message = str(exc)
    _emit(Verdict.unknown(message))
    op.error(message, rc=exc.exit_code, errors=[type(exc).__name__])
    raise typer.Exit(code=exc.exit_code)


def _report(op: OperationScope, verdict: Verdict, *, verbose: bool) -> None:
    """Print the verdict, log it and exit with its status code."""
    _emit(verdict, verbose=verbose)
    context = {
        "severity": verdict.severity.name,
        "perfdata": [str(item) for item in verdict.perfdata],
    }
    rc = verdict.exit_code
    if verdict.severity is Severity.OK:
        op.success(verdict.summary, context=context)
        return
    if verdict.severity is Severity.WARNING:
        op.warning(verdict.summary, rc=rc, warnings=[verdict.summary], context=context)
    else:
        op.error(verdict.summary, rc=rc, context=context)
    raise typer.Exit(code=rc)


# ---------------------------------------------------------------------------
# Probe commands
# ---------------------------------------------------------------------------


@app.command("file")
def file_check(
    ctx: typer.Context,
    filename: Path | None = typer.Option(
        None,
        "--filename",
        "-f",
        metavar="PATH",
        help="File to scan.",
    ),
    pattern: str | None = PATTERN_OPTION,
    exclude: str | None = EXCLUDE_OPTION,
    warning: str | None = WARNING_OPTION,
    critical: str | None = CRITICAL_OPTION,
    statefile: Path | None = typer.Option(
        None,
        "--statefile",
        "-s",
        metavar="PATH",
        help="Remember the scan position here and only read new content.",
    ),
    label: str = typer.Option("matches", "--label", help="Perfdata label."),
    verbose: bool = VERBOSE_OPTION,
    debug: bool = DEBUG_OPTION,
    man: bool = MAN_OPTION,
) -> None:
    """Count lines in a file that match a pattern."""
    configure_debug(debug, console=err_console)
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "file",
        args={
            "filename": filename,
            "pattern": pattern,
            "exclude": exclude,
            "warning": warning,
            "critical": critical,
            "statefile": statefile,
            "verbose": verbose,
        },
        target={"kind": "file", "path": filename},
    ) as op:
        try:
            target_file = _require(filename, "--filename")
            include = _require(pattern, "--pattern")
            options = FileCheckOptions(
                filename=target_file.expanduser(),
                line_filter=LineFilter.compile(include, exclude),
                warning=_threshold(warning, "warning"),
                critical=_threshold(critical, "critical"),
                statefile=(
                    runtime.settings.resolve_statefile(statefile)
                    if statefile is not None
                    else None
                ),
                label=_label(label),
            )
            op.add_step("options.parsed", detail={"statefile": options.statefile})
            verdict = run_file_check(options)
        except ProbeError as exc:
            _fail(op, exc)
        _report(op, verdict, verbose=verbose)


@app.command("directory")
def directory_check(
    ctx: typer.Context,
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-D",
        metavar="PATH",
        help="Directory whose files are counted.",
    ),
    pattern: str | None = PATTERN_OPTION,
    exclude: str | None = EXCLUDE_OPTION,
    recursive: bool = typer.Option(
        False,
        "--recursive",
        "-r",
        help="Descend into subdirectories.",
    ),
    warning: str | None = WARNING_OPTION,
    critical: str | None = CRITICAL_OPTION,
    label: str = typer.Option("files", "--label", help="Perfdata label."),
    verbose: bool = VERBOSE_OPTION,
    debug: bool = DEBUG_OPTION,
    man: bool = MAN_OPTION,
) -> None:
    """Count files in a directory whose names match a pattern."""
    configure_debug(debug, console=err_console)
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "directory",
        args={
            "directory": directory,
            "pattern": pattern,
            "exclude": exclude,
            "recursive": recursive,
            "warning": warning,
            "critical": critical,
            "verbose": verbose,
        },
        target={"kind": "directory", "path": directory},
    ) as op:
        try:
            target_dir = _require(directory, "--directory")
            options = DirectoryCheckOptions(
                directory=target_dir.expanduser(),
                line_filter=LineFilter.compile(pattern or ".*", exclude),
                recursive=recursive,
                warning=_threshold(warning, "warning"),
                critical=_threshold(critical, "critical"),
                label=_label(label),
            )
            verdict = run_directory_check(options)
        except ProbeError as exc:
            _fail(op, exc)
        _report(op, verdict, verbose=verbose)


@app.command("disk")
def disk_check(
    ctx: typer.Context,
    path: Path | None = typer.Option(
        None,
        "--path",
        "-P",
        metavar="PATH",
        help="Any path on the filesystem to check (defaults to config disk.path).",
    ),
    warning: str | None = WARNING_OPTION,
    critical: str | None = CRITICAL_OPTION,
    label: str = typer.Option("used", "--label", help="Perfdata label."),
    verbose: bool = VERBOSE_OPTION,
    debug: bool = DEBUG_OPTION,
    man: bool = MAN_OPTION,
) -> None:
    """Check the used space percentage of a filesystem."""
    configure_debug(debug, console=err_console)
    runtime = _get_runtime(ctx)
    defaults = runtime.settings.disk
    with runtime.logger.operation(
        "disk",
        args={"path": path, "warning": warning, "critical": critical},
        target={"kind": "filesystem", "path": path or defaults.path},
    ) as op:
        try:
            options = DiskCheckOptions(
                path=(path or defaults.path).expanduser(),
                warning=_threshold(
                    warning if warning is not None else defaults.warning, "warning"
                ),
                critical=_threshold(
                    critical if critical is not None else defaults.critical, "critical"
                ),
                label=_label(label),
            )
            verdict = run_disk_check(options)
        except ProbeError as exc:
            _fail(op, exc)
        _report(op, verdict, verbose=verbose)


@app.command("cpu")
def cpu_check(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        help="Sampling interval in seconds (defaults to config cpu.interval).",
    ),
    warning: str | None = WARNING_OPTION,
    critical: str | None = CRITICAL_OPTION,
    label: str = typer.Option("idle", "--label", help="Perfdata label."),
    verbose: bool = VERBOSE_OPTION,
    debug: bool = DEBUG_OPTION,
    man: bool = MAN_OPTION,
) -> None:
    """Check the CPU idle percentage."""
    configure_debug(debug, console=err_console)
    runtime = _get_runtime(ctx)
    defaults = runtime.settings.cpu
    with runtime.logger.operation(
        "cpu",
        args={"interval": interval, "warning": warning, "critical": critical},
        target={"kind": "cpu"},
    ) as op:
        try:
            effective_interval = interval if interval is not None else defaults.interval
            if effective_interval <= 0:
                raise ConfigError(
                    f"--interval must be greater than zero. Got {effective_interval}."
                )
            options = CpuCheckOptions(
                interval=effective_interval,
                warning=_threshold(
                    warning if warning is not None else defaults.warning, "warning"
                ),
                critical=_threshold(
                    critical if critical is not None else defaults.critical, "critical"
                ),
                label=_label(label),
            )
            verdict = run_cpu_check(options)
        except ProbeError as exc:
            _fail(op, exc)
        _report(op, verdict, verbose=verbose)


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Console-script entry point; usage errors become UNKNOWN status lines."""
    try:
        rc = app(
            args=list(argv) if argv is not None else None,
            prog_name="healthprobes",
            standalone_mode=False,
        )
    except click.exceptions.UsageError as exc:
        _emit(Verdict.unknown(exc.format_message()))
        sys.exit(ExitCode.UNKNOWN)
    except click.exceptions.Abort:
        _emit(Verdict.unknown("Aborted."))
        sys.exit(ExitCode.UNKNOWN)
    except Exception as exc:  # noqa: BLE001 - a status line is mandatory on every path
        _emit(Verdict.unknown(f"Unexpected error: {exc}"))
        sys.exit(ExitCode.UNKNOWN)
    sys.exit(int(rc) if isinstance(rc, int) else 0)


__all__ = ["RuntimeContext", "app", "main"]
