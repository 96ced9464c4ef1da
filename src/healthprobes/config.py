"""Configuration loader for healthprobes.

Configuration values are merged from multiple sources, later sources
winning:

1. Built-in defaults.
2. ``/etc/healthprobes/config.yml`` (or an override path).
3. Environment variables prefixed with ``HEALTHPROBES_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export HEALTHPROBES_DISK__WARNING='~:85'
    export HEALTHPROBES_CPU__INTERVAL=0.5

Values are coerced via PyYAML's ``safe_load`` so that numbers and booleans
are parsed naturally, except for threshold keys which are taken verbatim
(``10:`` would otherwise load as a mapping). The resulting configuration is
exposed as immutable ``dataclasses`` and handed to each probe explicitly.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from .errors import ConfigError
from .thresholds import RangeThreshold

ENV_PREFIX = "HEALTHPROBES_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}
THRESHOLD_KEYS = {"warning", "critical"}


@dataclass(frozen=True)
class DiskDefaults:
    """Defaults for the disk-usage probe."""

    path: Path = Path("/")
    warning: str | None = "~:80"
    critical: str | None = "~:90"


@dataclass(frozen=True)
class CpuDefaults:
    """Defaults for the CPU idle probe."""

    interval: float = 1.0
    warning: str | None = "10:"
    critical: str | None = "5:"


@dataclass(frozen=True)
class ProbeSettings:
    """Resolved configuration values for healthprobes."""

    config_file: Path
    state_dir: Path | None
    logs_dir: Path | None
    disk: DiskDefaults
    cpu: CpuDefaults

    def resolve_statefile(self, statefile: Path) -> Path:
        """Anchor a relative statefile path under ``state_dir`` when configured."""
        expanded = statefile.expanduser()
        if expanded.is_absolute() or self.state_dir is None:
            return expanded
        return self.state_dir / expanded


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/healthprobes/config.yml",
    "state_dir": None,
    "logs_dir": None,
    "disk": {
        "path": "/",
        "warning": "~:80",
        "critical": "~:90",
    },
    "cpu": {
        "interval": 1.0,
        "warning": "10:",
        "critical": "5:",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_SECTION_KEYS: dict[str, set[str]] = {
    "disk": {"path", "warning", "critical"},
    "cpu": {"interval", "warning", "critical"},
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ProbeSettings:
    """Load and merge configuration sources into :class:`ProbeSettings`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_settings(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in ALLOWED_SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")


def _build_settings(raw: Mapping[str, object]) -> ProbeSettings:
    disk_raw = _as_dict(raw.get("disk"), "disk")
    cpu_raw = _as_dict(raw.get("cpu"), "cpu")

    disk = DiskDefaults(
        path=_to_path(disk_raw.get("path", "/")),
        warning=_expect_threshold(disk_raw.get("warning"), "disk.warning"),
        critical=_expect_threshold(disk_raw.get("critical"), "disk.critical"),
    )
    cpu = CpuDefaults(
        interval=_expect_positive_float(cpu_raw.get("interval"), "cpu.interval", default=1.0),
        warning=_expect_threshold(cpu_raw.get("warning"), "cpu.warning"),
        critical=_expect_threshold(cpu_raw.get("critical"), "cpu.critical"),
    )
    return ProbeSettings(
        config_file=_to_path(raw["config_file"]),
        state_dir=_optional_path(raw.get("state_dir")),
        logs_dir=_optional_path(raw.get("logs_dir")),
        disk=disk,
        cpu=cpu,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        if path_segments[-1] in THRESHOLD_KEYS:
            coerced: object = value.strip() or None
        else:
            coerced = _coerce_value(value)
        _assign_nested(overrides, path_segments, coerced)
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _optional_path(value: object) -> Path | None:
    if value is None or value == "":
        return None
    return _to_path(value)


def _expect_threshold(value: object, label: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a threshold expression. Got {value!r}.")
    if isinstance(value, (int, str)):
        text = str(value).strip()
        if not text:
            return None
        try:
            RangeThreshold.parse(text)
        except ConfigError as exc:
            raise ConfigError(f"Invalid {label}: {exc}") from exc
        return text
    raise ConfigError(
        f"Expected {label} to be a threshold expression. Got {type(value).__name__}."
    )


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "ConfigError",
    "CpuDefaults",
    "DiskDefaults",
    "ProbeSettings",
    "load_config",
]
