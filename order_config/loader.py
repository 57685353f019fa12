"""
Settings loader (``order_config.loader``).

Responsibility
--------------
Loads the settings YAML file and parses each section into the frozen
dataclasses of ``order_config.schema``.  Runtime callers go through
``order_config.get_settings()``; these functions are exposed for tests.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Missing sections and keys fall back to the schema defaults.
* Every invalid value raises ``ConfigurationError`` naming the dotted
  setting path; nothing is silently coerced.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML or a non-mapping document -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from order_kernel.exceptions import ConfigurationError, InvalidCronExpressionError
from order_kernel.logging_config import LOG_LEVELS

from order_batch.domain.schedule import parse_cron

from order_config.schema import (
    BatchSettings,
    DatabaseSettings,
    ExecutionSettings,
    LoggingSettings,
    ParameterDefaults,
    ScheduleSettings,
    StepSettings,
)

_PROCESSING_MODES = ("FAST", "NORMAL", "CAREFUL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a settings YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the YAML is invalid or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            str(path), f"expected a mapping at top level, got {type(data).__name__}",
        )
    return data


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, f"expected a mapping, got {type(value).__name__}")
    return value


def _int(data: Mapping[str, Any], key: str, setting: str, default: int, minimum: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(setting, f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(setting, f"must be >= {minimum}, got {value}")
    return value


def _bool(data: Mapping[str, Any], key: str, setting: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(setting, f"expected true/false, got {value!r}")
    return value


def _str(data: Mapping[str, Any], key: str, setting: str, default: str | None) -> str | None:
    value = data.get(key, default)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(setting, f"expected a string, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    url = _str(data, "url", "database.url", defaults.url)
    if not url:
        raise ConfigurationError("database.url", "must not be empty")
    return DatabaseSettings(
        url=url,
        echo=_bool(data, "echo", "database.echo", defaults.echo),
        pool_size=_int(data, "pool_size", "database.pool_size", defaults.pool_size, 1),
    )


def parse_step(data: Mapping[str, Any]) -> StepSettings:
    defaults = StepSettings()
    return StepSettings(
        chunk_size=_int(data, "chunk_size", "step.chunk_size", defaults.chunk_size, 1),
        fetch_size=_int(data, "fetch_size", "step.fetch_size", defaults.fetch_size, 1),
    )


def parse_schedule(data: Mapping[str, Any]) -> ScheduleSettings:
    """Parse the schedule section; a cron expression must parse."""
    defaults = ScheduleSettings()
    cron = _str(data, "cron", "schedule.cron", defaults.cron) or None
    if cron is not None:
        try:
            parse_cron(cron)
        except InvalidCronExpressionError as exc:
            raise ConfigurationError("schedule.cron", exc.reason) from exc
    return ScheduleSettings(
        fixed_rate_ms=_int(
            data, "fixed_rate_ms", "schedule.fixed_rate_ms", defaults.fixed_rate_ms, 1,
        ),
        cron=cron,
    )


def parse_parameter_defaults(data: Mapping[str, Any]) -> ParameterDefaults:
    defaults = ParameterDefaults()
    mode = _str(data, "processing_mode", "parameters.processing_mode", defaults.processing_mode)
    if mode is None or mode.strip().upper() not in _PROCESSING_MODES:
        raise ConfigurationError(
            "parameters.processing_mode",
            f"unknown processing mode {mode!r}; expected one of {list(_PROCESSING_MODES)}",
        )
    return ParameterDefaults(
        lookback_days=_int(
            data, "lookback_days", "parameters.lookback_days", defaults.lookback_days, 0,
        ),
        min_amount=_int(
            data, "min_amount", "parameters.min_amount", defaults.min_amount, 0,
        ),
        processing_mode=mode.strip().upper(),
    )


def parse_execution(data: Mapping[str, Any]) -> ExecutionSettings:
    defaults = ExecutionSettings()
    return ExecutionSettings(
        stale_after_seconds=_int(
            data,
            "stale_after_seconds",
            "execution.stale_after_seconds",
            defaults.stale_after_seconds,
            1,
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    level = _str(data, "level", "logging.level", LoggingSettings().level)
    return LoggingSettings(level=parse_log_level(level, "logging.level"))


def parse_log_level(value: str | None, setting: str) -> str:
    if value is None or value.strip().upper() not in LOG_LEVELS:
        raise ConfigurationError(
            setting, f"unknown log level {value!r}; expected one of {sorted(LOG_LEVELS)}",
        )
    return value.strip().upper()


def parse_timezone(value: str | None, setting: str) -> str:
    """An IANA zone name that ZoneInfo can load."""
    if not value:
        raise ConfigurationError(setting, "must not be empty")
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(setting, f"unknown time zone {value!r}") from exc
    return value


def parse_settings(data: Mapping[str, Any]) -> BatchSettings:
    """Parse a complete settings mapping into BatchSettings."""
    job_name = _str(data, "job_name", "job_name", BatchSettings().job_name)
    if not job_name:
        raise ConfigurationError("job_name", "must not be empty")
    return BatchSettings(
        job_name=job_name,
        timezone=parse_timezone(
            _str(data, "timezone", "timezone", BatchSettings().timezone), "timezone",
        ),
        database=parse_database(_section(data, "database")),
        step=parse_step(_section(data, "step")),
        schedule=parse_schedule(_section(data, "schedule")),
        parameters=parse_parameter_defaults(_section(data, "parameters")),
        execution=parse_execution(_section(data, "execution")),
        logging=parse_logging(_section(data, "logging")),
    )
