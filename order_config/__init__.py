"""
order_config -- single public entrypoint for pipeline settings.

Responsibility:
    ``get_settings()`` is the only way runtime code obtains settings.  It
    reads the packaged ``order_batch.yaml`` (or a file the operator names),
    applies the two supported environment overrides, and returns a frozen
    ``BatchSettings``.

Environment overrides:
    ORDER_BATCH_DATABASE_URL   replaces ``database.url``
    ORDER_BATCH_LOG_LEVEL      replaces ``logging.level``

Failure modes:
    - ``FileNotFoundError`` -- the named settings file does not exist.
    - ``ConfigurationError`` -- malformed YAML or an invalid value.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from order_config.loader import load_yaml_file, parse_log_level, parse_settings
from order_config.schema import (
    BatchSettings,
    DatabaseSettings,
    ExecutionSettings,
    LoggingSettings,
    ParameterDefaults,
    ScheduleSettings,
    StepSettings,
)

_logger = logging.getLogger("order_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "order_batch.yaml"

ENV_DATABASE_URL = "ORDER_BATCH_DATABASE_URL"
ENV_LOG_LEVEL = "ORDER_BATCH_LOG_LEVEL"


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> BatchSettings:
    """Load settings from ``path`` (default: packaged YAML) plus environment.

    Args:
        path: Settings file to read instead of the packaged defaults.
        environ: Environment mapping; defaults to ``os.environ``.
    """
    source = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(source))

    env = os.environ if environ is None else environ
    overridden: list[str] = []

    url = env.get(ENV_DATABASE_URL)
    if url:
        settings = replace(settings, database=replace(settings.database, url=url))
        overridden.append(ENV_DATABASE_URL)

    level = env.get(ENV_LOG_LEVEL)
    if level:
        settings = replace(
            settings,
            logging=LoggingSettings(level=parse_log_level(level, ENV_LOG_LEVEL)),
        )
        overridden.append(ENV_LOG_LEVEL)

    _logger.info(
        "settings_loaded",
        extra={
            "source": str(source),
            "job_name": settings.job_name,
            "env_overrides": overridden,
        },
    )
    return settings


__all__ = [
    "BatchSettings",
    "DatabaseSettings",
    "ExecutionSettings",
    "LoggingSettings",
    "ParameterDefaults",
    "ScheduleSettings",
    "StepSettings",
    "get_settings",
]
