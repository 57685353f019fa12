"""
BatchSettings schema.

Frozen dataclasses parsed from ``order_batch.yaml`` by the loader.  Field
defaults are the production defaults; the packaged YAML restates them so
operators can see every knob in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection for the orders table and the execution-tracking tables."""

    url: str = "sqlite:///order_batch.db"
    echo: bool = False
    pool_size: int = 5


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepSettings:
    chunk_size: int = 3
    fetch_size: int = 100


@dataclass(frozen=True)
class ScheduleSettings:
    """Fixed rate in milliseconds, or a 5-field cron expression.

    When ``cron`` is set it takes precedence over ``fixed_rate_ms``.
    """

    fixed_rate_ms: int = 60_000
    cron: str | None = None


@dataclass(frozen=True)
class ParameterDefaults:
    """Values for the parameters computed at every scheduled firing."""

    lookback_days: int = 7
    min_amount: int = 7000
    processing_mode: str = "FAST"


@dataclass(frozen=True)
class ExecutionSettings:
    # STARTED runs older than this are treated as dead and abandoned
    stale_after_seconds: int = 3600


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchSettings:
    """Complete settings for one pipeline process."""

    job_name: str = "orderProcessingJob"
    # IANA zone the order-placement system records order_date in
    timezone: str = "UTC"
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    step: StepSettings = field(default_factory=StepSettings)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    parameters: ParameterDefaults = field(default_factory=ParameterDefaults)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
