"""
Pure trigger evaluation.

Contract:
    A trigger answers one question: given the previous firing time, when
    is the next one?  ``IntervalTrigger`` is the fixed-rate production
    default; ``CronTrigger`` is the drop-in for calendar schedules
    (daily at 02:00, Mondays at 06:00, ...).  No I/O, no clock reads: the
    scheduler passes every timestamp in.

Architecture: order_batch/domain.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Protocol, runtime_checkable

from order_kernel.exceptions import InvalidCronExpressionError


@runtime_checkable
class Trigger(Protocol):
    """Computes firing times.  ``next_fire_time`` is strictly after ``after``."""

    def first_fire_time(self, start: datetime) -> datetime: ...

    def next_fire_time(self, after: datetime) -> datetime: ...

    def describe(self) -> str: ...


# =============================================================================
# Fixed-rate interval
# =============================================================================


@dataclass(frozen=True)
class IntervalTrigger:
    """Fires at start, then every ``fixed_rate_ms`` milliseconds."""

    fixed_rate_ms: int = 60_000

    def __post_init__(self) -> None:
        if self.fixed_rate_ms <= 0:
            raise ValueError(f"fixed_rate_ms must be positive: {self.fixed_rate_ms}")

    def first_fire_time(self, start: datetime) -> datetime:
        return start

    def next_fire_time(self, after: datetime) -> datetime:
        return after + timedelta(milliseconds=self.fixed_rate_ms)

    def describe(self) -> str:
        return f"every {self.fixed_rate_ms}ms"


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression (minute hour day_of_month month day_of_week).

    Each field is a frozenset of valid integer values.
    Supports: *, values, lists (1,15), ranges (1-5), steps (*/5, 1-10/2).
    """

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Raises:
        ValueError: If the field is syntactically invalid or out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            for v in range(start, end + 1, step):
                if min_val <= v <= max_val:
                    values.add(v)

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            for v in range(start, end + 1):
                if min_val <= v <= max_val:
                    values.add(v)

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(
                    f"Value {v} outside range [{min_val}, {max_val}]"
                )
            values.add(v)

    if not values:
        raise ValueError(f"Field '{field_str}' matches no values")

    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression into a CronSpec.

    Format: ``minute hour day_of_month month day_of_week``

    Raises:
        InvalidCronExpressionError: If the expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise InvalidCronExpressionError(
            expression, f"expected 5 fields, got {len(parts)}",
        )

    try:
        return CronSpec(
            minutes=_parse_cron_field(parts[0], 0, 59),
            hours=_parse_cron_field(parts[1], 0, 23),
            days_of_month=_parse_cron_field(parts[2], 1, 31),
            months=_parse_cron_field(parts[3], 1, 12),
            days_of_week=_parse_cron_field(parts[4], 0, 6),
        )
    except ValueError as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check if a datetime matches a cron spec.

    Cron convention: 0=Sunday, 1=Monday, ..., 6=Saturday.
    Python datetime.weekday(): 0=Monday, ..., 6=Sunday.
    """
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


def next_cron_match(spec: CronSpec, after: datetime) -> datetime:
    """Find the next datetime after ``after`` that matches the cron spec.

    Scans minute-by-minute up to 366 days.

    Raises:
        ValueError: If no match found within 366 days (e.g. "0 0 31 2 *").
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    max_iterations = 366 * 24 * 60

    for _ in range(max_iterations):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)

    raise ValueError(
        f"No cron match found within 366 days after {after}"
    )


class CronTrigger:
    """Fires at the minutes matched by a 5-field cron expression.

    With ``tz`` set, an aware ``after`` is converted to that zone before
    matching, so "0 2 * * *" means 02:00 business time whatever zone the
    clock reports in.  Naive times are matched as given.
    """

    def __init__(self, expression: str, tz: tzinfo | None = None):
        self.expression = expression
        self.tz = tz
        self._spec = parse_cron(expression)

    def _local(self, moment: datetime) -> datetime:
        if self.tz is not None and moment.tzinfo is not None:
            return moment.astimezone(self.tz)
        return moment

    def first_fire_time(self, start: datetime) -> datetime:
        return next_cron_match(self._spec, self._local(start))

    def next_fire_time(self, after: datetime) -> datetime:
        return next_cron_match(self._spec, self._local(after))

    def describe(self) -> str:
        if self.tz is None:
            return f"cron '{self.expression}'"
        return f"cron '{self.expression}' ({self.tz})"

    def __repr__(self) -> str:
        return f"CronTrigger({self.expression!r}, tz={self.tz!r})"


def trigger_from_settings(
    fixed_rate_ms: int,
    cron: str | None = None,
    tz: tzinfo | None = None,
) -> Trigger:
    """Cron takes precedence when configured; otherwise fixed rate."""
    if cron:
        return CronTrigger(cron, tz)
    return IntervalTrigger(fixed_rate_ms)
