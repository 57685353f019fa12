"""
Job parameters and the typed configuration derived from them.

Contract:
    ``JobParameters`` is an immutable, typed name -> value collection built
    fresh for every run.  ``identifying_key()`` hashes the identifying
    parameters so the repository can recognise a parameter set that
    already completed.

    ``OrderCriteria`` and ``ProcessingMode`` are the explicit config
    structs handed to the row source and the processor when the step is
    built.  Nothing reads parameters implicitly.

Architecture: order_batch/domain.  ZERO I/O.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from order_kernel.exceptions import InvalidJobParametersError

from order_batch.domain.types import ProcessingMode

# Parameter names used by the order processing job
START_DATE = "startDate"
END_DATE = "endDate"
MIN_AMOUNT = "minAmount"
PROCESSING_MODE = "processingMode"
RUN_TOKEN = "timestamp"


class ParameterType(str, Enum):
    STRING = "string"
    LONG = "long"
    DOUBLE = "double"
    DATE = "date"


@dataclass(frozen=True)
class JobParameter:
    """One typed job parameter."""

    name: str
    value: str | int | float | date
    type: ParameterType
    identifying: bool = True

    def as_text(self) -> str:
        if isinstance(self.value, date):
            return self.value.isoformat()
        return str(self.value)


@dataclass(frozen=True)
class JobParameters:
    """Immutable ordered collection of job parameters."""

    parameters: tuple[JobParameter, ...] = ()

    def __post_init__(self) -> None:
        names = [p.name for p in self.parameters]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate job parameter names: {names}")

    def __contains__(self, name: object) -> bool:
        return any(p.name == name for p in self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)

    def get_parameter(self, name: str) -> JobParameter | None:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def get(self, name: str, default: Any = None) -> Any:
        parameter = self.get_parameter(name)
        return default if parameter is None else parameter.value

    def get_string(self, name: str) -> str:
        parameter = self._require(name)
        return parameter.as_text()

    def get_long(self, name: str) -> int:
        parameter = self._require(name)
        try:
            return int(parameter.value)
        except (TypeError, ValueError):
            raise InvalidJobParametersError(
                name, f"expected an integer, got {parameter.value!r}",
            ) from None

    def get_double(self, name: str) -> float:
        parameter = self._require(name)
        try:
            return float(parameter.value)
        except (TypeError, ValueError):
            raise InvalidJobParametersError(
                name, f"expected a number, got {parameter.value!r}",
            ) from None

    def get_date(self, name: str) -> date:
        parameter = self._require(name)
        if isinstance(parameter.value, date):
            return parameter.value
        try:
            return date.fromisoformat(str(parameter.value))
        except ValueError:
            raise InvalidJobParametersError(
                name, f"expected an ISO date, got {parameter.value!r}",
            ) from None

    def to_dict(self) -> dict[str, str]:
        """Plain ``name -> text`` mapping for persistence and logs."""
        return {p.name: p.as_text() for p in self.parameters}

    def identifying_key(self) -> str:
        """SHA-256 over the sorted identifying parameters (the job key)."""
        canonical = ";".join(
            f"{p.name}={p.as_text()}({p.type.value})"
            for p in sorted(self.parameters, key=lambda p: p.name)
            if p.identifying
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def _require(self, name: str) -> JobParameter:
        parameter = self.get_parameter(name)
        if parameter is None:
            raise InvalidJobParametersError(name, "parameter is missing")
        return parameter


class JobParametersBuilder:
    """Fluent builder for JobParameters."""

    def __init__(self) -> None:
        self._parameters: dict[str, JobParameter] = {}

    def add_string(self, name: str, value: str, identifying: bool = True) -> JobParametersBuilder:
        return self._add(JobParameter(name, value, ParameterType.STRING, identifying))

    def add_long(self, name: str, value: int, identifying: bool = True) -> JobParametersBuilder:
        return self._add(JobParameter(name, int(value), ParameterType.LONG, identifying))

    def add_double(self, name: str, value: float, identifying: bool = True) -> JobParametersBuilder:
        return self._add(JobParameter(name, float(value), ParameterType.DOUBLE, identifying))

    def add_date(self, name: str, value: date, identifying: bool = True) -> JobParametersBuilder:
        return self._add(JobParameter(name, value, ParameterType.DATE, identifying))

    def to_job_parameters(self) -> JobParameters:
        return JobParameters(tuple(self._parameters.values()))

    def _add(self, parameter: JobParameter) -> JobParametersBuilder:
        # Later values replace earlier ones, keeping first-insertion order
        self._parameters[parameter.name] = parameter
        return self


# =============================================================================
# Typed configuration derived from parameters
# =============================================================================


def parse_processing_mode(value: str | ProcessingMode) -> ProcessingMode:
    """Resolve a processing mode, case-insensitively.

    Raises:
        InvalidJobParametersError: For anything but FAST, NORMAL or CAREFUL.
    """
    if isinstance(value, ProcessingMode):
        return value
    try:
        return ProcessingMode(str(value).strip().upper())
    except ValueError:
        raise InvalidJobParametersError(
            PROCESSING_MODE,
            f"unknown processing mode {value!r}; "
            f"expected one of {[m.value for m in ProcessingMode]}",
        ) from None


@dataclass(frozen=True)
class OrderCriteria:
    """Row source filter: an inclusive date window and a minimum amount."""

    start_date: date
    end_date: date
    min_amount: int

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise InvalidJobParametersError(
                START_DATE,
                f"window start {self.start_date} is after end {self.end_date}",
            )

    @property
    def window_start(self) -> datetime:
        """First instant of the window (inclusive)."""
        return datetime.combine(self.start_date, datetime.min.time())

    @property
    def window_end(self) -> datetime:
        """First instant after the window (exclusive)."""
        return datetime.combine(
            self.end_date + timedelta(days=1), datetime.min.time(),
        )

    @classmethod
    def from_parameters(cls, parameters: JobParameters) -> OrderCriteria:
        return cls(
            start_date=parameters.get_date(START_DATE),
            end_date=parameters.get_date(END_DATE),
            min_amount=amount_threshold(parameters),
        )


def amount_threshold(parameters: JobParameters) -> int:
    """Integer form of the ``minAmount`` threshold.

    Decimal text is accepted.  Amounts are whole numbers, so
    ``amount >= 7000.5`` is the same filter as ``amount >= 7001``: the
    threshold is rounded up.

    Raises:
        InvalidJobParametersError: Missing, non-numeric or non-finite value.
    """
    text = parameters.get_string(MIN_AMOUNT).strip()
    try:
        threshold = Decimal(text)
    except InvalidOperation:
        raise InvalidJobParametersError(
            MIN_AMOUNT, f"expected a number, got {text!r}",
        ) from None
    if not threshold.is_finite():
        raise InvalidJobParametersError(
            MIN_AMOUNT, f"expected a finite number, got {text!r}",
        )
    return int(threshold.to_integral_value(rounding=ROUND_CEILING))


def processing_mode_from(parameters: JobParameters) -> ProcessingMode:
    return parse_processing_mode(parameters.get_string(PROCESSING_MODE))


def build_scheduled_parameters(
    today: date,
    lookback_days: int,
    min_amount: int,
    processing_mode: str | ProcessingMode,
    token: int,
) -> JobParameters:
    """Parameter set for one scheduled run.

    Window is ``today - lookback_days`` through ``today``.  ``token`` (epoch
    millis of the firing) makes every run's parameter set distinct.
    """
    mode = parse_processing_mode(processing_mode)
    return (
        JobParametersBuilder()
        .add_string(START_DATE, (today - timedelta(days=lookback_days)).isoformat())
        .add_string(END_DATE, today.isoformat())
        .add_string(MIN_AMOUNT, str(min_amount))
        .add_string(PROCESSING_MODE, mode.value)
        .add_long(RUN_TOKEN, token)
        .to_job_parameters()
    )
