"""
Step protocols, the step context, and the Job definition.

Contract:
    ``ItemReader`` / ``ItemProcessor`` / ``ItemWriter`` are the three
    collaborators of a chunk step.  ``Tasklet`` is the single-shot unit of
    work behind a tasklet step.  ``Step`` is what the launcher runs: it
    receives a STARTED ``StepExecution`` and returns the finished one.

    ``Job`` is an ordered, immutable list of steps plus an optional
    parameter validator.  Jobs are built once at process start and passed
    by reference to the launcher and the scheduler.

Non-goals:
    - Steps do NOT raise step errors to the launcher.  Failure is reported
      as a FAILED StepExecution.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterator, Protocol, Sequence, TypeVar, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from order_kernel.domain.clock import Clock

from order_batch.domain.parameters import JobParameters
from order_batch.domain.types import RepeatStatus, StepExecution

if TYPE_CHECKING:
    from order_batch.services.repository import JobRepository

T = TypeVar("T")
InT = TypeVar("InT", contravariant=True)
OutT = TypeVar("OutT", covariant=True)


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class StepContext:
    """Everything a step needs for one execution, passed explicitly."""

    job_name: str
    job_execution_id: UUID
    parameters: JobParameters
    session_factory: sessionmaker[Session]
    repository: JobRepository
    clock: Clock


# =============================================================================
# Chunk collaborators
# =============================================================================


@runtime_checkable
class ItemReader(Protocol[T]):
    """Forward-only item source.

    ``open()`` returns a context manager yielding a single-pass iterator;
    leaving the context releases the cursor.
    """

    def open(self) -> AbstractContextManager[Iterator[T]]: ...


@runtime_checkable
class ItemProcessor(Protocol[InT, OutT]):
    """Maps one item to one output item, or to None to filter it out."""

    def process(self, item: InT) -> OutT | None: ...


@runtime_checkable
class ItemWriter(Protocol[T]):
    """Writes one chunk inside the caller's transaction.

    Returns the number of items written.
    """

    def write(self, items: Sequence[T], session: Session) -> int: ...


# =============================================================================
# Tasklet and Step
# =============================================================================


@runtime_checkable
class Tasklet(Protocol):
    """Single-shot unit of work, run inside one transaction per call."""

    @property
    def name(self) -> str: ...

    def execute(self, context: StepContext, session: Session) -> RepeatStatus: ...


@runtime_checkable
class Step(Protocol):
    @property
    def name(self) -> str: ...

    def execute(
        self, step_execution: StepExecution, context: StepContext,
    ) -> StepExecution: ...


# =============================================================================
# Job
# =============================================================================


@dataclass(frozen=True)
class Job:
    """Immutable job definition: a name and an ordered tuple of steps."""

    name: str
    steps: tuple[Step, ...]
    validator: Callable[[JobParameters], None] | None = None

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        names = [step.name for step in self.steps]
        if len(names) != len(set(names)):
            raise ValueError(f"Job '{self.name}' has duplicate step names: {names}")

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(step.name for step in self.steps)

    def validate(self, parameters: JobParameters) -> None:
        """Run the validator, if any.

        Raises:
            InvalidJobParametersError: From the validator.
        """
        if self.validator is not None:
            self.validator(parameters)
