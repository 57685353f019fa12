"""
order_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.  The chunk step and launcher report progress by
returning new snapshots (``dataclasses.replace``), never by mutating.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from order_kernel.models.order import OrderStatus


# =============================================================================
# Status enums
# =============================================================================


class BatchStatus(str, Enum):
    """Lifecycle status shared by job and step executions."""

    STARTED = "started"  # Execution in progress
    COMPLETED = "completed"  # Finished successfully
    FAILED = "failed"  # Finished with an error
    ABANDONED = "abandoned"  # STARTED row left behind by a dead process

    @property
    def is_running(self) -> bool:
        return self is BatchStatus.STARTED


class ChunkState(str, Enum):
    """States of the chunk step engine for one step execution."""

    READING = "reading"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    COMPLETED = "completed"
    FAILED = "failed"


class RepeatStatus(str, Enum):
    """Tasklet return value: run again, or done."""

    CONTINUABLE = "continuable"
    FINISHED = "finished"


class ProcessingMode(str, Enum):
    """Business rule variant applied by the order processor."""

    FAST = "FAST"  # Everything completes
    NORMAL = "NORMAL"  # Small orders complete, large ones go to PROCESSING
    CAREFUL = "CAREFUL"  # Everything goes to PROCESSING


# =============================================================================
# Order record
# =============================================================================


@dataclass(frozen=True)
class Order:
    """Immutable snapshot of one ``orders`` row as read by the row source."""

    id: int
    order_number: str
    customer_name: str
    amount: int
    status: OrderStatus
    order_date: datetime
    processed_date: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Order:
        """Map a result row to an Order; columns match field names 1:1."""
        return cls(
            id=row["id"],
            order_number=row["order_number"],
            customer_name=row["customer_name"],
            amount=row["amount"],
            status=OrderStatus(row["status"]),
            order_date=row["order_date"],
            processed_date=row["processed_date"],
        )


# =============================================================================
# Execution DTOs
# =============================================================================


@dataclass(frozen=True)
class StepExecution:
    """Immutable snapshot of one step run within a job execution.

    ``process_count`` counts items that came out of the processor,
    ``filter_count`` those it skipped; ``read_count`` is their sum.
    """

    step_execution_id: UUID
    job_execution_id: UUID
    step_name: str
    status: BatchStatus = BatchStatus.STARTED
    read_count: int = 0
    process_count: int = 0
    filter_count: int = 0
    write_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == BatchStatus.COMPLETED


@dataclass(frozen=True)
class JobExecution:
    """Immutable record of one orchestrator run.

    ``job_key`` is the hash of the identifying parameters; together with
    ``job_name`` it identifies the job instance.
    """

    job_execution_id: UUID
    job_name: str
    job_key: str
    status: BatchStatus
    parameters: dict[str, Any] = field(default_factory=dict)
    step_executions: tuple[StepExecution, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    exit_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == BatchStatus.COMPLETED

    def step(self, step_name: str) -> StepExecution | None:
        """Return the execution of ``step_name``, or None if it never ran."""
        for step_execution in self.step_executions:
            if step_execution.step_name == step_name:
                return step_execution
        return None
