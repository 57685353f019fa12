"""
ORM models for execution tracking.

Contract:
    JobInstanceModel, JobExecutionModel and StepExecutionModel persist
    which parameter sets ran, how each run ended, and the per-step counts.
    Execution rows have ``to_dto()`` methods returning frozen DTOs.

Architecture: order_batch/models.  Imports from order_kernel.db.base only.

Invariants enforced:
    - (job_name, job_key) is UNIQUE on JobInstanceModel: one instance per
      identical identifying parameter set.
    - Step counts are written in the same transaction as the chunk they
      describe.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from order_batch.domain.types import JobExecution, StepExecution


class JobInstanceModel(TrackedBase):
    """One logical run identity: a job name plus its identifying parameters."""

    __tablename__ = "batch_job_instances"

    __table_args__ = (
        UniqueConstraint("job_name", "job_key", name="uq_job_instance_key"),
    )

    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    job_key: Mapped[str] = mapped_column(String(64), nullable=False)

    executions: Mapped[list["JobExecutionModel"]] = relationship(
        "JobExecutionModel",
        back_populates="instance",
        order_by="JobExecutionModel.started_at",
    )


class JobExecutionModel(TrackedBase):
    """One attempt at running a job instance."""

    __tablename__ = "batch_job_executions"

    __table_args__ = (
        Index("ix_batch_job_executions_name_status", "job_name", "status"),
        Index("ix_batch_job_executions_instance", "job_instance_id"),
    )

    job_instance_id: Mapped[UUID] = mapped_column(
        ForeignKey("batch_job_instances.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    exit_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    instance: Mapped["JobInstanceModel"] = relationship(
        "JobInstanceModel",
        back_populates="executions",
        foreign_keys=[job_instance_id],
    )
    steps: Mapped[list["StepExecutionModel"]] = relationship(
        "StepExecutionModel",
        back_populates="job_execution",
        foreign_keys="StepExecutionModel.job_execution_id",
        order_by="StepExecutionModel.step_index",
    )

    def to_dto(self) -> JobExecution:
        from order_batch.domain.types import BatchStatus, JobExecution

        return JobExecution(
            job_execution_id=self.id,
            job_name=self.job_name,
            job_key=self.instance.job_key,
            status=BatchStatus(self.status),
            parameters=dict(self.parameters or {}),
            step_executions=tuple(step.to_dto() for step in self.steps),
            started_at=self.started_at,
            completed_at=self.completed_at,
            exit_message=self.exit_message,
        )


class StepExecutionModel(TrackedBase):
    """Counts and outcome of one step within a job execution."""

    __tablename__ = "batch_step_executions"

    __table_args__ = (
        Index("ix_batch_step_executions_job", "job_execution_id"),
    )

    job_execution_id: Mapped[UUID] = mapped_column(
        ForeignKey("batch_job_executions.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_name: Mapped[str] = mapped_column(String(200), nullable=False)
    step_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    read_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    process_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    filter_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    write_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rollback_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    job_execution: Mapped["JobExecutionModel"] = relationship(
        "JobExecutionModel",
        back_populates="steps",
        foreign_keys=[job_execution_id],
    )

    def to_dto(self) -> StepExecution:
        from order_batch.domain.types import BatchStatus, StepExecution

        return StepExecution(
            step_execution_id=self.id,
            job_execution_id=self.job_execution_id,
            step_name=self.step_name,
            status=BatchStatus(self.status),
            read_count=self.read_count,
            process_count=self.process_count,
            filter_count=self.filter_count,
            write_count=self.write_count,
            commit_count=self.commit_count,
            rollback_count=self.rollback_count,
            started_at=self.started_at,
            completed_at=self.completed_at,
            error_code=self.error_code,
            error_message=self.error_message,
        )

    def apply(self, dto: StepExecution) -> None:
        """Copy status, counts and outcome from a StepExecution snapshot."""
        self.status = dto.status.value
        self.read_count = dto.read_count
        self.process_count = dto.process_count
        self.filter_count = dto.filter_count
        self.write_count = dto.write_count
        self.commit_count = dto.commit_count
        self.rollback_count = dto.rollback_count
        self.completed_at = dto.completed_at
        self.error_code = dto.error_code
        self.error_message = dto.error_message
