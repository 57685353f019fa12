"""
JobRepository -- execution tracking for job and step runs.

Contract:
    Persists JobInstance / JobExecution / StepExecution rows keyed by
    (job name, job key).  Refuses to start an instance that already
    completed and refuses to start a job while another run of it is still
    STARTED.

Architecture: order_batch/services.  Imports from order_batch.domain,
    order_batch.models and kernel infrastructure.

Invariants enforced:
    - Idempotent rejection: a COMPLETED instance is never run again.
    - Overlap guard: one STARTED execution per job name.  STARTED rows older
      than ``stale_after`` are marked ABANDONED instead of blocking forever.
    - All timestamps from the injected Clock.

Non-goals:
    - Does NOT open or commit transactions.  Every method works on the
      caller's session so step counts can share the chunk's transaction.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from order_kernel.domain.clock import Clock, SystemClock
from order_kernel.exceptions import (
    JobExecutionAlreadyRunningError,
    JobInstanceAlreadyCompleteError,
)
from order_kernel.logging_config import get_logger

from order_batch.domain.parameters import JobParameters
from order_batch.domain.types import BatchStatus, JobExecution, StepExecution
from order_batch.models.batch import (
    JobExecutionModel,
    JobInstanceModel,
    StepExecutionModel,
)

logger = get_logger("batch.repository")


class JobRepository:
    """Execution-tracking store on the pipeline's own database."""

    def __init__(
        self,
        clock: Clock | None = None,
        stale_after: timedelta = timedelta(hours=1),
    ):
        self._clock = clock or SystemClock()
        self._stale_after = stale_after

    # -------------------------------------------------------------------------
    # Job executions
    # -------------------------------------------------------------------------

    def create_job_execution(
        self,
        session: Session,
        job_name: str,
        parameters: JobParameters,
    ) -> JobExecution:
        """Create a STARTED execution for (job_name, parameters).

        Raises:
            JobInstanceAlreadyCompleteError: The identical parameter set
                already completed.
            JobExecutionAlreadyRunningError: A run of this job is STARTED
                and not yet stale.
        """
        now = self._clock.now()
        job_key = parameters.identifying_key()

        self._guard_running(session, job_name, now)

        instance = session.execute(
            select(JobInstanceModel)
            .where(
                JobInstanceModel.job_name == job_name,
                JobInstanceModel.job_key == job_key,
            )
            .with_for_update()
        ).scalar_one_or_none()

        if instance is None:
            instance = JobInstanceModel(job_name=job_name, job_key=job_key)
            session.add(instance)
            try:
                session.flush()
            except IntegrityError:
                # Another process registered the same instance first; the
                # caller's transaction is rolled back with this error
                raise JobExecutionAlreadyRunningError(job_name, job_key) from None
        else:
            completed = session.execute(
                select(JobExecutionModel.id).where(
                    JobExecutionModel.job_instance_id == instance.id,
                    JobExecutionModel.status == BatchStatus.COMPLETED.value,
                )
            ).first()
            if completed is not None:
                raise JobInstanceAlreadyCompleteError(job_name, job_key)

        model = JobExecutionModel(
            job_instance_id=instance.id,
            job_name=job_name,
            status=BatchStatus.STARTED.value,
            parameters=parameters.to_dict(),
            started_at=now,
        )
        session.add(model)
        session.flush()

        logger.info(
            "job_execution_created",
            extra={
                "job_execution_id": str(model.id),
                "job_name": job_name,
                "job_key": job_key,
                "parameters": parameters.to_dict(),
            },
        )

        return JobExecution(
            job_execution_id=model.id,
            job_name=job_name,
            job_key=job_key,
            status=BatchStatus.STARTED,
            parameters=parameters.to_dict(),
            started_at=now,
        )

    def complete_job_execution(
        self,
        session: Session,
        execution: JobExecution,
        status: BatchStatus,
        exit_message: str | None = None,
    ) -> JobExecution:
        """Persist the final status of a job execution and return its DTO."""
        model = self._get_job_model(session, execution.job_execution_id)
        model.status = status.value
        model.completed_at = self._clock.now()
        model.exit_message = exit_message
        session.flush()
        session.refresh(model)
        return model.to_dto()

    def get_job_execution(self, session: Session, job_execution_id: UUID) -> JobExecution | None:
        model = session.get(JobExecutionModel, job_execution_id)
        return None if model is None else model.to_dto()

    def find_job_executions(self, session: Session, job_name: str) -> tuple[JobExecution, ...]:
        """All executions of ``job_name``, oldest first."""
        models = session.execute(
            select(JobExecutionModel)
            .where(JobExecutionModel.job_name == job_name)
            .order_by(JobExecutionModel.started_at, JobExecutionModel.created_at)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def is_instance_complete(
        self, session: Session, job_name: str, parameters: JobParameters,
    ) -> bool:
        count = session.execute(
            select(func.count(JobExecutionModel.id))
            .join(JobInstanceModel, JobExecutionModel.job_instance_id == JobInstanceModel.id)
            .where(
                JobInstanceModel.job_name == job_name,
                JobInstanceModel.job_key == parameters.identifying_key(),
                JobExecutionModel.status == BatchStatus.COMPLETED.value,
            )
        ).scalar_one()
        return count > 0

    # -------------------------------------------------------------------------
    # Step executions
    # -------------------------------------------------------------------------

    def create_step_execution(
        self,
        session: Session,
        job_execution_id: UUID,
        step_name: str,
    ) -> StepExecution:
        """Create a STARTED step execution, ordered after earlier steps."""
        now = self._clock.now()
        step_index = session.execute(
            select(func.count(StepExecutionModel.id)).where(
                StepExecutionModel.job_execution_id == job_execution_id,
            )
        ).scalar_one()

        model = StepExecutionModel(
            job_execution_id=job_execution_id,
            step_name=step_name,
            step_index=step_index,
            status=BatchStatus.STARTED.value,
            started_at=now,
        )
        session.add(model)
        session.flush()

        return StepExecution(
            step_execution_id=model.id,
            job_execution_id=job_execution_id,
            step_name=step_name,
            status=BatchStatus.STARTED,
            started_at=now,
        )

    def get_step_execution(
        self, session: Session, step_execution_id: UUID,
    ) -> StepExecution | None:
        """Last committed snapshot of a step execution."""
        model = session.get(StepExecutionModel, step_execution_id)
        return None if model is None else model.to_dto()

    def update_step_execution(self, session: Session, step_execution: StepExecution) -> None:
        """Persist counts and status; joins the caller's transaction."""
        model = session.get(StepExecutionModel, step_execution.step_execution_id)
        if model is None:
            raise LookupError(
                f"Step execution not found: {step_execution.step_execution_id}"
            )
        model.apply(step_execution)
        session.flush()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _guard_running(self, session: Session, job_name: str, now: datetime) -> None:
        """Abandon stale STARTED runs, then refuse if any run is still live.

        The cutoff comparison happens in SQL so stored and clock timestamps
        never meet as mixed naive/aware Python values.
        """
        cutoff = now - self._stale_after
        stale = session.execute(
            select(JobExecutionModel)
            .where(
                JobExecutionModel.job_name == job_name,
                JobExecutionModel.status == BatchStatus.STARTED.value,
                JobExecutionModel.started_at < cutoff,
            )
            .with_for_update()
        ).scalars().all()

        for model in stale:
            model.status = BatchStatus.ABANDONED.value
            model.completed_at = now
            model.exit_message = "Abandoned: still STARTED after stale timeout"
            logger.warning(
                "job_execution_abandoned",
                extra={
                    "job_execution_id": str(model.id),
                    "job_name": job_name,
                    "started_at": model.started_at,
                },
            )
        session.flush()

        running_id = session.execute(
            select(JobExecutionModel.id)
            .where(
                JobExecutionModel.job_name == job_name,
                JobExecutionModel.status == BatchStatus.STARTED.value,
            )
            .with_for_update()
        ).scalars().first()

        if running_id is not None:
            raise JobExecutionAlreadyRunningError(job_name, str(running_id))

    @staticmethod
    def _get_job_model(session: Session, job_execution_id: UUID) -> JobExecutionModel:
        model = session.get(JobExecutionModel, job_execution_id)
        if model is None:
            raise LookupError(f"Job execution not found: {job_execution_id}")
        return model
