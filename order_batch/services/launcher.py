"""
JobLauncher -- runs a Job's steps in order for one parameter set.

Contract:
    ``run(job, parameters)`` validates the parameters, registers a STARTED
    execution with the JobRepository, runs each step in declaration order,
    and persists the final status.  Returns the finished ``JobExecution``.

Architecture: order_batch/services.  Imports from order_batch.domain,
    order_batch.steps, order_batch.services.repository and kernel
    infrastructure.

Invariants enforced:
    - Strict sequencing: a step starts only after the previous step
      COMPLETED.  The first FAILED step ends the run as FAILED and later
      steps never start.
    - Failure is a value: step errors arrive as FAILED StepExecutions, and
      an unexpected exception from a step is converted into one
      (UNHANDLED_EXCEPTION) so the job row is always finalized.
    - A database error in the launcher's own bookkeeping (step rows, the
      final status) still finalizes the job row as FAILED when the store is
      reachable, then propagates.
    - All timestamps from the injected Clock.

Failure modes (raised before any step runs):
    - InvalidJobParametersError from the job's validator.
    - JobInstanceAlreadyCompleteError / JobExecutionAlreadyRunningError
      from the repository.
"""

from __future__ import annotations

import time
from dataclasses import replace

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from order_kernel.domain.clock import Clock, SystemClock
from order_kernel.logging_config import LogContext, get_logger

from order_batch.domain.parameters import JobParameters
from order_batch.domain.types import BatchStatus, JobExecution, StepExecution
from order_batch.services.repository import JobRepository
from order_batch.steps.base import Job, Step, StepContext

logger = get_logger("batch.launcher")


class JobLauncher:
    """Synchronous job runner.

    Non-goals:
        - Does NOT retry failed steps or chunks.  A rerun is a new launch,
          which only sees rows that are still PENDING.
        - Does NOT run steps in parallel.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        repository: JobRepository | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._repository = repository or JobRepository(clock=self._clock)

    @property
    def repository(self) -> JobRepository:
        return self._repository

    def run(self, job: Job, parameters: JobParameters) -> JobExecution:
        """Run ``job`` once with ``parameters``.

        Raises:
            InvalidJobParametersError: Parameters rejected by the validator.
            JobInstanceAlreadyCompleteError: Identical parameters completed.
            JobExecutionAlreadyRunningError: Another run is in progress.
        """
        start_time = time.monotonic()
        job.validate(parameters)

        with self._session_factory.begin() as session:
            execution = self._repository.create_job_execution(
                session, job.name, parameters,
            )

        with LogContext.bind(
            job_name=job.name,
            job_execution_id=str(execution.job_execution_id),
        ):
            logger.info(
                "job_execution_started",
                extra={
                    "job_name": job.name,
                    "steps": list(job.step_names),
                    "parameters": parameters.to_dict(),
                },
            )

            context = StepContext(
                job_name=job.name,
                job_execution_id=execution.job_execution_id,
                parameters=parameters,
                session_factory=self._session_factory,
                repository=self._repository,
                clock=self._clock,
            )

            status = BatchStatus.COMPLETED
            exit_message: str | None = None

            try:
                for step in job.steps:
                    result = self._run_step(step, context)
                    if not result.succeeded:
                        status = BatchStatus.FAILED
                        exit_message = (
                            f"Step '{step.name}' failed: "
                            f"{result.error_code}: {result.error_message}"
                        )
                        break

                with self._session_factory.begin() as session:
                    final = self._repository.complete_job_execution(
                        session, execution, status, exit_message,
                    )
            except Exception as exc:
                # The job row must not stay STARTED, or the running guard
                # blocks every launch until the stale timeout
                self._fail_job(execution, exc)
                raise

            duration_ms = int((time.monotonic() - start_time) * 1000)
            if final.succeeded:
                logger.info(
                    "job_execution_completed",
                    extra={"job_name": job.name, "duration_ms": duration_ms},
                )
            else:
                logger.warning(
                    "job_execution_failed",
                    extra={
                        "job_name": job.name,
                        "exit_message": exit_message,
                        "duration_ms": duration_ms,
                    },
                )

        return final

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _fail_job(self, execution: JobExecution, exc: Exception) -> None:
        """Mark the execution FAILED in a fresh transaction, if the store allows."""
        exit_message = f"Job bookkeeping failed: {type(exc).__name__}: {exc}"
        logger.error(
            "job_execution_bookkeeping_failed",
            exc_info=True,
            extra={"job_name": execution.job_name},
        )
        try:
            with self._session_factory.begin() as session:
                self._repository.complete_job_execution(
                    session, execution, BatchStatus.FAILED, exit_message,
                )
        except SQLAlchemyError:
            logger.error(
                "job_execution_finalize_failed",
                exc_info=True,
                extra={"job_name": execution.job_name},
            )

    def _run_step(self, step: Step, context: StepContext) -> StepExecution:
        with self._session_factory.begin() as session:
            step_execution = self._repository.create_step_execution(
                session, context.job_execution_id, step.name,
            )

        with LogContext.bind(step_name=step.name):
            logger.info("step_execution_started", extra={"step_name": step.name})
            try:
                result = step.execute(step_execution, context)
            except Exception as exc:
                logger.exception(
                    "step_execution_unhandled_exception",
                    extra={"step_name": step.name},
                )
                with self._session_factory.begin() as session:
                    step_execution = self._repository.get_step_execution(
                        session, step_execution.step_execution_id,
                    ) or step_execution
                result = replace(
                    step_execution,
                    status=BatchStatus.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                )

            result = replace(result, completed_at=self._clock.now())
            with self._session_factory.begin() as session:
                self._repository.update_step_execution(session, result)

            logger.info(
                "step_execution_finished",
                extra={
                    "step_name": step.name,
                    "status": result.status.value,
                    "read_count": result.read_count,
                    "write_count": result.write_count,
                    "error_code": result.error_code,
                },
            )

        return result
