"""
TaskletStep -- runs a single-shot Tasklet inside its own transaction.

The tasklet is called again while it answers CONTINUABLE; every call is a
separate transaction that also commits the step's commit count.  A
StepError (or a database error) from the tasklet ends the step as FAILED.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy.exc import SQLAlchemyError

from order_kernel.exceptions import StepError, TaskletError
from order_kernel.logging_config import get_logger

from order_batch.domain.types import BatchStatus, RepeatStatus, StepExecution
from order_batch.steps.base import StepContext, Tasklet

logger = get_logger("batch.steps.tasklet")


class TaskletStep:
    """Step wrapper around a Tasklet."""

    def __init__(self, name: str, tasklet: Tasklet):
        self._name = name
        self._tasklet = tasklet

    @property
    def name(self) -> str:
        return self._name

    @property
    def tasklet(self) -> Tasklet:
        return self._tasklet

    def execute(self, step_execution: StepExecution, context: StepContext) -> StepExecution:
        while True:
            try:
                with context.session_factory.begin() as session:
                    status = self._tasklet.execute(context, session)
                    step_execution = replace(
                        step_execution, commit_count=step_execution.commit_count + 1,
                    )
                    context.repository.update_step_execution(session, step_execution)
            except SQLAlchemyError as exc:
                return self._failed(
                    step_execution, TaskletError(self._tasklet.name, str(exc)),
                )
            except StepError as exc:
                return self._failed(step_execution, exc)

            if status is RepeatStatus.FINISHED:
                return replace(step_execution, status=BatchStatus.COMPLETED)

    def _failed(self, step_execution: StepExecution, exc: StepError) -> StepExecution:
        logger.error(
            "tasklet_step_failed",
            extra={
                "step_name": self._name,
                "tasklet": self._tasklet.name,
                "error_code": exc.code,
                "error": str(exc),
            },
        )
        return replace(
            step_execution,
            status=BatchStatus.FAILED,
            rollback_count=step_execution.rollback_count + 1,
            error_code=exc.code,
            error_message=str(exc),
        )
