"""ORM models for execution tracking."""

from order_batch.models.batch import (
    JobExecutionModel,
    JobInstanceModel,
    StepExecutionModel,
)

__all__ = [
    "JobExecutionModel",
    "JobInstanceModel",
    "StepExecutionModel",
]
