"""Step protocols and the chunk / tasklet step implementations."""

from order_batch.steps.base import (
    ItemProcessor,
    ItemReader,
    ItemWriter,
    Job,
    Step,
    StepContext,
    Tasklet,
)
from order_batch.steps.chunk import ChunkStep
from order_batch.steps.tasklet import TaskletStep

__all__ = [
    "ChunkStep",
    "ItemProcessor",
    "ItemReader",
    "ItemWriter",
    "Job",
    "Step",
    "StepContext",
    "Tasklet",
    "TaskletStep",
]
