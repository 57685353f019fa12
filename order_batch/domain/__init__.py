"""
order_batch.domain -- Pure types, parameters, rules and trigger evaluation.

ZERO I/O.  Everything here is a frozen dataclass, an enum, or a pure
function of its arguments.
"""

from order_batch.domain.parameters import (
    JobParameter,
    JobParameters,
    JobParametersBuilder,
    OrderCriteria,
    ParameterType,
    build_scheduled_parameters,
    parse_processing_mode,
)
from order_batch.domain.types import (
    BatchStatus,
    ChunkState,
    JobExecution,
    Order,
    ProcessingMode,
    RepeatStatus,
    StepExecution,
)

__all__ = [
    "BatchStatus",
    "ChunkState",
    "JobExecution",
    "JobParameter",
    "JobParameters",
    "JobParametersBuilder",
    "Order",
    "OrderCriteria",
    "ParameterType",
    "ProcessingMode",
    "RepeatStatus",
    "StepExecution",
    "build_scheduled_parameters",
    "parse_processing_mode",
]
