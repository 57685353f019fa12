"""
The order processing job: a pending-order count, then the chunked update.

    beforeParameterStep   TaskletStep(PendingOrderCountTasklet)
    parameterProcessStep  ChunkStep(PendingOrderReader -> OrderProcessor
                                    -> OrderStatusWriter)

Built once at process start and handed to the launcher and the scheduler.
The reader and processor are rebuilt for every execution from that run's
parameters.
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from order_kernel.domain.clock import Clock, SystemClock

from order_batch.domain.parameters import (
    JobParameters,
    OrderCriteria,
    processing_mode_from,
)
from order_batch.orders.precheck import PendingOrderCountTasklet
from order_batch.orders.processor import OrderProcessor
from order_batch.orders.reader import PendingOrderReader
from order_batch.orders.writer import OrderStatusWriter
from order_batch.steps.base import ItemWriter, Job
from order_batch.steps.chunk import ChunkStep
from order_batch.steps.tasklet import TaskletStep

ORDER_JOB_NAME = "orderProcessingJob"
PRECHECK_STEP_NAME = "beforeParameterStep"
PROCESS_STEP_NAME = "parameterProcessStep"


def validate_order_parameters(parameters: JobParameters) -> None:
    """Reject a parameter set the steps could not be built from.

    Raises:
        InvalidJobParametersError: Missing or malformed window, amount or mode.
    """
    OrderCriteria.from_parameters(parameters)
    processing_mode_from(parameters)


def build_order_processing_job(
    engine: Engine,
    chunk_size: int = 3,
    fetch_size: int = 100,
    clock: Clock | None = None,
    job_name: str = ORDER_JOB_NAME,
    writer: ItemWriter | None = None,
) -> Job:
    """Assemble the two-step order processing job.

    Args:
        engine: Engine the reader opens its streaming connection on.
        chunk_size: Orders per committed chunk.
        fetch_size: Rows fetched per round trip by the reader.
        clock: Source of ``processed_date``.
        job_name: Name recorded in the execution-tracking tables.
        writer: Sink override; defaults to OrderStatusWriter.
    """
    effective_clock = clock or SystemClock()

    def reader_factory(parameters: JobParameters) -> PendingOrderReader:
        return PendingOrderReader(
            engine, OrderCriteria.from_parameters(parameters), fetch_size=fetch_size,
        )

    def processor_factory(parameters: JobParameters) -> OrderProcessor:
        return OrderProcessor(processing_mode_from(parameters), effective_clock)

    return Job(
        name=job_name,
        steps=(
            TaskletStep(PRECHECK_STEP_NAME, PendingOrderCountTasklet()),
            ChunkStep(
                PROCESS_STEP_NAME,
                reader_factory=reader_factory,
                processor_factory=processor_factory,
                writer=writer or OrderStatusWriter(),
                chunk_size=chunk_size,
            ),
        ),
        validator=validate_order_parameters,
    )
