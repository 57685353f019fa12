"""Job definitions."""

from order_batch.jobs.order_job import (
    ORDER_JOB_NAME,
    PRECHECK_STEP_NAME,
    PROCESS_STEP_NAME,
    build_order_processing_job,
    validate_order_parameters,
)

__all__ = [
    "ORDER_JOB_NAME",
    "PRECHECK_STEP_NAME",
    "PROCESS_STEP_NAME",
    "build_order_processing_job",
    "validate_order_parameters",
]
