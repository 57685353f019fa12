"""
Tests for order_kernel.exceptions.

Validates the exception hierarchy, error codes, and the structured
fields each error carries.
"""

import pytest

from order_kernel.exceptions import (
    ConfigurationError,
    InvalidCronExpressionError,
    InvalidJobParametersError,
    JobExecutionAlreadyRunningError,
    JobExecutionError,
    JobInstanceAlreadyCompleteError,
    OrderBatchError,
    ScheduleError,
    SchedulingError,
    SinkError,
    SourceError,
    StepError,
    TaskletError,
    TransformError,
)


# =============================================================================
# Hierarchy
# =============================================================================


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "error_type, parent",
        [
            (StepError, OrderBatchError),
            (SourceError, StepError),
            (TransformError, StepError),
            (SinkError, StepError),
            (TaskletError, StepError),
            (JobExecutionError, OrderBatchError),
            (InvalidJobParametersError, JobExecutionError),
            (JobInstanceAlreadyCompleteError, JobExecutionError),
            (JobExecutionAlreadyRunningError, JobExecutionError),
            (ScheduleError, OrderBatchError),
            (SchedulingError, ScheduleError),
            (InvalidCronExpressionError, ScheduleError),
            (ConfigurationError, OrderBatchError),
        ],
    )
    def test_inherits(self, error_type, parent):
        assert issubclass(error_type, parent)

    def test_codes_are_unique(self):
        types = [
            OrderBatchError, StepError, SourceError, TransformError, SinkError,
            TaskletError, JobExecutionError, InvalidJobParametersError,
            JobInstanceAlreadyCompleteError, JobExecutionAlreadyRunningError,
            ScheduleError, SchedulingError, InvalidCronExpressionError,
            ConfigurationError,
        ]
        codes = [t.code for t in types]
        assert len(codes) == len(set(codes))


# =============================================================================
# Structured fields
# =============================================================================


class TestStructuredFields:
    def test_source_error(self):
        exc = SourceError("pendingOrderReader", "query failed")
        assert exc.code == "SOURCE_ERROR"
        assert exc.source_name == "pendingOrderReader"
        assert "query failed" in str(exc)

    def test_sink_error(self):
        exc = SinkError("orderStatusWriter", 3, "database is locked")
        assert exc.code == "SINK_ERROR"
        assert exc.chunk_size == 3
        assert "chunk of 3" in str(exc)

    def test_tasklet_error(self):
        exc = TaskletError("pendingOrderCount", "count query failed")
        assert exc.code == "TASKLET_ERROR"
        assert exc.tasklet_name == "pendingOrderCount"

    def test_invalid_parameters(self):
        exc = InvalidJobParametersError("processingMode", "unknown processing mode 'TURBO'")
        assert exc.code == "INVALID_JOB_PARAMETERS"
        assert exc.parameter == "processingMode"

    def test_already_complete(self):
        exc = JobInstanceAlreadyCompleteError("orderProcessingJob", "abc123")
        assert exc.code == "JOB_INSTANCE_ALREADY_COMPLETE"
        assert exc.job_key == "abc123"

    def test_already_running(self):
        exc = JobExecutionAlreadyRunningError("orderProcessingJob", "exec-1")
        assert exc.code == "JOB_EXECUTION_ALREADY_RUNNING"
        assert exc.running_execution_id == "exec-1"

    def test_scheduling_error_records_cause(self):
        cause = SinkError("orderStatusWriter", 3, "boom")
        exc = SchedulingError("orderProcessingJob", cause)
        assert exc.code == "SCHEDULING_ERROR"
        assert exc.cause_type == "SinkError"
        assert exc.cause_code == "SINK_ERROR"

    def test_scheduling_error_plain_cause(self):
        exc = SchedulingError("orderProcessingJob", RuntimeError("boom"))
        assert exc.cause_type == "RuntimeError"
        assert exc.cause_code is None

    def test_invalid_cron(self):
        exc = InvalidCronExpressionError("bad", "expected 5 fields, got 1")
        assert exc.code == "INVALID_CRON_EXPRESSION"
        assert exc.expression == "bad"

    def test_configuration_error(self):
        exc = ConfigurationError("step.chunk_size", "must be >= 1, got 0")
        assert exc.code == "CONFIGURATION_ERROR"
        assert exc.setting == "step.chunk_size"
