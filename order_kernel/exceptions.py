"""
Typed exception hierarchy for the order batch pipeline.

Every error carries a machine-readable ``code`` class attribute and the
structured data it was raised with, so callers catch by type and log by
field instead of parsing messages.

    OrderBatchError (base)
    |
    +-- StepError
    |   +-- SourceError
    |   +-- TransformError
    |   +-- SinkError
    |   +-- TaskletError
    |
    +-- JobExecutionError
    |   +-- InvalidJobParametersError
    |   +-- JobInstanceAlreadyCompleteError
    |   +-- JobExecutionAlreadyRunningError
    |
    +-- ScheduleError
    |   +-- SchedulingError
    |   +-- InvalidCronExpressionError
    |
    +-- ConfigurationError

Category   | Code                           | When Raised
-----------|--------------------------------|--------------------------------------
Step       | SOURCE_ERROR                   | Row source cannot open, execute or fetch
           | TRANSFORM_ERROR                | Reserved; not raised by the built-in rules
           | SINK_ERROR                     | Chunk write failed (chunk rolled back)
           | TASKLET_ERROR                  | Single-shot step failed (e.g. count query)
-----------|--------------------------------|--------------------------------------
Job        | INVALID_JOB_PARAMETERS         | Missing/malformed parameter, unknown mode
           | JOB_INSTANCE_ALREADY_COMPLETE  | Identical parameter set already completed
           | JOB_EXECUTION_ALREADY_RUNNING  | A run of the job is still STARTED
-----------|--------------------------------|--------------------------------------
Schedule   | SCHEDULING_ERROR               | Anything escaping a triggered run
           | INVALID_CRON_EXPRESSION        | Cron expression cannot be parsed
-----------|--------------------------------|--------------------------------------
Config     | CONFIGURATION_ERROR            | Settings file or value invalid
"""


class OrderBatchError(Exception):
    """
    Base exception for all order batch errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ORDER_BATCH_ERROR"


# Step-related exceptions


class StepError(OrderBatchError):
    """Base exception for failures inside a step."""

    code: str = "STEP_ERROR"


class SourceError(StepError):
    """The row source could not open, execute or fetch its query."""

    code: str = "SOURCE_ERROR"

    def __init__(self, source_name: str, reason: str):
        self.source_name = source_name
        self.reason = reason
        super().__init__(f"Source '{source_name}' failed: {reason}")


class TransformError(StepError):
    """A record could not be transformed."""

    code: str = "TRANSFORM_ERROR"

    def __init__(self, item_key: str, reason: str):
        self.item_key = item_key
        self.reason = reason
        super().__init__(f"Transform failed for {item_key}: {reason}")


class SinkError(StepError):
    """A chunk could not be written; the whole chunk was rolled back."""

    code: str = "SINK_ERROR"

    def __init__(self, sink_name: str, chunk_size: int, reason: str):
        self.sink_name = sink_name
        self.chunk_size = chunk_size
        self.reason = reason
        super().__init__(
            f"Sink '{sink_name}' failed to write chunk of {chunk_size}: {reason}"
        )


class TaskletError(StepError):
    """A single-shot tasklet failed."""

    code: str = "TASKLET_ERROR"

    def __init__(self, tasklet_name: str, reason: str):
        self.tasklet_name = tasklet_name
        self.reason = reason
        super().__init__(f"Tasklet '{tasklet_name}' failed: {reason}")


# Job-related exceptions


class JobExecutionError(OrderBatchError):
    """Base exception for job launch and tracking errors."""

    code: str = "JOB_EXECUTION_ERROR"


class InvalidJobParametersError(JobExecutionError):
    """A job parameter is missing or malformed."""

    code: str = "INVALID_JOB_PARAMETERS"

    def __init__(self, parameter: str, reason: str):
        self.parameter = parameter
        self.reason = reason
        super().__init__(f"Invalid job parameter '{parameter}': {reason}")


class JobInstanceAlreadyCompleteError(JobExecutionError):
    """The same job was already completed with an identical parameter set."""

    code: str = "JOB_INSTANCE_ALREADY_COMPLETE"

    def __init__(self, job_name: str, job_key: str):
        self.job_name = job_name
        self.job_key = job_key
        super().__init__(
            f"Job '{job_name}' already completed for parameters {job_key}"
        )


class JobExecutionAlreadyRunningError(JobExecutionError):
    """Another execution of the job is still running."""

    code: str = "JOB_EXECUTION_ALREADY_RUNNING"

    def __init__(self, job_name: str, running_execution_id: str):
        self.job_name = job_name
        self.running_execution_id = running_execution_id
        super().__init__(
            f"Job '{job_name}' is already running (execution {running_execution_id})"
        )


# Schedule-related exceptions


class ScheduleError(OrderBatchError):
    """Base exception for scheduling errors."""

    code: str = "SCHEDULE_ERROR"


class SchedulingError(ScheduleError):
    """An exception escaped a triggered run. Logged, never propagated."""

    code: str = "SCHEDULING_ERROR"

    def __init__(self, job_name: str, cause: BaseException):
        self.job_name = job_name
        self.cause_type = type(cause).__name__
        self.cause_code = getattr(cause, "code", None)
        super().__init__(f"Scheduled run of '{job_name}' failed: {cause}")


class InvalidCronExpressionError(ScheduleError):
    """Cron expression could not be parsed."""

    code: str = "INVALID_CRON_EXPRESSION"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


# Configuration exceptions


class ConfigurationError(OrderBatchError):
    """Settings file or value is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid setting '{setting}': {reason}")
