"""Tests for order_kernel.logging_config."""

import json
import logging
from datetime import date, datetime
from io import StringIO
from uuid import uuid4

import pytest

from order_kernel.exceptions import SinkError
from order_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

from order_batch.domain.types import BatchStatus


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test configures logging itself; the suite config comes back after."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def emit():
    """Configure logging onto a buffer; returns (logger, read_records)."""
    stream = StringIO()

    def _setup(level=logging.INFO):
        configure_logging(stream=stream, level=level)

        def _records() -> list[dict]:
            return [json.loads(line) for line in stream.getvalue().splitlines() if line]

        return get_logger("test"), _records

    return _setup


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_envelope(self, emit):
        logger, records = emit()
        logger.info("hello")

        (record,) = records()
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "order_kernel.test"
        assert record["ts"].endswith("+00:00")

    def test_extra_fields(self, emit):
        logger, records = emit()
        logger.info("chunk_committed", extra={"chunk_number": 2, "write_count": 6})

        (record,) = records()
        assert record["chunk_number"] == 2
        assert record["write_count"] == 6

    def test_run_context_fields(self, emit):
        logger, records = emit()
        with LogContext.bind(job_name="orderProcessingJob", step_name="parameterProcessStep"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = records()
        assert inside["job_name"] == "orderProcessingJob"
        assert inside["step_name"] == "parameterProcessStep"
        assert "job_name" not in outside
        assert "job_execution_id" not in outside

    def test_plain_exception(self, emit):
        logger, records = emit()
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        (record,) = records()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_pipeline_exception_code_and_fields(self, emit):
        logger, records = emit()
        try:
            raise SinkError("orderStatusWriter", 3, "database is locked")
        except SinkError:
            logger.error("chunk_failed", exc_info=True)

        (record,) = records()
        assert record["exc_code"] == "SINK_ERROR"
        assert record["exc_type"] == "SinkError"
        assert record["exc_sink_name"] == "orderStatusWriter"
        assert record["exc_chunk_size"] == 3

    def test_values_serialized(self, emit):
        logger, records = emit()
        uid = uuid4()
        logger.info(
            "with_values",
            extra={
                "job_execution_id": uid,
                "start_date": date(2024, 6, 8),
                "started_at": datetime(2024, 6, 15, 12, 0),
                "status": BatchStatus.COMPLETED,
                "other": object,
            },
        )

        (record,) = records()
        assert record["job_execution_id"] == str(uid)
        assert record["start_date"] == "2024-06-08"
        assert record["started_at"] == "2024-06-15T12:00:00"
        assert record["status"] == "completed"
        assert record["other"] == str(object)

    def test_formatter_usable_standalone(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "standalone", (), None)

        handler.emit(record)

        assert json.loads(stream.getvalue())["message"] == "standalone"


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_merges_and_skips_none(self):
        LogContext.set(job_name="a")
        LogContext.set(step_name="b", job_name=None)
        assert LogContext.get_all() == {"job_name": "a", "step_name": "b"}

    def test_values_stored_as_strings(self):
        uid = uuid4()
        LogContext.set(job_execution_id=uid)
        assert LogContext.get_all() == {"job_execution_id": str(uid)}

    def test_clear(self):
        LogContext.set(job_name="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_nested_bind_restores_each_level(self):
        with LogContext.bind(job_name="job", job_execution_id="e1"):
            with LogContext.bind(step_name="s1"):
                assert LogContext.get_all() == {
                    "job_name": "job", "job_execution_id": "e1", "step_name": "s1",
                }
            assert LogContext.get_all() == {"job_name": "job", "job_execution_id": "e1"}
        assert LogContext.get_all() == {}

    def test_bind_restores_on_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(step_name="inner"):
                raise RuntimeError("step blew up")
        assert "step_name" not in LogContext.get_all()

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="correlation_id"):
            LogContext.set(correlation_id="x")


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_second_call_is_noop(self):
        configure_logging(stream=StringIO())
        configure_logging(stream=StringIO())
        assert len(logging.getLogger("order_kernel").handlers) == 1

    def test_handler_takes_precedence_over_stream(self):
        handler = logging.NullHandler()
        configure_logging(handler=handler, stream=StringIO())
        assert logging.getLogger("order_kernel").handlers == [handler]
        assert isinstance(handler.formatter, StructuredFormatter)

    @pytest.mark.parametrize(
        "level, expected",
        [("warning", logging.WARNING), ("DEBUG", logging.DEBUG), ("nonsense", logging.INFO)],
    )
    def test_level_names(self, level, expected):
        configure_logging(stream=StringIO(), level=level)
        assert logging.getLogger("order_kernel").level == expected

    def test_does_not_propagate_to_root(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("order_kernel").propagate is False

    def test_child_loggers_inherit(self, emit):
        logger, records = emit(level=logging.DEBUG)
        child = get_logger("batch.launcher")
        child.debug("hierarchy_test")

        (record,) = records()
        assert child.name == "order_kernel.batch.launcher"
        assert record["logger"] == "order_kernel.batch.launcher"

    def test_default_level_drops_debug(self, emit):
        logger, records = emit()
        logger.debug("dropped")
        logger.info("kept")
        assert [r["message"] for r in records()] == ["kept"]

    def test_reset_restores_propagation(self):
        configure_logging(stream=StringIO())
        reset_logging()
        root = logging.getLogger("order_kernel")
        assert root.handlers == []
        assert root.propagate is True
