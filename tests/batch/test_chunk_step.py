"""
Tests for order_batch.steps.chunk -- the chunk-oriented step engine.

Uses in-memory fakes for the reader, processor, writer and repository so
the chunking arithmetic and failure handling are tested in isolation.
The full database path is covered by test_integration.py.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Sequence
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from order_kernel.domain.clock import DeterministicClock
from order_kernel.exceptions import SinkError, SourceError, TransformError

from order_batch.domain.parameters import JobParameters
from order_batch.domain.types import BatchStatus, StepExecution
from order_batch.steps.base import StepContext
from order_batch.steps.chunk import ChunkStep

NOW = datetime(2024, 6, 15, 12, 0, 0)

_ENGINE = create_engine("sqlite://")
_SESSIONS = sessionmaker(bind=_ENGINE)


# =============================================================================
# Fakes
# =============================================================================


class ListReader:
    def __init__(self, items: Sequence[Any], fail_at: int | None = None):
        self._items = items
        self._fail_at = fail_at
        self.closed = False

    @contextmanager
    def open(self) -> Iterator[Iterator[Any]]:
        try:
            yield self._iterate()
        finally:
            self.closed = True

    def _iterate(self) -> Iterator[Any]:
        for index, item in enumerate(self._items):
            if index == self._fail_at:
                raise SourceError("listReader", f"fetch failed at {index}")
            yield item


class KeepEven:
    """Passes even numbers through (doubled), filters odd ones."""

    def process(self, item: int) -> int | None:
        return item * 2 if item % 2 == 0 else None


class Identity:
    def process(self, item: Any) -> Any:
        return item


class Exploding:
    def process(self, item: Any) -> Any:
        raise TransformError(str(item), "cannot transform")


@dataclass
class RecordingWriter:
    fail_on_call: int | None = None
    failure: Exception | None = None
    chunks: list[list[Any]] = field(default_factory=list)
    calls: int = 0
    name: str = "recordingWriter"

    def write(self, items: Sequence[Any], session) -> int:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise self.failure or SinkError(self.name, len(items), "forced failure")
        self.chunks.append(list(items))
        return len(items)


class RecordingRepository:
    def __init__(self) -> None:
        self.updates: list[StepExecution] = []

    def update_step_execution(self, session, step_execution: StepExecution) -> None:
        self.updates.append(step_execution)


def _context(repository: RecordingRepository) -> StepContext:
    return StepContext(
        job_name="testJob",
        job_execution_id=uuid4(),
        parameters=JobParameters(),
        session_factory=_SESSIONS,
        repository=repository,  # type: ignore[arg-type]
        clock=DeterministicClock(NOW),
    )


def _step_execution() -> StepExecution:
    return StepExecution(
        step_execution_id=uuid4(), job_execution_id=uuid4(), step_name="chunkStep",
    )


def _run(items, processor=None, writer=None, chunk_size=3, reader=None):
    writer = writer or RecordingWriter()
    repository = RecordingRepository()
    step = ChunkStep(
        "chunkStep",
        reader_factory=lambda params: reader or ListReader(items),
        processor_factory=lambda params: processor or Identity(),
        writer=writer,
        chunk_size=chunk_size,
    )
    result = step.execute(_step_execution(), _context(repository))
    return result, writer, repository


# =============================================================================
# Chunking
# =============================================================================


class TestChunking:
    def test_seven_items_chunk_three(self):
        result, writer, _ = _run(list(range(7)))

        assert result.status is BatchStatus.COMPLETED
        assert writer.chunks == [[0, 1, 2], [3, 4, 5], [6]]
        assert result.read_count == 7
        assert result.write_count == 7
        assert result.commit_count == 3

    def test_exact_multiple_has_no_empty_flush(self):
        result, writer, _ = _run(list(range(6)))

        assert writer.chunks == [[0, 1, 2], [3, 4, 5]]
        assert result.commit_count == 2

    def test_no_items_no_flush(self):
        result, writer, repository = _run([])

        assert result.status is BatchStatus.COMPLETED
        assert writer.calls == 0
        assert repository.updates == []
        assert result.commit_count == 0

    def test_filtered_items_counted_not_written(self):
        result, writer, _ = _run(list(range(7)), processor=KeepEven())

        assert writer.chunks == [[0, 4, 8], [12]]
        assert result.read_count == 7
        assert result.process_count == 4
        assert result.filter_count == 3
        assert result.write_count == 4

    def test_all_filtered_no_flush(self):
        result, writer, _ = _run([1, 3, 5], processor=KeepEven())

        assert writer.calls == 0
        assert result.filter_count == 3
        assert result.status is BatchStatus.COMPLETED

    def test_each_commit_persists_running_counts(self):
        _, _, repository = _run(list(range(7)))

        assert [u.write_count for u in repository.updates] == [3, 6, 7]
        assert [u.commit_count for u in repository.updates] == [1, 2, 3]

    def test_chunk_committed_logged(self, captured_logs):
        _run(list(range(4)), chunk_size=2)

        committed = [r for r in captured_logs() if r["message"] == "chunk_committed"]
        assert [r["chunk_number"] for r in committed] == [1, 2]
        assert [r["chunk_items"] for r in committed] == [2, 2]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            ChunkStep("s", lambda p: ListReader([]), lambda p: Identity(), RecordingWriter(), chunk_size=0)

    @settings(max_examples=60, deadline=None)
    @given(
        items=st.lists(st.integers(min_value=0, max_value=1000), max_size=40),
        chunk_size=st.integers(min_value=1, max_value=10),
    )
    def test_flush_count_is_ceiling(self, items, chunk_size):
        result, writer, _ = _run(items, processor=KeepEven(), chunk_size=chunk_size)
        kept = [i * 2 for i in items if i % 2 == 0]

        assert len(writer.chunks) == math.ceil(len(kept) / chunk_size)
        assert all(1 <= len(chunk) <= chunk_size for chunk in writer.chunks)
        assert [x for chunk in writer.chunks for x in chunk] == kept
        assert result.commit_count == len(writer.chunks)
        assert result.read_count == len(items)
        assert result.write_count == len(kept)


# =============================================================================
# Failures
# =============================================================================


class TestChunkFailures:
    def test_sink_failure_keeps_earlier_chunks(self):
        writer = RecordingWriter(fail_on_call=2)
        result, _, repository = _run(list(range(7)), writer=writer)

        assert result.status is BatchStatus.FAILED
        assert result.error_code == "SINK_ERROR"
        assert writer.chunks == [[0, 1, 2]]
        assert result.write_count == 3
        assert result.commit_count == 1
        assert result.rollback_count == 1
        assert len(repository.updates) == 1

    def test_database_error_becomes_sink_error(self):
        writer = RecordingWriter(
            fail_on_call=1,
            failure=OperationalError("UPDATE orders", {}, Exception("database is locked")),
        )
        result, _, _ = _run(list(range(3)), writer=writer)

        assert result.status is BatchStatus.FAILED
        assert result.error_code == "SINK_ERROR"
        assert "recordingWriter" in result.error_message
        assert result.write_count == 0

    def test_source_failure_mid_stream(self):
        reader = ListReader(list(range(7)), fail_at=4)
        result, writer, _ = _run(None, reader=reader)

        assert result.status is BatchStatus.FAILED
        assert result.error_code == "SOURCE_ERROR"
        assert writer.chunks == [[0, 1, 2]]
        assert result.read_count == 4
        assert result.rollback_count == 0
        assert reader.closed is True

    def test_transform_failure(self):
        result, writer, _ = _run([1, 2], processor=Exploding())

        assert result.status is BatchStatus.FAILED
        assert result.error_code == "TRANSFORM_ERROR"
        assert writer.calls == 0

    def test_failure_logged(self, captured_logs):
        _run(list(range(4)), writer=RecordingWriter(fail_on_call=1))

        failed = [r for r in captured_logs() if r["message"] == "chunk_step_failed"]
        assert len(failed) == 1
        assert failed[0]["error_code"] == "SINK_ERROR"
        assert failed[0]["level"] == "ERROR"
