"""
ChunkStep -- read / process / write engine with one transaction per chunk.

Contract:
    Pulls one item at a time from the reader, passes it through the
    processor, buffers the result, and flushes the buffer to the writer
    every ``chunk_size`` items and once more at end of input.  Returns the
    finished ``StepExecution``.

    READING       next item -> process it -> ACCUMULATING
                  (filtered item -> stay in READING)
                  input exhausted, buffer empty     -> COMPLETED
                  input exhausted, buffer non-empty -> FLUSHING
    ACCUMULATING  buffer full -> FLUSHING, else READING
    FLUSHING      commit ok -> READING, or COMPLETED when input is exhausted
                  commit failed -> FAILED

Invariants enforced:
    - Transactional unit = one chunk.  The writer and the step's running
      counts commit together; earlier chunks stay committed when a later
      one fails.
    - K processed items and chunk size C give ceil(K / C) flushes, each of
      at most C items.  No items, no flush.
    - Reader and processor are built per execution from the job
      parameters by the supplied factories.

Failure modes:
    - SourceError, TransformError and SinkError end the step as FAILED
      with the error's code.  They are never raised to the launcher.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from order_kernel.exceptions import SinkError, SourceError, StepError, TransformError
from order_kernel.logging_config import get_logger

from order_batch.domain.parameters import JobParameters
from order_batch.domain.types import BatchStatus, ChunkState, StepExecution
from order_batch.steps.base import ItemProcessor, ItemReader, ItemWriter, StepContext

logger = get_logger("batch.steps.chunk")

_EXHAUSTED = object()


class ChunkStep:
    """Chunk-oriented step: reader -> processor -> buffered writer."""

    def __init__(
        self,
        name: str,
        reader_factory: Callable[[JobParameters], ItemReader[Any]],
        processor_factory: Callable[[JobParameters], ItemProcessor[Any, Any]],
        writer: ItemWriter[Any],
        chunk_size: int = 3,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1: {chunk_size}")
        self._name = name
        self._reader_factory = reader_factory
        self._processor_factory = processor_factory
        self._writer = writer
        self._chunk_size = chunk_size

    @property
    def name(self) -> str:
        return self._name

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def execute(self, step_execution: StepExecution, context: StepContext) -> StepExecution:
        state = ChunkState.READING
        buffer: list[Any] = []
        exhausted = False
        pending: Any = None

        try:
            reader = self._reader_factory(context.parameters)
            processor = self._processor_factory(context.parameters)

            with reader.open() as items:
                iterator = iter(items)
                while state not in (ChunkState.COMPLETED, ChunkState.FAILED):
                    if state is ChunkState.READING:
                        item = next(iterator, _EXHAUSTED)
                        if item is _EXHAUSTED:
                            exhausted = True
                            state = ChunkState.FLUSHING if buffer else ChunkState.COMPLETED
                            continue

                        output = processor.process(item)
                        if output is None:
                            step_execution = replace(
                                step_execution,
                                read_count=step_execution.read_count + 1,
                                filter_count=step_execution.filter_count + 1,
                            )
                            continue

                        step_execution = replace(
                            step_execution,
                            read_count=step_execution.read_count + 1,
                            process_count=step_execution.process_count + 1,
                        )
                        pending = output
                        state = ChunkState.ACCUMULATING

                    elif state is ChunkState.ACCUMULATING:
                        buffer.append(pending)
                        pending = None
                        if len(buffer) >= self._chunk_size:
                            state = ChunkState.FLUSHING
                        else:
                            state = ChunkState.READING

                    elif state is ChunkState.FLUSHING:
                        step_execution = self._flush(buffer, step_execution, context)
                        buffer = []
                        state = ChunkState.COMPLETED if exhausted else ChunkState.READING

        except SinkError as exc:
            return self._failed(
                replace(step_execution, rollback_count=step_execution.rollback_count + 1),
                exc,
            )
        except (SourceError, TransformError) as exc:
            return self._failed(step_execution, exc)

        logger.info(
            "chunk_step_completed",
            extra={
                "step_name": self._name,
                "read_count": step_execution.read_count,
                "filter_count": step_execution.filter_count,
                "write_count": step_execution.write_count,
                "commit_count": step_execution.commit_count,
            },
        )
        return replace(step_execution, status=BatchStatus.COMPLETED)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _flush(
        self,
        buffer: list[Any],
        step_execution: StepExecution,
        context: StepContext,
    ) -> StepExecution:
        """Write one chunk and its step bookkeeping in one transaction."""
        try:
            with context.session_factory.begin() as session:
                written = self._writer.write(buffer, session)
                updated = replace(
                    step_execution,
                    write_count=step_execution.write_count + written,
                    commit_count=step_execution.commit_count + 1,
                )
                context.repository.update_step_execution(session, updated)
        except SQLAlchemyError as exc:
            raise SinkError(self._writer_name, len(buffer), str(exc)) from exc

        logger.info(
            "chunk_committed",
            extra={
                "step_name": self._name,
                "chunk_number": updated.commit_count,
                "chunk_items": written,
                "write_count": updated.write_count,
            },
        )
        return updated

    def _failed(self, step_execution: StepExecution, exc: StepError) -> StepExecution:
        logger.error(
            "chunk_step_failed",
            extra={
                "step_name": self._name,
                "error_code": exc.code,
                "error": str(exc),
                "read_count": step_execution.read_count,
                "write_count": step_execution.write_count,
            },
        )
        return replace(
            step_execution,
            status=BatchStatus.FAILED,
            error_code=exc.code,
            error_message=str(exc),
        )

    @property
    def _writer_name(self) -> str:
        return getattr(self._writer, "name", type(self._writer).__name__)
