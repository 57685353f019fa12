"""
PendingOrderReader -- streaming row source for the order processing step.

Contract:
    ``open()`` checks out a dedicated connection, executes the pending
    orders query with ``yield_per`` streaming, and yields a single-pass
    iterator of ``Order``.  Leaving the context closes the cursor and
    returns the connection.  Each ``open()`` is a fresh cursor.

Failure modes:
    - SourceError if the connection cannot be opened, the statement
      cannot execute, or a fetch fails part-way through.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError

from order_kernel.exceptions import SourceError
from order_kernel.logging_config import get_logger

from order_batch.domain.parameters import OrderCriteria
from order_batch.domain.types import Order
from order_batch.orders.queries import pending_orders_query

logger = get_logger("batch.orders.reader")


class PendingOrderReader:
    """Forward-only reader over PENDING orders matching an OrderCriteria."""

    name = "pendingOrderReader"

    def __init__(self, engine: Engine, criteria: OrderCriteria, fetch_size: int = 100):
        if fetch_size < 1:
            raise ValueError(f"fetch_size must be at least 1: {fetch_size}")
        self._engine = engine
        self._criteria = criteria
        self._fetch_size = fetch_size

    @property
    def criteria(self) -> OrderCriteria:
        return self._criteria

    @contextmanager
    def open(self) -> Iterator[Iterator[Order]]:
        try:
            connection = self._engine.connect()
        except SQLAlchemyError as exc:
            raise SourceError(self.name, f"cannot connect: {exc}") from exc

        try:
            try:
                result = connection.execution_options(
                    yield_per=self._fetch_size,
                ).execute(pending_orders_query(self._criteria))
            except SQLAlchemyError as exc:
                raise SourceError(self.name, f"query failed: {exc}") from exc

            logger.debug(
                "order_cursor_opened",
                extra={
                    "start_date": self._criteria.start_date,
                    "end_date": self._criteria.end_date,
                    "min_amount": self._criteria.min_amount,
                    "fetch_size": self._fetch_size,
                },
            )
            try:
                yield self._iterate(result)
            finally:
                result.close()
        finally:
            connection.close()

    def _iterate(self, result: CursorResult) -> Iterator[Order]:
        try:
            for row in result.mappings():
                yield Order.from_row(row)
        except SQLAlchemyError as exc:
            raise SourceError(self.name, f"fetch failed: {exc}") from exc
