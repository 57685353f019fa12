"""
OrderStatusWriter -- batch sink for processed orders.

Contract:
    ``write(orders, session)`` issues one executemany UPDATE setting
    ``status`` and ``processed_date`` by id, inside the caller's
    transaction.  The caller commits or rolls back the whole chunk.

Invariants enforced:
    - Only rows still PENDING are updated.  When the dialect reports
      reliable executemany rowcounts, fewer matched rows than buffered
      orders fails the chunk instead of silently skipping rows that a
      concurrent run already moved.

Failure modes:
    - SinkError on any database error or rowcount mismatch.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import bindparam, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from order_kernel.exceptions import SinkError
from order_kernel.logging_config import get_logger
from order_kernel.models.order import OrderStatus

from order_batch.domain.types import Order
from order_batch.orders.queries import orders_table

logger = get_logger("batch.orders.writer")

_UPDATE_STATUS = (
    update(orders_table)
    .where(
        orders_table.c.id == bindparam("order_id"),
        orders_table.c.status == OrderStatus.PENDING.value,
    )
    .values(
        status=bindparam("new_status"),
        processed_date=bindparam(
            "processed_at", type_=orders_table.c.processed_date.type,
        ),
    )
)


class OrderStatusWriter:
    """Writes a chunk of processed orders back to the orders table."""

    name = "orderStatusWriter"

    def write(self, orders: Sequence[Order], session: Session) -> int:
        if not orders:
            return 0

        params = [
            {
                "order_id": order.id,
                "new_status": order.status.value,
                "processed_at": order.processed_date,
            }
            for order in orders
        ]

        try:
            result = session.execute(_UPDATE_STATUS, params)
        except SQLAlchemyError as exc:
            raise SinkError(self.name, len(orders), str(exc)) from exc

        dialect = session.get_bind().dialect
        if dialect.supports_sane_multi_rowcount and result.rowcount != len(orders):
            raise SinkError(
                self.name,
                len(orders),
                f"expected {len(orders)} PENDING rows, updated {result.rowcount}",
            )

        logger.debug(
            "orders_written",
            extra={"count": len(orders), "order_ids": [o.id for o in orders]},
        )
        return len(orders)
