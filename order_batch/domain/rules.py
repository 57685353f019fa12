"""
Pure order processing rules.

    mode     | amount       | new status
    ---------|--------------|-----------
    FAST     | any          | COMPLETED
    NORMAL   | < 10000      | COMPLETED
    NORMAL   | >= 10000     | PROCESSING
    CAREFUL  | any          | PROCESSING

Architecture: order_batch/domain.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from order_kernel.models.order import OrderStatus

from order_batch.domain.types import Order, ProcessingMode

NORMAL_COMPLETION_LIMIT = 10_000


def resolve_status(mode: ProcessingMode, amount: int) -> OrderStatus:
    """Status an eligible PENDING order moves to under ``mode``."""
    if mode is ProcessingMode.FAST:
        return OrderStatus.COMPLETED
    if mode is ProcessingMode.NORMAL:
        if amount < NORMAL_COMPLETION_LIMIT:
            return OrderStatus.COMPLETED
        return OrderStatus.PROCESSING
    if mode is ProcessingMode.CAREFUL:
        return OrderStatus.PROCESSING
    raise ValueError(f"Unhandled processing mode: {mode!r}")


def apply_processing(
    order: Order, mode: ProcessingMode, processed_at: datetime,
) -> Order | None:
    """Transition a PENDING order; returns None for anything else."""
    if order.status is not OrderStatus.PENDING:
        return None
    return replace(
        order,
        status=resolve_status(mode, order.amount),
        processed_date=processed_at,
    )
