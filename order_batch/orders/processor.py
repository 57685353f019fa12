"""OrderProcessor -- applies the processing-mode rules to one order."""

from __future__ import annotations

from order_kernel.domain.clock import Clock, SystemClock
from order_kernel.logging_config import get_logger

from order_batch.domain.rules import apply_processing
from order_batch.domain.types import Order, ProcessingMode

logger = get_logger("batch.orders.processor")


class OrderProcessor:
    """Maps a PENDING order to its processed form; anything else is filtered."""

    def __init__(self, mode: ProcessingMode, clock: Clock | None = None):
        self._mode = mode
        self._clock = clock or SystemClock()

    @property
    def mode(self) -> ProcessingMode:
        return self._mode

    def process(self, order: Order) -> Order | None:
        processed = apply_processing(order, self._mode, self._clock.now())
        if processed is None:
            logger.debug(
                "order_filtered",
                extra={"order_id": order.id, "status": order.status.value},
            )
        else:
            logger.info(
                "order_processed",
                extra={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "mode": self._mode.value,
                    "status": processed.status.value,
                },
            )
        return processed
