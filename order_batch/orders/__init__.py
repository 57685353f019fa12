"""Reader, processor, writer and pre-check for the orders table."""

from order_batch.orders.precheck import PendingOrderCountTasklet
from order_batch.orders.processor import OrderProcessor
from order_batch.orders.reader import PendingOrderReader
from order_batch.orders.writer import OrderStatusWriter

__all__ = [
    "OrderProcessor",
    "OrderStatusWriter",
    "PendingOrderCountTasklet",
    "PendingOrderReader",
]
