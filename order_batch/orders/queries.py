"""
SQL shapes for the orders table.

Both queries select on the half-open window
``[start 00:00, end + 1 day 00:00)``, which is the index-friendly form of
``DATE(order_date) BETWEEN start AND end``.
"""

from __future__ import annotations

from sqlalchemy import Select, func, select

from order_kernel.models.order import OrderModel, OrderStatus

from order_batch.domain.parameters import OrderCriteria

orders_table = OrderModel.__table__


def pending_orders_query(criteria: OrderCriteria) -> Select:
    """PENDING orders in the window with ``amount >= min_amount``, oldest first."""
    return (
        select(
            orders_table.c.id,
            orders_table.c.order_number,
            orders_table.c.customer_name,
            orders_table.c.amount,
            orders_table.c.status,
            orders_table.c.order_date,
            orders_table.c.processed_date,
        )
        .where(
            orders_table.c.status == OrderStatus.PENDING.value,
            orders_table.c.order_date >= criteria.window_start,
            orders_table.c.order_date < criteria.window_end,
            orders_table.c.amount >= criteria.min_amount,
        )
        .order_by(orders_table.c.order_date, orders_table.c.id)
    )


def pending_count_query(criteria: OrderCriteria) -> Select:
    """Count of PENDING orders in the window.  ``min_amount`` is ignored."""
    return select(func.count()).select_from(orders_table).where(
        orders_table.c.status == OrderStatus.PENDING.value,
        orders_table.c.order_date >= criteria.window_start,
        orders_table.c.order_date < criteria.window_end,
    )
