"""ORM models owned by the kernel."""

from order_kernel.models.order import OrderModel, OrderStatus

__all__ = ["OrderModel", "OrderStatus"]
