"""
Module: order_kernel.models.order
Responsibility: ORM persistence for the ``orders`` table scanned by the
    batch pipeline.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status transitions performed by the pipeline are monotonic:
      PENDING -> COMPLETED or PENDING -> PROCESSING.  CANCELLED rows are
      never selected, and nothing moves a row back to PENDING.
    - processed_date is set exactly once, by the chunk that transitions
      the row out of PENDING.

Rows are created by the external order-placement process and are never
deleted here.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from order_kernel.db.base import Base


class OrderStatus(str, Enum):
    """Order lifecycle status, stored by name."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderModel(Base):
    """A customer order awaiting (or past) batch processing."""

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_orders_status_order_date", "status", "order_date"),
    )

    # SQLite only autoincrements INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    customer_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING.value,
    )

    # Business-local timestamp, as recorded by the order-placement system
    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
    )

    processed_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<OrderModel {self.order_number} {self.status} "
            f"amount={self.amount}>"
        )
