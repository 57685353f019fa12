"""
Module: order_kernel.db.base
Responsibility: Declarative base for the ORM models of both the order table
    and the execution-tracking tables.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/ or from order_batch.

Invariants enforced:
    - Constraint and index names are deterministic (naming convention), so
      schemas created on SQLite and PostgreSQL line up.
    - Tracking rows carry a uuid4 primary key and server-side
      created_at / updated_at.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, MetaData, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    ``orders`` declares its own integer key (assigned by the order-placement
    system); tracking tables get theirs from TrackedBase.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: Uuid(as_uuid=True),
    }


class TrackedBase(Base):
    """Abstract base: UUID key plus row timestamps."""

    __abstract__ = True

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
