"""
PendingOrderCountTasklet -- pre-flight count of PENDING orders in the window.

Runs before the chunk step.  A count of zero is not a failure; a count
query that cannot run is, and stops the job before any order is touched.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from order_kernel.exceptions import TaskletError
from order_kernel.logging_config import get_logger

from order_batch.domain.parameters import OrderCriteria
from order_batch.domain.types import RepeatStatus
from order_batch.orders.queries import pending_count_query
from order_batch.steps.base import StepContext

logger = get_logger("batch.orders.precheck")


class PendingOrderCountTasklet:
    """Counts PENDING orders in the date window and logs the result."""

    @property
    def name(self) -> str:
        return "pendingOrderCount"

    def execute(self, context: StepContext, session: Session) -> RepeatStatus:
        criteria = OrderCriteria.from_parameters(context.parameters)
        try:
            count = session.execute(pending_count_query(criteria)).scalar_one()
        except SQLAlchemyError as exc:
            raise TaskletError(self.name, f"count query failed: {exc}") from exc

        logger.info(
            "pending_orders_counted",
            extra={
                "start_date": criteria.start_date,
                "end_date": criteria.end_date,
                "pending_count": count,
            },
        )
        return RepeatStatus.FINISHED
