"""
Tests for order_batch.orders.reader -- the streaming row source.

Runs against a file-backed SQLite database with real order rows.
"""

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine

from order_kernel.exceptions import SourceError
from order_kernel.models.order import OrderStatus

from order_batch.domain.parameters import (
    END_DATE,
    MIN_AMOUNT,
    START_DATE,
    JobParametersBuilder,
    OrderCriteria,
)
from order_batch.domain.types import Order
from order_batch.orders.reader import PendingOrderReader

CRITERIA = OrderCriteria(date(2024, 6, 8), date(2024, 6, 15), 7000)


def _read_ids(engine, criteria=CRITERIA, fetch_size=100) -> list[int]:
    reader = PendingOrderReader(engine, criteria, fetch_size=fetch_size)
    with reader.open() as items:
        return [order.id for order in items]


class TestPendingOrderReaderFilters:
    def test_returns_orders(self, engine, add_order):
        order_id = add_order(amount=8000)

        reader = PendingOrderReader(engine, CRITERIA)
        with reader.open() as items:
            orders = list(items)

        assert len(orders) == 1
        order = orders[0]
        assert isinstance(order, Order)
        assert order.id == order_id
        assert order.status is OrderStatus.PENDING
        assert order.amount == 8000
        assert order.processed_date is None

    def test_window_bounds_inclusive_by_date(self, engine, add_order):
        first_instant = add_order(order_date=datetime(2024, 6, 8, 0, 0))
        last_day_late = add_order(order_date=datetime(2024, 6, 15, 23, 59, 59))
        add_order(order_date=datetime(2024, 6, 7, 23, 59, 59))
        add_order(order_date=datetime(2024, 6, 16, 0, 0))

        assert _read_ids(engine) == [first_instant, last_day_late]

    def test_min_amount_inclusive(self, engine, add_order):
        at_threshold = add_order(amount=7000)
        add_order(amount=6999)

        assert _read_ids(engine) == [at_threshold]

    def test_decimal_threshold_excludes_amount_below(self, engine, add_order):
        add_order(amount=7000)
        above = add_order(amount=7001)
        criteria = OrderCriteria.from_parameters(
            JobParametersBuilder()
            .add_string(START_DATE, "2024-06-08")
            .add_string(END_DATE, "2024-06-15")
            .add_string(MIN_AMOUNT, "7000.5")
            .to_job_parameters()
        )

        assert _read_ids(engine, criteria) == [above]

    @pytest.mark.parametrize(
        "status", [OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED],
    )
    def test_only_pending(self, engine, add_order, status):
        add_order(status=status)
        assert _read_ids(engine) == []

    def test_ordered_by_order_date_then_id(self, engine, add_order):
        late = add_order(order_date=datetime(2024, 6, 14, 10, 0))
        early = add_order(order_date=datetime(2024, 6, 9, 10, 0))
        tie_a = add_order(order_date=datetime(2024, 6, 12, 10, 0))
        tie_b = add_order(order_date=datetime(2024, 6, 12, 10, 0))

        assert _read_ids(engine) == [early, tie_a, tie_b, late]

    def test_small_fetch_size_streams_everything(self, engine, add_order):
        ids = [add_order(order_date=datetime(2024, 6, 9, h, 0)) for h in range(7)]
        assert _read_ids(engine, fetch_size=2) == ids

    def test_empty_window(self, engine):
        assert _read_ids(engine) == []


class TestPendingOrderReaderLifecycle:
    def test_each_open_is_a_fresh_cursor(self, engine, add_order):
        add_order()
        add_order()
        reader = PendingOrderReader(engine, CRITERIA)

        with reader.open() as items:
            first = list(items)
        with reader.open() as items:
            second = list(items)

        assert [o.id for o in first] == [o.id for o in second]

    def test_partial_read_releases_connection(self, engine, add_order):
        for _ in range(5):
            add_order()
        reader = PendingOrderReader(engine, CRITERIA, fetch_size=1)

        with reader.open() as items:
            next(iter(items))

        # The pool has every connection back
        assert engine.pool.checkedout() == 0

    def test_open_logged(self, engine, captured_logs):
        reader = PendingOrderReader(engine, CRITERIA, fetch_size=50)
        with reader.open() as items:
            list(items)

        opened = [r for r in captured_logs() if r["message"] == "order_cursor_opened"]
        assert len(opened) == 1
        assert opened[0]["fetch_size"] == 50
        assert opened[0]["min_amount"] == 7000

    def test_invalid_fetch_size(self, engine):
        with pytest.raises(ValueError):
            PendingOrderReader(engine, CRITERIA, fetch_size=0)


class TestPendingOrderReaderErrors:
    def test_missing_table_is_source_error(self, tmp_path):
        bare = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        reader = PendingOrderReader(bare, CRITERIA)

        with pytest.raises(SourceError) as exc_info:
            with reader.open() as items:
                list(items)

        assert exc_info.value.source_name == "pendingOrderReader"
        assert "query failed" in exc_info.value.reason
        bare.dispose()

    def test_unreachable_database_is_source_error(self, tmp_path):
        bad = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
        reader = PendingOrderReader(bad, CRITERIA)

        with pytest.raises(SourceError) as exc_info:
            with reader.open() as items:
                list(items)

        assert "cannot connect" in exc_info.value.reason
        bad.dispose()
