"""
Pytest fixtures for the order batch test suite.

Provides:
- Structured log capture
- A file-backed SQLite database per test (WAL mode, so the reader's
  streaming connection and the per-chunk write sessions can coexist)
- Order row factories, parameter builders and a deterministic clock

All timestamps are naive: SQLite strips tzinfo on round-trip.
"""

import itertools
import json
import logging
from datetime import datetime
from io import StringIO

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from order_kernel.db.engine import configure_sqlite, create_tables
from order_kernel.domain.clock import DeterministicClock
from order_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from order_kernel.models.order import OrderModel, OrderStatus

from order_batch.domain.parameters import (
    END_DATE,
    MIN_AMOUNT,
    PROCESSING_MODE,
    RUN_TOKEN,
    START_DATE,
    JobParametersBuilder,
)
from order_batch.services.launcher import JobLauncher
from order_batch.services.repository import JobRepository

# Fixed "now" for the suite: Saturday 2024-06-15 12:00
NOW = datetime(2024, 6, 15, 12, 0, 0)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture order_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "chunk_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("order_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    configure_sqlite(eng)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def clock():
    return DeterministicClock(NOW)


@pytest.fixture
def repository(clock):
    return JobRepository(clock=clock)


@pytest.fixture
def launcher(session_factory, repository, clock):
    return JobLauncher(session_factory, repository, clock)


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def add_order(session_factory):
    """Insert one order and return its id."""
    numbers = itertools.count(1)

    def _add(
        amount: int = 8000,
        status: OrderStatus = OrderStatus.PENDING,
        order_date: datetime = datetime(2024, 6, 12, 9, 30),
        customer_name: str = "Kim Minsu",
    ) -> int:
        with session_factory.begin() as session:
            model = OrderModel(
                order_number=f"ORD-{next(numbers):05d}",
                customer_name=customer_name,
                amount=amount,
                status=status.value,
                order_date=order_date,
            )
            session.add(model)
            session.flush()
            return model.id

    return _add


@pytest.fixture
def load_orders(session_factory):
    """Return ``{id: OrderModel}`` for every order, detached."""

    def _load() -> dict[int, OrderModel]:
        with session_factory() as session:
            models = session.execute(select(OrderModel)).scalars().all()
            return {m.id: m for m in models}

    return _load


@pytest.fixture
def make_parameters():
    """Build the order job's parameter set; every value is overridable."""

    def _make(
        start: str = "2024-06-08",
        end: str = "2024-06-15",
        min_amount: str = "7000",
        mode: str = "FAST",
        token: int = 1,
    ):
        return (
            JobParametersBuilder()
            .add_string(START_DATE, start)
            .add_string(END_DATE, end)
            .add_string(MIN_AMOUNT, min_amount)
            .add_string(PROCESSING_MODE, mode)
            .add_long(RUN_TOKEN, token)
            .to_job_parameters()
        )

    return _make
