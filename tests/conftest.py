"""
Pytest fixtures for the business ledger test suite.

Provides:
- A fresh database per test (file-backed SQLite by default)
- Posting, registry and statement service fixtures
- Source event factories
- Structured log capture

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  When set, tests run against it
  and tables are dropped and recreated around each test.  When unset, each
  test gets its own SQLite file under tmp_path.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.events import (
    InvoiceEvent,
    PaymentDirection,
    PaymentEvent,
    PaymentMethod,
    PurchaseEvent,
)
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors.posting_selector import PostingSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_poster import LedgerPoster
from ledger_reporting.service import StatementService


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
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, poster, make_invoice):
            poster.post_invoice(make_invoice())
            logs = captured_logs()
            assert any(r["message"] == "posting_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
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
# Database
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL from the environment, or a per-test SQLite file."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(tmp_path):
    """Initialize the engine and a clean schema for one test."""
    on_server = bool(os.environ.get("DATABASE_URL"))
    eng = init_engine_from_url(
        get_database_url(tmp_path),
        pool_size=10,
        max_overflow=10,
        pool_timeout=30,
    )
    if on_server:
        drop_tables()
    create_tables()
    yield eng
    if on_server:
        drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    """
    Factory for independent sessions (one per thread in concurrency tests).

    Sessions handed out here are closed at teardown.
    """
    factory = get_session_factory()
    created = []

    def _make():
        s = factory()
        created.append(s)
        return s

    yield _make

    for s in created:
        s.close()


@pytest.fixture
def session(engine):
    """Primary session for a test."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def organization_id():
    return uuid4()


@pytest.fixture
def other_organization_id():
    return uuid4()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def registry(session):
    return AccountRegistry(session)


@pytest.fixture
def poster(session, registry, deterministic_clock):
    return LedgerPoster(session, registry=registry, clock=deterministic_clock)


@pytest.fixture
def statements(session, deterministic_clock):
    return StatementService(session, clock=deterministic_clock)


@pytest.fixture
def postings(session):
    return PostingSelector(session)


# =============================================================================
# Source event factories
# =============================================================================


@pytest.fixture
def make_invoice(organization_id):
    """Build an InvoiceEvent; defaults to 1180.00 including 180.00 tax."""

    def _make(
        grand_total="1180.00",
        total_tax="180.00",
        on=date(2024, 1, 15),
        **kwargs,
    ) -> InvoiceEvent:
        return InvoiceEvent(
            id=kwargs.pop("id", uuid4()),
            organization_id=kwargs.pop("organization_id", organization_id),
            date=on,
            grand_total=Decimal(grand_total),
            total_tax=Decimal(total_tax),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_purchase(organization_id):
    """Build a PurchaseEvent; defaults to 5000.00."""

    def _make(grand_total="5000.00", on=date(2024, 1, 10), **kwargs) -> PurchaseEvent:
        return PurchaseEvent(
            id=kwargs.pop("id", uuid4()),
            organization_id=kwargs.pop("organization_id", organization_id),
            date=on,
            grand_total=Decimal(grand_total),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_payment(organization_id):
    """Build a PaymentEvent; defaults to a 500.00 cash inflow."""

    def _make(
        amount="500.00",
        direction=PaymentDirection.INFLOW,
        method=PaymentMethod.CASH,
        on=date(2024, 1, 20),
        **kwargs,
    ) -> PaymentEvent:
        return PaymentEvent(
            id=kwargs.pop("id", uuid4()),
            organization_id=kwargs.pop("organization_id", organization_id),
            date=on,
            amount=Decimal(amount),
            direction=direction,
            method=method,
            **kwargs,
        )

    return _make
