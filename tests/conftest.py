"""
Pytest fixtures for the rental kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (engine, tables, session)
- Deterministic clock, collecting event sink, and service fixtures
- Structured log capture
- Parsed-amount helpers for the standard scenario terms
"""

import json
import logging
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from rental_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from rental_kernel.domain.amounts import parse_amount
from rental_kernel.domain.clock import SECONDS_PER_DAY, DeterministicClock
from rental_kernel.domain.events import CollectingEventSink
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from rental_kernel.selectors.rental_selector import RentalSelector
from rental_kernel.services.auditor_service import AuditorService
from rental_kernel.services.escrow_service import EscrowService
from rental_kernel.services.property_locks import PropertyLockRegistry
from rental_kernel.services.rental_ledger_service import RentalLedgerService

OWNER = "0xOwner"
TENANT = "0xTenant"
STRANGER = "0xStranger"

RENT = parse_amount("1")
DEPOSIT = parse_amount("2")
LATE_FEE = parse_amount("0.1")
INTERVAL = 30 * SECONDS_PER_DAY


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
    Capture rental_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create_rental(...)
            logs = captured_logs()
            assert any(r["message"] == "rental_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rental_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database with every table created."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def event_sink():
    return CollectingEventSink()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def ledger(session, deterministic_clock, event_sink) -> RentalLedgerService:
    """A ledger service over an initialized ledger owned by OWNER."""
    service = RentalLedgerService(
        session,
        clock=deterministic_clock,
        event_sink=event_sink,
        lock_registry=PropertyLockRegistry(),
    )
    service.initialize(OWNER)
    event_sink.clear()
    return service


@pytest.fixture
def escrow(session) -> EscrowService:
    return EscrowService(session)


@pytest.fixture
def auditor(session, deterministic_clock) -> AuditorService:
    return AuditorService(session, deterministic_clock)


@pytest.fixture
def selector(session) -> RentalSelector:
    return RentalSelector(session)


@pytest.fixture
def create_standard_rental(ledger):
    """Create a Pending rental with the standard terms (1 / 2 / 0.1 / 30 days)."""

    def _create(property_id: str = "p1", tenant: str = TENANT):
        return ledger.create_rental(
            caller=OWNER,
            property_id=property_id,
            tenant=tenant,
            rent_amount=RENT,
            deposit_amount=DEPOSIT,
            late_fee=LATE_FEE,
            rent_interval=INTERVAL,
        )

    return _create


@pytest.fixture
def active_rental(ledger, create_standard_rental):
    """An Active rental "p1", activated at the clock's current time."""
    create_standard_rental("p1")
    return ledger.activate_rental(TENANT, "p1", RENT + DEPOSIT)
