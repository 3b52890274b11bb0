"""
ORM immutability guards.

Verifies:
- Audit events and escrow entries can be neither updated nor deleted
- Rental terms are fixed once written; lifecycle columns stay writable
- Rentals cannot be deleted
- The guards can be lifted only by explicitly unregistering them
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import select

from rental_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from rental_kernel.exceptions import ImmutabilityViolationError
from rental_kernel.models.audit_event import AuditEvent
from rental_kernel.models.escrow import EscrowEntry
from rental_kernel.models.rental import RentalModel


@contextmanager
def disabled_immutability():
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _rental_row(session, property_id: str = "p1") -> RentalModel:
    return session.execute(
        select(RentalModel).where(RentalModel.property_id == property_id)
    ).scalar_one()


class TestAuditEventImmutability:
    def test_update_blocked(self, ledger, session):
        event = session.execute(select(AuditEvent)).scalars().first()
        event.actor_id = "0xForger"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "AuditEvent"

    def test_delete_blocked(self, ledger, session):
        event = session.execute(select(AuditEvent)).scalars().first()
        session.delete(event)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestEscrowEntryImmutability:
    def test_update_blocked(self, active_rental, session):
        entry = session.execute(select(EscrowEntry)).scalars().first()
        entry.amount = entry.amount + 1
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, active_rental, session):
        entry = session.execute(select(EscrowEntry)).scalars().first()
        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestRentalImmutability:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("tenant", "0xSomeoneElse"),
            ("rent_amount", 5),
            ("deposit_amount", 0),
            ("late_fee", 7),
            ("rent_interval", 60),
        ],
    )
    def test_terms_are_fixed(self, active_rental, session, field, value):
        row = _rental_row(session)
        setattr(row, field, value)
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert field in str(exc_info.value)

    def test_lifecycle_columns_writable(self, active_rental, session):
        row = _rental_row(session)
        row.status = "LATE"
        row.rent_due_date = row.rent_due_date + 1
        session.flush()
        session.rollback()

    def test_delete_blocked(self, active_rental, session):
        session.delete(_rental_row(session))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, active_rental, session, captured_logs):
        row = _rental_row(session)
        row.rent_amount = 5
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        (record,) = [
            r for r in captured_logs() if r["message"] == "immutability_violation_blocked"
        ]
        assert record["field"] == "rent_amount"
        assert record["entity_type"] == "Rental"


class TestGuardRegistration:
    def test_unregistered_guards_allow_changes(self, active_rental, session):
        row = _rental_row(session)
        with disabled_immutability():
            row.rent_amount = 5
            session.flush()
        session.rollback()

    def test_registration_is_idempotent(self, active_rental, session):
        register_immutability_listeners()
        register_immutability_listeners()
        row = _rental_row(session)
        row.late_fee = 1
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
