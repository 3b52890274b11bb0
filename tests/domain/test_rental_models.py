"""Tests for rental value objects: status codes, terms validation, records."""

import pytest

from rental_kernel.domain.rental import (
    LedgerState,
    RentalRecord,
    RentalStatus,
    RentalTerms,
)
from rental_kernel.domain.transitions import Operation, TransitionOutcome
from rental_kernel.exceptions import InvalidTermsError, RentalNotFoundError


def _terms(**overrides) -> RentalTerms:
    values = dict(
        property_id="p1",
        tenant="0xTenant",
        rent_amount=100,
        deposit_amount=200,
        late_fee=10,
        rent_interval=3600,
    )
    values.update(overrides)
    return RentalTerms(**values)


class TestRentalStatus:
    def test_wire_codes(self):
        assert [s.value for s in RentalStatus] == [0, 1, 2, 3]
        assert RentalStatus(3) is RentalStatus.LATE

    def test_labels(self):
        assert RentalStatus.PENDING.label == "Pending"
        assert RentalStatus.LATE.label == "Late"

    def test_only_active_and_late_accept_rent(self):
        accepting = {s for s in RentalStatus if s.accepts_rent}
        assert accepting == {RentalStatus.ACTIVE, RentalStatus.LATE}

    def test_only_expired_is_terminal(self):
        assert [s for s in RentalStatus if s.is_terminal] == [RentalStatus.EXPIRED]


class TestRentalTerms:
    def test_valid_terms(self):
        terms = _terms()
        assert terms.rent_amount == 100

    def test_zero_amounts_are_allowed(self):
        terms = _terms(rent_amount=0, deposit_amount=0, late_fee=0)
        assert terms.deposit_amount == 0

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"property_id": ""}, "property_id"),
            ({"property_id": "   "}, "property_id"),
            ({"tenant": ""}, "tenant"),
            ({"rent_amount": -1}, "rent_amount"),
            ({"deposit_amount": -1}, "deposit_amount"),
            ({"late_fee": -5}, "late_fee"),
            ({"rent_amount": 1.5}, "rent_amount"),
            ({"deposit_amount": True}, "deposit_amount"),
            ({"rent_interval": 0}, "rent_interval"),
            ({"rent_interval": -60}, "rent_interval"),
            ({"rent_interval": 1.0}, "rent_interval"),
        ],
    )
    def test_invalid_terms_rejected(self, overrides, field):
        with pytest.raises(InvalidTermsError) as exc_info:
            _terms(**overrides)
        assert exc_info.value.field == field
        assert exc_info.value.code == "INVALID_TERMS"


class TestRentalRecord:
    def test_from_terms_is_pending_with_zero_timestamps(self):
        record = RentalRecord.from_terms(_terms())
        assert record.status is RentalStatus.PENDING
        assert (record.start_time, record.rent_due_date, record.end_time) == (0, 0, 0)

    def test_derived_amounts(self):
        record = RentalRecord.from_terms(_terms())
        assert record.activation_amount == 300
        assert record.late_payment_amount == 110

    def test_evolve_returns_new_record(self):
        record = RentalRecord.from_terms(_terms())
        active = record.evolve(status=RentalStatus.ACTIVE, start_time=5)
        assert record.status is RentalStatus.PENDING
        assert active.status is RentalStatus.ACTIVE
        assert active.start_time == 5

    def test_records_are_frozen(self):
        record = RentalRecord.from_terms(_terms())
        with pytest.raises(AttributeError):
            record.status = RentalStatus.ACTIVE

    def test_to_dict_uses_status_label(self):
        data = RentalRecord.from_terms(_terms()).to_dict()
        assert data["status"] == "Pending"
        assert list(data) == [
            "property_id",
            "tenant",
            "rent_amount",
            "deposit_amount",
            "late_fee",
            "rent_interval",
            "status",
            "start_time",
            "rent_due_date",
            "end_time",
        ]


class TestLedgerState:
    def test_require_unknown_raises_not_found(self):
        state = LedgerState(owner="0xOwner")
        with pytest.raises(RentalNotFoundError) as exc_info:
            state.require("missing")
        assert exc_info.value.property_id == "missing"

    def test_apply_writes_record_and_pause(self):
        state = LedgerState(owner="0xOwner")
        record = RentalRecord.from_terms(_terms())
        state.apply(TransitionOutcome(operation=Operation.CREATE_RENTAL, record=record))
        assert state.get("p1") == record

        state.apply(TransitionOutcome(operation=Operation.SET_PAUSED, paused=True))
        assert state.paused is True
        assert state.get("p1") == record
