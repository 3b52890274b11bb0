"""
Tests for the pure rental state machine.

Every transition is checked for its success effects, its rejection order,
and for leaving the input state untouched.  Property tests cover the
exact-payment rule and the fixed due-date grid.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rental_kernel.domain import transitions
from rental_kernel.domain.escrow import EscrowDirection, EscrowPurpose
from rental_kernel.domain.events import (
    PauseChanged,
    RentalActivated,
    RentalCreated,
    RentalEnded,
    RentPaid,
)
from rental_kernel.domain.rental import LedgerState, RentalStatus, RentalTerms
from rental_kernel.exceptions import (
    DuplicatePropertyError,
    IncorrectPaymentError,
    InvalidStateError,
    PausedError,
    RentalNotFoundError,
    UnauthorizedError,
)

OWNER = "0xOwner"
TENANT = "0xTenant"
STRANGER = "0xStranger"

RENT = 10**18
DEPOSIT = 2 * 10**18
LATE_FEE = 10**17
DAY = 86400
INTERVAL = 30 * DAY
T0 = 1_700_000_000


def _terms(property_id="p1", **overrides):
    values = dict(
        property_id=property_id,
        tenant=TENANT,
        rent_amount=RENT,
        deposit_amount=DEPOSIT,
        late_fee=LATE_FEE,
        rent_interval=INTERVAL,
    )
    values.update(overrides)
    return RentalTerms(**values)


def _state_with(*, status=None, **term_overrides) -> LedgerState:
    """Ledger holding "p1": Pending, or advanced to ``status`` at T0."""
    state = LedgerState(owner=OWNER)
    terms = _terms(**term_overrides)
    state.apply(transitions.create_rental(state, OWNER, terms))
    if status is None or status is RentalStatus.PENDING:
        return state
    record = state.require("p1")
    state.apply(
        transitions.activate_rental(state, TENANT, "p1", record.activation_amount, T0)
    )
    if status is RentalStatus.LATE:
        state.apply(
            transitions.pay_rent(
                state, TENANT, "p1", record.late_payment_amount, T0 + INTERVAL + 1
            )
        )
    elif status is RentalStatus.EXPIRED:
        state.apply(transitions.end_rental(state, OWNER, "p1", T0 + DAY))
    return state


# =============================================================================
# create_rental
# =============================================================================


class TestCreateRental:
    def test_creates_pending_record_with_terms(self):
        state = LedgerState(owner=OWNER)
        outcome = transitions.create_rental(state, OWNER, _terms())

        record = outcome.record
        assert record.status is RentalStatus.PENDING
        assert record.tenant == TENANT
        assert (record.rent_amount, record.deposit_amount, record.late_fee) == (
            RENT,
            DEPOSIT,
            LATE_FEE,
        )
        assert record.rent_interval == INTERVAL
        assert (record.start_time, record.rent_due_date, record.end_time) == (0, 0, 0)
        assert outcome.movements == ()

    def test_emits_rental_created_with_exact_fields(self):
        outcome = transitions.create_rental(LedgerState(owner=OWNER), OWNER, _terms())
        assert outcome.events == (
            RentalCreated(
                property_id="p1",
                tenant=TENANT,
                rent_amount=RENT,
                deposit_amount=DEPOSIT,
            ),
        )

    def test_does_not_mutate_state(self):
        state = LedgerState(owner=OWNER)
        transitions.create_rental(state, OWNER, _terms())
        assert state.rentals == {}

    def test_non_owner_rejected(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            transitions.create_rental(LedgerState(owner=OWNER), STRANGER, _terms())
        assert "Only the owner can call this function" in str(exc_info.value)
        assert exc_info.value.code == "UNAUTHORIZED"

    def test_paused_rejected(self):
        state = LedgerState(owner=OWNER, paused=True)
        with pytest.raises(PausedError, match="Contract is paused"):
            transitions.create_rental(state, OWNER, _terms())

    def test_authorization_checked_before_pause(self):
        state = LedgerState(owner=OWNER, paused=True)
        with pytest.raises(UnauthorizedError):
            transitions.create_rental(state, STRANGER, _terms())

    def test_duplicate_rejected_and_original_kept(self):
        state = _state_with()
        original = state.require("p1")
        with pytest.raises(DuplicatePropertyError):
            transitions.create_rental(state, OWNER, _terms(tenant="0xOther"))
        assert state.require("p1") == original


# =============================================================================
# activate_rental
# =============================================================================


class TestActivateRental:
    def test_activation_sets_schedule_and_captures_funds(self):
        state = _state_with()
        outcome = transitions.activate_rental(state, TENANT, "p1", RENT + DEPOSIT, T0)

        record = outcome.record
        assert record.status is RentalStatus.ACTIVE
        assert record.start_time == T0
        assert record.rent_due_date == T0 + INTERVAL
        (movement,) = outcome.movements
        assert movement.direction is EscrowDirection.CAPTURE
        assert movement.amount == RENT + DEPOSIT
        assert movement.counterparty == TENANT
        assert movement.purpose is EscrowPurpose.ACTIVATION
        assert isinstance(outcome.events[0], RentalActivated)

    def test_unknown_property(self):
        with pytest.raises(RentalNotFoundError):
            transitions.activate_rental(LedgerState(owner=OWNER), TENANT, "nope", 0, T0)

    def test_owner_cannot_activate(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            transitions.activate_rental(_state_with(), OWNER, "p1", RENT + DEPOSIT, T0)
        assert exc_info.value.required_role == "tenant"

    @pytest.mark.parametrize("attached", [0, RENT, DEPOSIT, RENT + DEPOSIT - 1, RENT + DEPOSIT + 1])
    def test_inexact_payment_rejected(self, attached):
        state = _state_with()
        with pytest.raises(IncorrectPaymentError) as exc_info:
            transitions.activate_rental(state, TENANT, "p1", attached, T0)
        assert exc_info.value.expected == RENT + DEPOSIT
        assert exc_info.value.received == attached
        assert state.require("p1").status is RentalStatus.PENDING

    @pytest.mark.parametrize(
        "status", [RentalStatus.ACTIVE, RentalStatus.LATE, RentalStatus.EXPIRED]
    )
    def test_only_pending_can_activate(self, status):
        state = _state_with(status=status)
        with pytest.raises(InvalidStateError):
            transitions.activate_rental(state, TENANT, "p1", RENT + DEPOSIT, T0 + 2 * INTERVAL)

    def test_state_checked_before_amount(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        with pytest.raises(InvalidStateError):
            transitions.activate_rental(state, TENANT, "p1", 1, T0)

    @pytest.mark.parametrize("attached", [float(RENT + DEPOSIT), str(RENT + DEPOSIT)])
    def test_non_integer_payment_rejected(self, attached):
        state = _state_with()
        with pytest.raises(IncorrectPaymentError):
            transitions.activate_rental(state, TENANT, "p1", attached, T0)
        assert state.require("p1").status is RentalStatus.PENDING

    def test_bool_payment_rejected(self):
        state = _state_with(rent_amount=1, deposit_amount=0)
        assert state.require("p1").activation_amount == 1
        with pytest.raises(IncorrectPaymentError):
            transitions.activate_rental(state, TENANT, "p1", True, T0)
        assert state.require("p1").status is RentalStatus.PENDING


# =============================================================================
# pay_rent
# =============================================================================


class TestPayRent:
    def test_on_time_payment(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT, T0 + 20 * DAY)

        assert outcome.record.status is RentalStatus.ACTIVE
        assert outcome.record.rent_due_date == T0 + 2 * INTERVAL
        assert outcome.late is False
        (movement,) = outcome.movements
        assert movement.purpose is EscrowPurpose.RENT
        assert outcome.events == (
            RentPaid(
                property_id="p1",
                tenant=TENANT,
                amount=RENT,
                late=False,
                paid_at=T0 + 20 * DAY,
                next_due_date=T0 + 2 * INTERVAL,
            ),
        )

    def test_payment_exactly_at_due_date_is_on_time(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT, T0 + INTERVAL)
        assert outcome.record.status is RentalStatus.ACTIVE

    def test_one_second_past_due_is_late(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        with pytest.raises(IncorrectPaymentError) as exc_info:
            transitions.pay_rent(state, TENANT, "p1", RENT, T0 + INTERVAL + 1)
        assert exc_info.value.expected == RENT + LATE_FEE

    def test_late_payment_sets_late_and_advances_from_previous_due(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        now = T0 + INTERVAL + 5 * DAY
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT + LATE_FEE, now)

        assert outcome.record.status is RentalStatus.LATE
        assert outcome.record.rent_due_date == T0 + 2 * INTERVAL
        assert outcome.late is True
        assert outcome.movements[0].purpose is EscrowPurpose.LATE_RENT

    def test_on_time_payment_clears_late(self):
        state = _state_with(status=RentalStatus.LATE)
        due = state.require("p1").rent_due_date
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT, due)
        assert outcome.record.status is RentalStatus.ACTIVE

    def test_late_after_late_stays_late(self):
        state = _state_with(status=RentalStatus.LATE)
        due = state.require("p1").rent_due_date
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT + LATE_FEE, due + 1)
        assert outcome.record.status is RentalStatus.LATE

    def test_lump_late_payment_advances_one_interval_only(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        now = T0 + 5 * INTERVAL
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT + LATE_FEE, now)
        assert outcome.record.rent_due_date == T0 + 2 * INTERVAL

    def test_stranger_cannot_pay(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        with pytest.raises(UnauthorizedError):
            transitions.pay_rent(state, STRANGER, "p1", RENT, T0 + DAY)

    @pytest.mark.parametrize("status", [RentalStatus.PENDING, RentalStatus.EXPIRED])
    def test_rejected_outside_active_or_late(self, status):
        state = _state_with(status=status)
        with pytest.raises(InvalidStateError):
            transitions.pay_rent(state, TENANT, "p1", RENT, T0 + DAY)

    def test_zero_late_fee_still_marks_late(self):
        state = _state_with(status=RentalStatus.ACTIVE, late_fee=0)
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT, T0 + INTERVAL + 1)
        assert outcome.record.status is RentalStatus.LATE

    def test_pause_does_not_block_payment(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        state.apply(transitions.set_paused(state, OWNER, True))
        outcome = transitions.pay_rent(state, TENANT, "p1", RENT, T0 + DAY)
        assert outcome.record.status is RentalStatus.ACTIVE

    def test_float_payment_rejected(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        with pytest.raises(IncorrectPaymentError):
            transitions.pay_rent(state, TENANT, "p1", float(RENT), T0 + DAY)
        assert state.require("p1").rent_due_date == T0 + INTERVAL

    def test_bool_payment_rejected(self):
        state = _state_with(status=RentalStatus.ACTIVE, rent_amount=1, deposit_amount=0)
        with pytest.raises(IncorrectPaymentError):
            transitions.pay_rent(state, TENANT, "p1", True, T0 + DAY)
        assert state.require("p1").rent_due_date == T0 + INTERVAL


@pytest.mark.slow
class TestPayRentProperties:
    @settings(max_examples=200, deadline=None)
    @given(
        elapsed=st.integers(min_value=0, max_value=10 * INTERVAL),
        attached=st.integers(min_value=0, max_value=3 * RENT),
    )
    def test_only_the_exact_branch_amount_is_accepted(self, elapsed, attached):
        state = _state_with(status=RentalStatus.ACTIVE)
        now = T0 + elapsed
        expected = RENT + LATE_FEE if now > T0 + INTERVAL else RENT
        if attached == expected:
            outcome = transitions.pay_rent(state, TENANT, "p1", attached, now)
            assert outcome.movements[0].amount == expected
        else:
            with pytest.raises(IncorrectPaymentError):
                transitions.pay_rent(state, TENANT, "p1", attached, now)

    @settings(max_examples=100, deadline=None)
    @given(
        interval=st.integers(min_value=1, max_value=400 * DAY),
        delays=st.lists(st.integers(min_value=-10 * DAY, max_value=10 * DAY), min_size=1, max_size=12),
    )
    def test_due_dates_stay_on_the_activation_grid(self, interval, delays):
        state = _state_with(status=RentalStatus.ACTIVE, rent_interval=interval)
        now = T0
        for n, delay in enumerate(delays, start=1):
            record = state.require("p1")
            now = max(now, record.rent_due_date + delay)
            amount = transitions.required_payment(record, now)
            state.apply(transitions.pay_rent(state, TENANT, "p1", amount, now))
            assert state.require("p1").rent_due_date == T0 + (n + 1) * interval


# =============================================================================
# end_rental
# =============================================================================


class TestEndRental:
    @pytest.mark.parametrize("status", [RentalStatus.ACTIVE, RentalStatus.LATE])
    def test_end_releases_deposit_to_tenant(self, status):
        state = _state_with(status=status)
        now = T0 + 3 * INTERVAL
        outcome = transitions.end_rental(state, OWNER, "p1", now)

        assert outcome.record.status is RentalStatus.EXPIRED
        assert outcome.record.end_time == now
        (movement,) = outcome.movements
        assert movement.direction is EscrowDirection.RELEASE
        assert movement.counterparty == TENANT
        assert movement.amount == DEPOSIT
        assert outcome.events == (
            RentalEnded(property_id="p1", tenant=TENANT, end_time=now, deposit_refunded=DEPOSIT),
        )

    def test_end_keeps_due_date(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        due = state.require("p1").rent_due_date
        outcome = transitions.end_rental(state, OWNER, "p1", T0 + DAY)
        assert outcome.record.rent_due_date == due

    def test_second_end_rejected(self):
        state = _state_with(status=RentalStatus.EXPIRED)
        with pytest.raises(InvalidStateError):
            transitions.end_rental(state, OWNER, "p1", T0 + 2 * DAY)

    def test_pending_cannot_be_ended(self):
        with pytest.raises(InvalidStateError):
            transitions.end_rental(_state_with(), OWNER, "p1", T0)

    def test_tenant_cannot_end(self):
        state = _state_with(status=RentalStatus.ACTIVE)
        with pytest.raises(UnauthorizedError):
            transitions.end_rental(state, TENANT, "p1", T0 + DAY)

    def test_authorization_checked_before_existence(self):
        with pytest.raises(UnauthorizedError):
            transitions.end_rental(LedgerState(owner=OWNER), TENANT, "nope", T0)

    def test_unknown_property(self):
        with pytest.raises(RentalNotFoundError):
            transitions.end_rental(LedgerState(owner=OWNER), OWNER, "nope", T0)

    def test_zero_deposit_moves_nothing(self):
        state = _state_with(status=RentalStatus.ACTIVE, deposit_amount=0)
        outcome = transitions.end_rental(state, OWNER, "p1", T0 + DAY)
        assert outcome.movements == ()
        assert outcome.record.status is RentalStatus.EXPIRED


# =============================================================================
# set_paused and helpers
# =============================================================================


class TestSetPaused:
    def test_owner_pauses(self):
        outcome = transitions.set_paused(LedgerState(owner=OWNER), OWNER, True)
        assert outcome.paused is True
        assert outcome.events == (PauseChanged(paused=True, changed_by=OWNER),)

    def test_non_owner_rejected(self):
        with pytest.raises(UnauthorizedError):
            transitions.set_paused(LedgerState(owner=OWNER), TENANT, True)


class TestRequiredPayment:
    def test_on_time_and_late(self):
        record = _state_with(status=RentalStatus.ACTIVE).require("p1")
        assert transitions.required_payment(record, T0 + INTERVAL) == RENT
        assert transitions.required_payment(record, T0 + INTERVAL + 1) == RENT + LATE_FEE
        assert transitions.is_overdue(record, T0 + INTERVAL + 1)

    def test_pending_has_no_required_payment(self):
        record = _state_with().require("p1")
        assert not transitions.is_overdue(record, T0)
        with pytest.raises(InvalidStateError):
            transitions.required_payment(record, T0)
