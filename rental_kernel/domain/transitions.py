"""
Rental state machine (``rental_kernel.domain.transitions``).

Responsibility
--------------
Pure transition functions for the rental ledger: create, activate, pay,
end, and pause.  Each takes the current ``LedgerState``, the caller
identity, the attached payment (where funds move) and ``now``, validates
every precondition, and returns a ``TransitionOutcome`` describing the new
record, the escrow movements, and the events.  Nothing is mutated here;
``LedgerState.apply`` and the service layer commit an outcome.

Architecture position
---------------------
**Kernel domain layer** -- pure functional core, ZERO I/O.

State table
-----------
    Pending  --activate-->            Active
    Active   --pay (on time)-->       Active
    Active   --pay (late)-->          Late
    Late     --pay (on time)-->       Active
    Late     --pay (late)-->          Late
    Active   --end-->                 Expired
    Late     --end-->                 Expired
    Expired  (terminal)

Invariants enforced
-------------------
* All preconditions are checked before an outcome is built, so a raised
  error always means "no effect".
* Attached funds must be an ``int`` equal to the required amount exactly.
* Due dates advance from the previous due date by exactly one interval,
  keeping a fixed grid regardless of when the payment arrives.
* Lateness is evaluated lazily: ``now > rent_due_date`` at call time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rental_kernel.domain.escrow import EscrowMovement, EscrowPurpose
from rental_kernel.domain.events import (
    PauseChanged,
    RentalActivated,
    RentalCreated,
    RentalEnded,
    RentalEvent,
    RentPaid,
)
from rental_kernel.domain.rental import (
    LedgerState,
    RentalRecord,
    RentalStatus,
    RentalTerms,
)
from rental_kernel.exceptions import (
    DuplicatePropertyError,
    IncorrectPaymentError,
    InvalidStateError,
    PausedError,
    UnauthorizedError,
)


class Operation(str, Enum):
    """Ledger operations, as named in logs and audit payloads."""

    CREATE_RENTAL = "create_rental"
    ACTIVATE_RENTAL = "activate_rental"
    PAY_RENT = "pay_rent"
    END_RENTAL = "end_rental"
    SET_PAUSED = "set_paused"


@dataclass(frozen=True)
class TransitionOutcome:
    """
    Everything a successful transition changes.

    ``record`` is the new version of the touched record (None for
    ledger-level operations); ``paused`` is the new flag value when the
    operation changes it.
    """

    operation: Operation
    record: RentalRecord | None = None
    movements: tuple[EscrowMovement, ...] = ()
    events: tuple[RentalEvent, ...] = ()
    paused: bool | None = None
    late: bool = False


# =============================================================================
# Gating helpers
# =============================================================================


def _require_owner(state: LedgerState, caller: str, operation: Operation) -> None:
    if caller != state.owner:
        raise UnauthorizedError(caller, "owner", operation.value)


def _require_tenant(record: RentalRecord, caller: str, operation: Operation) -> None:
    if caller != record.tenant:
        raise UnauthorizedError(caller, "tenant", operation.value)


def _require_exact_payment(property_id: str, expected: int, attached: int) -> None:
    # 3.0 == 3 in Python; only int minor units count as funds
    if isinstance(attached, bool) or not isinstance(attached, int) or attached != expected:
        raise IncorrectPaymentError(property_id, expected, attached)


def is_overdue(record: RentalRecord, now: int) -> bool:
    """True when a rent payment made at ``now`` would be late."""
    return record.status.accepts_rent and now > record.rent_due_date


def required_payment(record: RentalRecord, now: int) -> int:
    """
    The exact amount ``pay_rent`` would accept at ``now``.

    Raises:
        InvalidStateError: If the record is not accepting rent.
    """
    if not record.status.accepts_rent:
        raise InvalidStateError(
            record.property_id, record.status.label, Operation.PAY_RENT.value
        )
    if is_overdue(record, now):
        return record.late_payment_amount
    return record.rent_amount


# =============================================================================
# Transitions
# =============================================================================


def create_rental(
    state: LedgerState,
    caller: str,
    terms: RentalTerms,
) -> TransitionOutcome:
    """
    Insert a Pending record with the supplied terms.

    Raises:
        UnauthorizedError: caller is not the owner.
        PausedError: the ledger is paused.
        DuplicatePropertyError: the property id already exists.
    """
    _require_owner(state, caller, Operation.CREATE_RENTAL)
    if state.paused:
        raise PausedError(Operation.CREATE_RENTAL.value)
    if state.get(terms.property_id) is not None:
        raise DuplicatePropertyError(terms.property_id)

    record = RentalRecord.from_terms(terms)
    return TransitionOutcome(
        operation=Operation.CREATE_RENTAL,
        record=record,
        events=(
            RentalCreated(
                property_id=record.property_id,
                tenant=record.tenant,
                rent_amount=record.rent_amount,
                deposit_amount=record.deposit_amount,
            ),
        ),
    )


def activate_rental(
    state: LedgerState,
    caller: str,
    property_id: str,
    attached: int,
    now: int,
) -> TransitionOutcome:
    """
    One-time activation: the tenant pays first rent plus deposit.

    Raises:
        RentalNotFoundError, UnauthorizedError, InvalidStateError,
        IncorrectPaymentError.
    """
    record = state.require(property_id)
    _require_tenant(record, caller, Operation.ACTIVATE_RENTAL)
    if record.status is not RentalStatus.PENDING:
        raise InvalidStateError(
            property_id, record.status.label, Operation.ACTIVATE_RENTAL.value
        )
    _require_exact_payment(property_id, record.activation_amount, attached)

    activated = record.evolve(
        status=RentalStatus.ACTIVE,
        start_time=now,
        rent_due_date=now + record.rent_interval,
    )
    return TransitionOutcome(
        operation=Operation.ACTIVATE_RENTAL,
        record=activated,
        movements=(
            EscrowMovement.capture(
                property_id, caller, attached, EscrowPurpose.ACTIVATION
            ),
        ),
        events=(
            RentalActivated(
                property_id=property_id,
                tenant=caller,
                start_time=now,
                rent_due_date=activated.rent_due_date,
                amount=attached,
            ),
        ),
    )


def pay_rent(
    state: LedgerState,
    caller: str,
    property_id: str,
    attached: int,
    now: int,
) -> TransitionOutcome:
    """
    Collect one period of rent, with the late fee when past due.

    On time (``now <= rent_due_date``) the exact rent is required and the
    status becomes Active; late, rent plus late fee is required and the
    status becomes Late.  Either way the due date moves forward by one
    interval from the previous due date.

    Raises:
        RentalNotFoundError, UnauthorizedError, InvalidStateError,
        IncorrectPaymentError.
    """
    record = state.require(property_id)
    _require_tenant(record, caller, Operation.PAY_RENT)
    if not record.status.accepts_rent:
        raise InvalidStateError(
            property_id, record.status.label, Operation.PAY_RENT.value
        )

    late = is_overdue(record, now)
    expected = record.late_payment_amount if late else record.rent_amount
    _require_exact_payment(property_id, expected, attached)

    paid = record.evolve(
        status=RentalStatus.LATE if late else RentalStatus.ACTIVE,
        rent_due_date=record.rent_due_date + record.rent_interval,
    )
    purpose = EscrowPurpose.LATE_RENT if late else EscrowPurpose.RENT
    return TransitionOutcome(
        operation=Operation.PAY_RENT,
        record=paid,
        movements=(EscrowMovement.capture(property_id, caller, attached, purpose),),
        events=(
            RentPaid(
                property_id=property_id,
                tenant=caller,
                amount=attached,
                late=late,
                paid_at=now,
                next_due_date=paid.rent_due_date,
            ),
        ),
        late=late,
    )


def end_rental(
    state: LedgerState,
    caller: str,
    property_id: str,
    now: int,
) -> TransitionOutcome:
    """
    Terminate an Active or Late rental and refund the deposit to the tenant.

    Accumulated rent stays in escrow for the owner; only the deposit is
    released.  A Pending rental holds no deposit and cannot be ended.

    Raises:
        UnauthorizedError, RentalNotFoundError, InvalidStateError.
    """
    _require_owner(state, caller, Operation.END_RENTAL)
    record = state.require(property_id)
    if not record.status.accepts_rent:
        raise InvalidStateError(
            property_id, record.status.label, Operation.END_RENTAL.value
        )

    ended = record.evolve(status=RentalStatus.EXPIRED, end_time=now)
    movements: tuple[EscrowMovement, ...] = ()
    if record.deposit_amount:
        movements = (
            EscrowMovement.release(
                property_id,
                record.tenant,
                record.deposit_amount,
                EscrowPurpose.DEPOSIT_REFUND,
            ),
        )
    return TransitionOutcome(
        operation=Operation.END_RENTAL,
        record=ended,
        movements=movements,
        events=(
            RentalEnded(
                property_id=property_id,
                tenant=record.tenant,
                end_time=now,
                deposit_refunded=record.deposit_amount,
            ),
        ),
    )


def set_paused(state: LedgerState, caller: str, paused: bool) -> TransitionOutcome:
    """
    Set the ledger-wide pause flag.  Only creation is gated by it.

    Raises:
        UnauthorizedError: caller is not the owner.
    """
    _require_owner(state, caller, Operation.SET_PAUSED)
    return TransitionOutcome(
        operation=Operation.SET_PAUSED,
        events=(PauseChanged(paused=paused, changed_by=caller),),
        paused=paused,
    )
