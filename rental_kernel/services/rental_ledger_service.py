"""
Rental Ledger Service (``rental_kernel.services.rental_ledger_service``).

Responsibility
--------------
The Rental Ledger over a SQLAlchemy session.  Each public mutating method
loads the slice of ledger state a transition needs, runs the pure
transition from ``rental_kernel.domain.transitions``, persists the new
record, settles escrow movements, writes the audit event, and commits.
Domain events are handed to the event sink only after that succeeds.

Architecture position
---------------------
**Kernel services layer** -- the imperative shell around the pure
transitions.  Composes ``EscrowService`` and ``AuditorService`` (both
flush-only) inside one transaction.

Invariants enforced
-------------------
* All-or-nothing: every precondition is checked by the pure transition
  before anything is written; persistence failures roll back.
* Serialized access per property: an in-process lock from
  ``PropertyLockRegistry`` plus ``SELECT ... FOR UPDATE`` on the rental row.
  On SQLite, which has no row locks, every write takes the one ledger-wide
  lock instead, so services in a process must share a registry.
* The current time comes from the injected ``Clock`` and is read once per
  call.
* Each public method owns the transaction boundary when
  ``auto_commit=True`` (the default): commit on success, rollback on
  failure.  With ``auto_commit=False`` the caller owns it.

Failure modes
-------------
* ``RentalKernelError`` subclasses from the transitions propagate unchanged
  after a WARNING ``rental_operation_rejected`` log carrying the error code.
* ``LedgerNotInitializedError`` before ``initialize()`` has run.
* A unique-constraint race on the property id (two processes creating
  the same rental) surfaces as ``DuplicatePropertyError``.
* Unexpected exceptions roll back and propagate.

Audit relevance
---------------
Every successful mutation writes exactly one hash-chained ``AuditEvent``.
Rejected calls write nothing.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_kernel.domain import transitions
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.escrow import EscrowAccount
from rental_kernel.domain.events import EventSink
from rental_kernel.domain.rental import LedgerState, RentalRecord, RentalTerms
from rental_kernel.domain.transitions import Operation, TransitionOutcome
from rental_kernel.exceptions import (
    DuplicatePropertyError,
    LedgerAlreadyInitializedError,
    LedgerNotInitializedError,
    RentalKernelError,
    RentalNotFoundError,
)
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.models.rental import DEFAULT_LEDGER_KEY, LedgerStateModel, RentalModel
from rental_kernel.services.auditor_service import AuditorService
from rental_kernel.services.escrow_service import EscrowService
from rental_kernel.services.property_locks import (
    DEFAULT_LOCK_REGISTRY,
    PropertyLockRegistry,
)
from rental_kernel.services.sequence_service import SequenceService

logger = get_logger("services.rental_ledger")

# Lock key for ledger-level operations (pause, initialization)
_LEDGER_LOCK_KEY = "__ledger__"

# Dialects without row locks; sequence counters and the audit chain head
# are shared by every property, so all writes take the ledger lock.
_NO_ROW_LOCK_DIALECTS = frozenset({"sqlite"})

# Unique constraint on rentals.property_id, as each backend reports it
_DUPLICATE_PROPERTY_MARKERS = ("uq_rental_property", "rentals.property_id")


class RentalLedgerService:
    """
    Create, activate, pay, end and pause rental agreements.

    Contract
    --------
    * Every mutating method takes the caller identity explicitly; funds
      attached to a call are passed as integer minor units.
    * Returns the updated ``RentalRecord`` (or the pause flag) on success.

    Guarantees
    ----------
    * A raised ``RentalKernelError`` means no record, escrow or audit row
      was written.
    * Events reach the sink in transition order, once per success.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT authenticate callers; identities arrive already verified.
    * Does NOT schedule anything; lateness is evaluated when rent is paid.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        escrow: EscrowAccount | None = None,
        auditor: AuditorService | None = None,
        lock_registry: PropertyLockRegistry | None = None,
        auto_commit: bool = True,
        ledger_key: str = DEFAULT_LEDGER_KEY,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._event_sink = event_sink
        self._escrow = escrow or EscrowService(session)
        self._auditor = auditor or AuditorService(session, self._clock)
        self._locks = lock_registry if lock_registry is not None else DEFAULT_LOCK_REGISTRY
        self._auto_commit = auto_commit
        self._ledger_key = ledger_key

    # =========================================================================
    # Ledger setup
    # =========================================================================

    def initialize(self, owner: str) -> LedgerState:
        """
        Persist the ledger's owner; the analogue of deploying the contract.

        Raises:
            LedgerAlreadyInitializedError: The ledger already has an owner.
            ValueError: ``owner`` is empty.
        """
        if not owner or not owner.strip():
            raise ValueError("Ledger owner cannot be empty")

        with self._locks.hold(_LEDGER_LOCK_KEY):
            try:
                existing = self._find_ledger_row(for_update=True)
                if existing is not None:
                    raise LedgerAlreadyInitializedError(existing.owner)

                self._session.add(
                    LedgerStateModel(
                        ledger_key=self._ledger_key,
                        owner=owner,
                        paused=False,
                        created_by=owner,
                    )
                )
                SequenceService(self._session).initialize_sequences()
                self._session.flush()
                self._auditor.record_ledger_initialized(self._ledger_key, owner)
                self._finish()
            except RentalKernelError as exc:
                self._abort()
                logger.warning(
                    "ledger_initialization_rejected",
                    extra={"error_code": exc.code, "owner": owner},
                )
                raise
            except Exception:
                self._abort()
                raise

        logger.info(
            "ledger_initialized",
            extra={"owner": owner, "ledger_key": self._ledger_key},
        )
        return LedgerState(owner=owner)

    # =========================================================================
    # Lifecycle operations
    # =========================================================================

    def create_rental(
        self,
        caller: str,
        property_id: str,
        tenant: str,
        rent_amount: int,
        deposit_amount: int,
        late_fee: int,
        rent_interval: int,
    ) -> RentalRecord:
        """
        Owner creates a Pending rental with fixed terms.

        Raises:
            InvalidTermsError, UnauthorizedError, PausedError,
            DuplicatePropertyError.
        """

        def run(state: LedgerState, now: int) -> TransitionOutcome:
            terms = RentalTerms(
                property_id=property_id,
                tenant=tenant,
                rent_amount=rent_amount,
                deposit_amount=deposit_amount,
                late_fee=late_fee,
                rent_interval=rent_interval,
            )
            return transitions.create_rental(state, caller, terms)

        outcome = self._execute(Operation.CREATE_RENTAL, caller, property_id, run)
        return outcome.record

    def activate_rental(self, caller: str, property_id: str, attached: int) -> RentalRecord:
        """
        Tenant activates a Pending rental by attaching rent plus deposit.

        Raises:
            RentalNotFoundError, UnauthorizedError, InvalidStateError,
            IncorrectPaymentError.
        """
        outcome = self._execute(
            Operation.ACTIVATE_RENTAL,
            caller,
            property_id,
            lambda state, now: transitions.activate_rental(
                state, caller, property_id, attached, now
            ),
        )
        return outcome.record

    def pay_rent(self, caller: str, property_id: str, attached: int) -> RentalRecord:
        """
        Tenant pays one period of rent; the late fee applies past the due date.

        Raises:
            RentalNotFoundError, UnauthorizedError, InvalidStateError,
            IncorrectPaymentError.
        """
        outcome = self._execute(
            Operation.PAY_RENT,
            caller,
            property_id,
            lambda state, now: transitions.pay_rent(
                state, caller, property_id, attached, now
            ),
        )
        return outcome.record

    def end_rental(self, caller: str, property_id: str) -> RentalRecord:
        """
        Owner terminates a rental; the deposit goes back to the tenant.

        Raises:
            UnauthorizedError, RentalNotFoundError, InvalidStateError.
        """
        outcome = self._execute(
            Operation.END_RENTAL,
            caller,
            property_id,
            lambda state, now: transitions.end_rental(state, caller, property_id, now),
        )
        return outcome.record

    def set_paused(self, caller: str, paused: bool) -> bool:
        """
        Owner toggles the pause flag.  Only creation is blocked while paused.

        Raises:
            UnauthorizedError: caller is not the owner.
        """
        self._execute(
            Operation.SET_PAUSED,
            caller,
            None,
            lambda state, now: transitions.set_paused(state, caller, paused),
        )
        return paused

    # =========================================================================
    # Reads
    # =========================================================================

    def get_deposit(self, property_id: str) -> int:
        """
        The record's deposit amount.  Not gated by caller or pause.

        Raises:
            RentalNotFoundError: unknown property id.
        """
        return self.get_rental(property_id).deposit_amount

    def get_rental(self, property_id: str) -> RentalRecord:
        """
        Full record for a property.

        Raises:
            RentalNotFoundError: unknown property id.
        """
        row = self._find_rental_row(property_id, for_update=False)
        if row is None:
            raise RentalNotFoundError(property_id)
        return row.to_dto()

    def rentals(self, property_id: str) -> RentalRecord:
        """Alias of ``get_rental``, named after the public record mapping."""
        return self.get_rental(property_id)

    def owner(self) -> str:
        return self._require_ledger_row(for_update=False).owner

    def is_paused(self) -> bool:
        return self._require_ledger_row(for_update=False).paused

    # =========================================================================
    # Internals
    # =========================================================================

    def _find_ledger_row(self, for_update: bool) -> LedgerStateModel | None:
        stmt = select(LedgerStateModel).where(
            LedgerStateModel.ledger_key == self._ledger_key
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require_ledger_row(self, for_update: bool) -> LedgerStateModel:
        row = self._find_ledger_row(for_update)
        if row is None:
            raise LedgerNotInitializedError()
        return row

    def _find_rental_row(self, property_id: str, for_update: bool) -> RentalModel | None:
        stmt = select(RentalModel).where(RentalModel.property_id == property_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_key(self, property_id: str | None) -> str:
        if property_id is None:
            return _LEDGER_LOCK_KEY
        if self._session.get_bind().dialect.name in _NO_ROW_LOCK_DIALECTS:
            return _LEDGER_LOCK_KEY
        return property_id

    def _execute(
        self,
        operation: Operation,
        caller: str,
        property_id: str | None,
        run: Callable[[LedgerState, int], TransitionOutcome],
    ) -> TransitionOutcome:
        with self._locks.hold(self._lock_key(property_id)), LogContext.bind(
            actor_id=caller,
            property_id=property_id,
            operation=operation.value,
        ):
            now = self._clock.timestamp()
            try:
                ledger_row = self._require_ledger_row(
                    for_update=operation in (Operation.SET_PAUSED, Operation.CREATE_RENTAL)
                )
                rental_row = None
                state = LedgerState(owner=ledger_row.owner, paused=ledger_row.paused)
                if property_id is not None:
                    rental_row = self._find_rental_row(property_id, for_update=True)
                    if rental_row is not None:
                        state.rentals[property_id] = rental_row.to_dto()

                outcome = run(state, now)
                try:
                    self._persist(outcome, ledger_row, rental_row, caller, now)
                except IntegrityError as exc:
                    # A concurrent create committed the same property id first
                    if operation is Operation.CREATE_RENTAL and _is_duplicate_property(exc):
                        raise DuplicatePropertyError(property_id) from exc
                    raise
                self._finish()
            except RentalKernelError as exc:
                self._abort()
                logger.warning(
                    "rental_operation_rejected",
                    extra={
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                raise
            except Exception:
                self._abort()
                logger.exception("rental_operation_failed")
                raise

            self._publish(outcome)
        return outcome

    def _persist(
        self,
        outcome: TransitionOutcome,
        ledger_row: LedgerStateModel,
        rental_row: RentalModel | None,
        caller: str,
        now: int,
    ) -> None:
        record = outcome.record
        if record is not None:
            if rental_row is None:
                self._session.add(RentalModel.from_dto(record, created_by=caller))
            else:
                rental_row.apply_dto(record)
        if outcome.paused is not None:
            ledger_row.paused = outcome.paused

        for movement in outcome.movements:
            self._escrow.settle(movement, now)
        self._session.flush()

        self._audit(outcome, caller, now)

    def _audit(self, outcome: TransitionOutcome, caller: str, now: int) -> None:
        record = outcome.record
        operation = outcome.operation
        if operation is Operation.CREATE_RENTAL:
            self._auditor.record_rental_created(record, caller)
        elif operation is Operation.ACTIVATE_RENTAL:
            self._auditor.record_rental_activated(
                record, record.activation_amount, caller
            )
        elif operation is Operation.PAY_RENT:
            amount = record.late_payment_amount if outcome.late else record.rent_amount
            self._auditor.record_rent_paid(record, amount, outcome.late, now, caller)
        elif operation is Operation.END_RENTAL:
            self._auditor.record_rental_ended(record, record.deposit_amount, caller)
        elif operation is Operation.SET_PAUSED:
            self._auditor.record_pause_changed(self._ledger_key, outcome.paused, caller)

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()
        else:
            self._session.flush()

    def _abort(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    def _publish(self, outcome: TransitionOutcome) -> None:
        for event in outcome.events:
            logger.info(
                _EVENT_LOG_NAMES.get(event.name, event.name),
                extra=event.to_payload(),
            )
            if self._event_sink is not None:
                self._event_sink.emit(event)


_EVENT_LOG_NAMES = {
    "RentalCreated": "rental_created",
    "RentalActivated": "rental_activated",
    "RentPaid": "rent_paid",
    "RentalEnded": "rental_ended",
    "PauseChanged": "pause_changed",
}


def _is_duplicate_property(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _DUPLICATE_PROPERTY_MARKERS)
