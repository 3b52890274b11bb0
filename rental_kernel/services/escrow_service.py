"""
EscrowService -- append-only escrow book for rental funds.

Responsibility:
    Settles the ``EscrowMovement`` values produced by transitions into the
    ``escrow_entries`` table and answers balance questions from it.

Architecture position:
    Kernel > Services.  Implements the ``EscrowAccount`` protocol from
    ``rental_kernel.domain.escrow``; RentalLedgerService is its only writer.

Invariants enforced:
    - Entries are append-only (ORM guard); the balance of a property is
      always sum(captures) - sum(releases) over its entries.
    - A release never exceeds the property's held balance.

Failure modes:
    - InsufficientEscrowError when a release exceeds the held balance.
      Nothing is written in that case.
"""

from sqlalchemy import select

from rental_kernel.domain.escrow import EscrowDirection, EscrowMovement
from rental_kernel.exceptions import InsufficientEscrowError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.escrow import EscrowEntry
from rental_kernel.services.base import BaseService
from rental_kernel.services.sequence_service import SequenceService

logger = get_logger("services.escrow")


class EscrowService(BaseService):
    """
    Escrow account backed by the caller's session.

    Contract:
        ``settle()`` flushes one ``EscrowEntry`` per movement.  Zero-amount
        movements are recorded like any other.

    Non-goals:
        - Does NOT transfer funds anywhere; ``released_to()`` is the
          ledger's view of what a payee is owed.
    """

    def __init__(self, session):
        super().__init__(session)
        self._sequence_service = SequenceService(session)

    def _entries(self, *criteria) -> list[EscrowEntry]:
        return list(
            self._session.execute(
                select(EscrowEntry).where(*criteria).order_by(EscrowEntry.seq)
            ).scalars().all()
        )

    @staticmethod
    def _total(entries: list[EscrowEntry], direction: EscrowDirection) -> int:
        # AmountString columns cannot be summed in SQL
        return sum(e.amount for e in entries if e.direction == direction.value)

    def settle(self, movement: EscrowMovement, occurred_at: int) -> EscrowEntry:
        """
        Record one capture or release.

        Raises:
            InsufficientEscrowError: A release exceeds the held balance.
        """
        if movement.direction is EscrowDirection.RELEASE:
            available = self.balance_of(movement.property_id)
            if movement.amount > available:
                logger.warning(
                    "escrow_release_rejected",
                    extra={
                        "property_id": movement.property_id,
                        "requested": movement.amount,
                        "available": available,
                    },
                )
                raise InsufficientEscrowError(
                    movement.property_id, movement.amount, available
                )

        entry = EscrowEntry(
            seq=self._sequence_service.next_value(SequenceService.ESCROW_ENTRY),
            property_id=movement.property_id,
            direction=movement.direction.value,
            counterparty=movement.counterparty,
            amount=movement.amount,
            purpose=movement.purpose.value,
            occurred_at=occurred_at,
        )
        self._session.add(entry)
        self._session.flush()

        message = (
            "escrow_captured"
            if movement.direction is EscrowDirection.CAPTURE
            else "escrow_released"
        )
        logger.info(
            message,
            extra={
                "property_id": movement.property_id,
                "counterparty": movement.counterparty,
                "amount": movement.amount,
                "purpose": movement.purpose.value,
                "seq": entry.seq,
            },
        )
        return entry

    def captured_total(self, property_id: str) -> int:
        return self._total(
            self._entries(EscrowEntry.property_id == property_id),
            EscrowDirection.CAPTURE,
        )

    def released_total(self, property_id: str) -> int:
        return self._total(
            self._entries(EscrowEntry.property_id == property_id),
            EscrowDirection.RELEASE,
        )

    def balance_of(self, property_id: str) -> int:
        """Funds currently held for a property."""
        entries = self._entries(EscrowEntry.property_id == property_id)
        return self._total(entries, EscrowDirection.CAPTURE) - self._total(
            entries, EscrowDirection.RELEASE
        )

    def released_to(self, identity: str) -> int:
        """Total released to ``identity`` across all properties."""
        return self._total(
            self._entries(
                EscrowEntry.counterparty == identity,
                EscrowEntry.direction == EscrowDirection.RELEASE.value,
            ),
            EscrowDirection.RELEASE,
        )

    def entries_for(self, property_id: str) -> list[EscrowEntry]:
        return self._entries(EscrowEntry.property_id == property_id)
