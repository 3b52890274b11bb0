"""
Module: rental_kernel.selectors.rental_selector
Responsibility: Read side of the rental ledger: records, deposits, listings,
    escrow balances and the due-status report used by operators.

Invariants enforced:
    - Escrow balances are derived from escrow entries; there is no stored
      balance.
    - ``due_status`` evaluates lateness exactly as ``pay_rent`` does, so the
      reported required payment is the amount a payment at ``now`` must carry.

Failure modes:
    - RentalNotFoundError for an unknown property id.
"""

from dataclasses import dataclass

from sqlalchemy import select

from rental_kernel.domain.escrow import EscrowDirection
from rental_kernel.domain.rental import RentalRecord, RentalStatus
from rental_kernel.domain.transitions import is_overdue, required_payment
from rental_kernel.exceptions import RentalNotFoundError
from rental_kernel.models.escrow import EscrowEntry
from rental_kernel.models.rental import RentalModel
from rental_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DueStatus:
    """
    Time position of a rental relative to its schedule.

    ``elapsed`` counts seconds since activation (0 while Pending);
    ``seconds_until_due`` is negative once the due date has passed.
    ``required_payment`` is None when the record does not accept rent.
    """

    property_id: str
    status: RentalStatus
    now: int
    start_time: int
    rent_due_date: int
    elapsed: int
    seconds_until_due: int
    overdue: bool
    required_payment: int | None


class RentalSelector(BaseSelector):
    """Queries over rentals and escrow entries."""

    def _row(self, property_id: str) -> RentalModel:
        row = self.session.execute(
            select(RentalModel).where(RentalModel.property_id == property_id)
        ).scalar_one_or_none()
        if row is None:
            raise RentalNotFoundError(property_id)
        return row

    def get(self, property_id: str) -> RentalRecord:
        return self._row(property_id).to_dto()

    def find(self, property_id: str) -> RentalRecord | None:
        row = self.session.execute(
            select(RentalModel).where(RentalModel.property_id == property_id)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def deposit(self, property_id: str) -> int:
        return self._row(property_id).deposit_amount

    def list_all(self) -> list[RentalRecord]:
        rows = self.session.execute(
            select(RentalModel).order_by(RentalModel.property_id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def list_by_status(self, status: RentalStatus) -> list[RentalRecord]:
        rows = self.session.execute(
            select(RentalModel)
            .where(RentalModel.status == status.name)
            .order_by(RentalModel.property_id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def list_for_tenant(self, tenant: str) -> list[RentalRecord]:
        rows = self.session.execute(
            select(RentalModel)
            .where(RentalModel.tenant == tenant)
            .order_by(RentalModel.property_id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def escrow_balance(self, property_id: str) -> int:
        """Captured minus released funds for one property."""
        self._row(property_id)
        entries = self.session.execute(
            select(EscrowEntry).where(EscrowEntry.property_id == property_id)
        ).scalars().all()
        balance = 0
        for entry in entries:
            if entry.direction == EscrowDirection.CAPTURE.value:
                balance += entry.amount
            else:
                balance -= entry.amount
        return balance

    def due_status(self, property_id: str, now: int) -> DueStatus:
        record = self.get(property_id)
        started = record.start_time != 0
        return DueStatus(
            property_id=property_id,
            status=record.status,
            now=now,
            start_time=record.start_time,
            rent_due_date=record.rent_due_date,
            elapsed=now - record.start_time if started else 0,
            seconds_until_due=record.rent_due_date - now if started else 0,
            overdue=is_overdue(record, now),
            required_payment=(
                required_payment(record, now) if record.status.accepts_rent else None
            ),
        )
