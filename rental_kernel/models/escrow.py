"""
Module: rental_kernel.models.escrow
Responsibility: Append-only ORM rows for escrow captures and releases.

Invariants enforced:
    - Rows are never updated or deleted (ORM guard in db/immutability.py).
    - ``seq`` is strictly increasing, allocated by SequenceService.
    - A property's escrow balance is derived from its rows
      (sum of captures minus sum of releases); no stored balance exists.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import IDENTITY_LENGTH, AmountString, Base
from rental_kernel.domain.escrow import EscrowDirection, EscrowMovement, EscrowPurpose


class EscrowEntry(Base):
    """One settled escrow movement."""

    __tablename__ = "escrow_entries"

    __table_args__ = (
        Index("idx_escrow_property", "property_id"),
        Index("idx_escrow_counterparty", "counterparty", "direction"),
    )

    seq: Mapped[int] = mapped_column(nullable=False, unique=True)
    property_id: Mapped[str] = mapped_column(String(200), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    counterparty: Mapped[str] = mapped_column(String(IDENTITY_LENGTH), nullable=False)
    amount: Mapped[int] = mapped_column(AmountString(), nullable=False)
    purpose: Mapped[str] = mapped_column(String(30), nullable=False)
    # Ledger time (UNIX seconds) of the transition that moved the funds
    occurred_at: Mapped[int] = mapped_column(nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<EscrowEntry #{self.seq} {self.direction} {self.amount} {self.property_id}>"

    def to_movement(self) -> EscrowMovement:
        return EscrowMovement(
            property_id=self.property_id,
            direction=EscrowDirection(self.direction),
            counterparty=self.counterparty,
            amount=self.amount,
            purpose=EscrowPurpose(self.purpose),
        )
