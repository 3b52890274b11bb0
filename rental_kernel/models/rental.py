"""
Module: rental_kernel.models.rental
Responsibility:
    ORM persistence for rental records and the singleton ledger state row.
    Maps the frozen ``RentalRecord`` DTO to the ``rentals`` table and the
    owner/paused pair to ``ledger_state``.

Architecture position:
    Kernel > Models.  May import from db/base.py and the domain DTOs only.

Invariants enforced:
    - ``property_id`` is unique (uq_rental_property); rows are never deleted
      (ORM guard in db/immutability.py).
    - Terms columns (tenant, amounts, interval) never change after INSERT
      (ORM guard in db/immutability.py).
    - Status is stored by name (PENDING/ACTIVE/EXPIRED/LATE); the wire code
      is derived from ``RentalStatus``.
    - Timestamps are UNIX seconds, 0 meaning "not yet set".
    - There is at most one ``ledger_state`` row (uq_ledger_state_key).

Failure modes:
    - IntegrityError on a duplicate property id that slipped past the
      service-level check (concurrent create on PostgreSQL).
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import IDENTITY_LENGTH, AmountString, TrackedBase
from rental_kernel.domain.rental import RentalRecord, RentalStatus

# Fields fixed at creation; guarded against UPDATE.
RENTAL_TERM_FIELDS = frozenset({
    "property_id",
    "tenant",
    "rent_amount",
    "deposit_amount",
    "late_fee",
    "rent_interval",
})

DEFAULT_LEDGER_KEY = "default"


class RentalModel(TrackedBase):
    """
    One rental agreement row.

    Guarantees:
        - ``to_dto()`` returns an equal ``RentalRecord`` for any row written
          by ``from_dto()``/``apply_dto()``.
    """

    __tablename__ = "rentals"

    __table_args__ = (
        UniqueConstraint("property_id", name="uq_rental_property"),
        Index("idx_rental_tenant", "tenant"),
        Index("idx_rental_status", "status"),
    )

    property_id: Mapped[str] = mapped_column(String(200), nullable=False)
    tenant: Mapped[str] = mapped_column(String(IDENTITY_LENGTH), nullable=False)
    rent_amount: Mapped[int] = mapped_column(AmountString(), nullable=False)
    deposit_amount: Mapped[int] = mapped_column(AmountString(), nullable=False)
    late_fee: Mapped[int] = mapped_column(AmountString(), nullable=False)
    rent_interval: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    start_time: Mapped[int] = mapped_column(nullable=False, default=0)
    rent_due_date: Mapped[int] = mapped_column(nullable=False, default=0)
    end_time: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Rental {self.property_id} {self.status}>"

    @classmethod
    def from_dto(cls, record: RentalRecord, created_by: str) -> "RentalModel":
        return cls(
            property_id=record.property_id,
            tenant=record.tenant,
            rent_amount=record.rent_amount,
            deposit_amount=record.deposit_amount,
            late_fee=record.late_fee,
            rent_interval=record.rent_interval,
            status=record.status.name,
            start_time=record.start_time,
            rent_due_date=record.rent_due_date,
            end_time=record.end_time,
            created_by=created_by,
        )

    def apply_dto(self, record: RentalRecord) -> None:
        """Copy the mutable lifecycle fields of ``record`` onto this row."""
        self.status = record.status.name
        self.start_time = record.start_time
        self.rent_due_date = record.rent_due_date
        self.end_time = record.end_time

    def to_dto(self) -> RentalRecord:
        return RentalRecord(
            property_id=self.property_id,
            tenant=self.tenant,
            rent_amount=self.rent_amount,
            deposit_amount=self.deposit_amount,
            late_fee=self.late_fee,
            rent_interval=self.rent_interval,
            status=RentalStatus[self.status],
            start_time=self.start_time,
            rent_due_date=self.rent_due_date,
            end_time=self.end_time,
        )


class LedgerStateModel(TrackedBase):
    """
    The ledger's owner and pause flag.

    Contract:
        Written once by ``RentalLedgerService.initialize`` (the deployment
        analogue); afterwards only ``paused`` changes.
    """

    __tablename__ = "ledger_state"

    __table_args__ = (
        UniqueConstraint("ledger_key", name="uq_ledger_state_key"),
    )

    ledger_key: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_LEDGER_KEY
    )
    owner: Mapped[str] = mapped_column(String(IDENTITY_LENGTH), nullable=False)
    paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<LedgerState owner={self.owner} paused={self.paused}>"
