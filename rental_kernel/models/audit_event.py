"""
Module: rental_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM guard).
    - Hash chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditorService.
    - seq is monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.

Audit relevance:
    Every successful ledger mutation (initialization, creation, activation,
    rent payment, termination, pause change) writes exactly one AuditEvent
    in the same transaction as the state change it describes.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import IDENTITY_LENGTH, Base


class AuditAction(str, Enum):
    """Types of auditable actions.

    Contract: Every member is produced by exactly one AuditorService
    ``record_*`` method.
    """

    LEDGER_INITIALIZED = "ledger_initialized"
    PAUSE_CHANGED = "pause_changed"

    RENTAL_CREATED = "rental_created"
    RENTAL_ACTIVATED = "rental_activated"
    RENT_PAID = "rent_paid"
    RENT_PAID_LATE = "rent_paid_late"
    RENTAL_ENDED = "rental_ended"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Guarantees:
        - seq is globally unique and monotonically increasing.
        - prev_hash is None only for the genesis event.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # "Rental" or "Ledger"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Property id for rentals, ledger key for ledger-level actions
    entity_id: Mapped[str] = mapped_column(String(200), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(IDENTITY_LENGTH), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # hash = H(entity_type + entity_id + action + payload_hash + prev_hash)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {AuditAction(self.action).value} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        """True iff this is the first event in the hash chain."""
        return self.prev_hash is None
