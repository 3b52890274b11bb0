"""
AuditorService -- tamper-evident audit trail for ledger mutations.

Responsibility:
    Creates immutable, hash-chained audit events for every successful
    ledger transition and provides chain validation and per-entity traces.

Architecture position:
    Kernel > Services -- imperative shell, called by RentalLedgerService
    inside the transaction that persists the transition.

Invariants enforced:
    - Sequence numbers come from SequenceService (locked counter row).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash);
      every event links to its predecessor.
    - Audit events are append-only (ORM guard on the AuditEvent model).

Failure modes:
    - AuditChainBrokenError from ``validate_chain()`` when a stored hash,
      payload hash or predecessor link does not match its recomputation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.rental import RentalRecord
from rental_kernel.exceptions import AuditChainBrokenError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.audit_event import AuditAction, AuditEvent
from rental_kernel.services.base import BaseService
from rental_kernel.services.sequence_service import SequenceService
from rental_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")

RENTAL_ENTITY = "Rental"
LEDGER_ENTITY = "Ledger"


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: str
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity, in chain order."""

    entity_type: str
    entity_id: str
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)

    @property
    def first_action(self) -> AuditAction | None:
        return self.entries[0].action if self.entries else None

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


def _rental_payload(record: RentalRecord) -> dict[str, Any]:
    # Amounts as decimal strings, timestamps as integers
    return {
        "property_id": record.property_id,
        "tenant": record.tenant,
        "status": record.status.label,
        "rent_amount": str(record.rent_amount),
        "deposit_amount": str(record.deposit_amount),
        "late_fee": str(record.late_fee),
        "rent_interval": record.rent_interval,
        "start_time": record.start_time,
        "rent_due_date": record.rent_due_date,
        "end_time": record.end_time,
    }


class AuditorService(BaseService):
    """
    Service for creating and validating tamper-evident audit events.

    Contract:
        One ``record_*`` method per ``AuditAction``.  Each flushes a single
        ``AuditEvent`` into the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction,
        actor_id: str,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Create a new audit event linked to the current chain head.

        Postconditions:
            - ``event.hash == H(entity_type, entity_id, action,
              payload_hash, prev_hash)``.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = payload or {}
        computed_payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    # Ledger-level actions

    def record_ledger_initialized(self, ledger_key: str, owner: str) -> AuditEvent:
        return self._create_audit_event(
            entity_type=LEDGER_ENTITY,
            entity_id=ledger_key,
            action=AuditAction.LEDGER_INITIALIZED,
            actor_id=owner,
            payload={"owner": owner},
        )

    def record_pause_changed(self, ledger_key: str, paused: bool, actor_id: str) -> AuditEvent:
        return self._create_audit_event(
            entity_type=LEDGER_ENTITY,
            entity_id=ledger_key,
            action=AuditAction.PAUSE_CHANGED,
            actor_id=actor_id,
            payload={"paused": paused},
        )

    # Rental lifecycle actions

    def record_rental_created(self, record: RentalRecord, actor_id: str) -> AuditEvent:
        return self._create_audit_event(
            entity_type=RENTAL_ENTITY,
            entity_id=record.property_id,
            action=AuditAction.RENTAL_CREATED,
            actor_id=actor_id,
            payload=_rental_payload(record),
        )

    def record_rental_activated(
        self, record: RentalRecord, amount: int, actor_id: str
    ) -> AuditEvent:
        payload = _rental_payload(record)
        payload["amount"] = str(amount)
        return self._create_audit_event(
            entity_type=RENTAL_ENTITY,
            entity_id=record.property_id,
            action=AuditAction.RENTAL_ACTIVATED,
            actor_id=actor_id,
            payload=payload,
        )

    def record_rent_paid(
        self,
        record: RentalRecord,
        amount: int,
        late: bool,
        paid_at: int,
        actor_id: str,
    ) -> AuditEvent:
        """Record a rent payment; late payments get their own action."""
        payload = _rental_payload(record)
        payload["amount"] = str(amount)
        payload["paid_at"] = paid_at
        return self._create_audit_event(
            entity_type=RENTAL_ENTITY,
            entity_id=record.property_id,
            action=AuditAction.RENT_PAID_LATE if late else AuditAction.RENT_PAID,
            actor_id=actor_id,
            payload=payload,
        )

    def record_rental_ended(
        self, record: RentalRecord, deposit_refunded: int, actor_id: str
    ) -> AuditEvent:
        payload = _rental_payload(record)
        payload["deposit_refunded"] = str(deposit_refunded)
        return self._create_audit_event(
            entity_type=RENTAL_ENTITY,
            entity_id=record.property_id,
            action=AuditAction.RENTAL_ENDED,
            actor_id=actor_id,
            payload=payload,
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Raises:
            AuditChainBrokenError: If any stored hash, payload hash or
                predecessor link fails to match its recomputed value.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(str(events[0].id), "None", events[0].prev_hash)

        for i, event in enumerate(events):
            payload_hash = hash_payload(event.payload or {})
            if payload_hash != event.payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), payload_hash, event.payload_hash)

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                action=AuditAction(event.action).value,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            if i > 0 and event.prev_hash != events[i - 1].hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id), events[i - 1].hash, event.prev_hash or "None"
                )

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    # Traces

    def get_trace(self, entity_id: str, entity_type: str = RENTAL_ENTITY) -> AuditTrace:
        """Every audit event for one entity (a property id by default), in order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=event.occurred_at,
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )
        return AuditTrace(entity_type=entity_type, entity_id=entity_id, entries=entries)

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        return list(
            self._session.execute(
                select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(limit)
            ).scalars().all()
        )
