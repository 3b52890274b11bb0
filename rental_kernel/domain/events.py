"""
Rental domain events and the event sink contract.

Events are frozen value objects produced by transitions and handed to an
``EventSink`` by the service layer only after the transition has been
persisted.  ``RentalCreated`` carries exactly
``(property_id, tenant, rent_amount, deposit_amount)``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class RentalEvent:
    """Base class for rental domain events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RentalCreated(RentalEvent):
    property_id: str
    tenant: str
    rent_amount: int
    deposit_amount: int


@dataclass(frozen=True)
class RentalActivated(RentalEvent):
    property_id: str
    tenant: str
    start_time: int
    rent_due_date: int
    amount: int


@dataclass(frozen=True)
class RentPaid(RentalEvent):
    property_id: str
    tenant: str
    amount: int
    late: bool
    paid_at: int
    next_due_date: int


@dataclass(frozen=True)
class RentalEnded(RentalEvent):
    property_id: str
    tenant: str
    end_time: int
    deposit_refunded: int


@dataclass(frozen=True)
class PauseChanged(RentalEvent):
    paused: bool
    changed_by: str


@runtime_checkable
class EventSink(Protocol):
    """Receives events for successfully applied transitions."""

    def emit(self, event: RentalEvent) -> None: ...


class CollectingEventSink:
    """In-memory sink that keeps every emitted event, in order."""

    def __init__(self) -> None:
        self.events: list[RentalEvent] = []

    def emit(self, event: RentalEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[RentalEvent]) -> list[RentalEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()
