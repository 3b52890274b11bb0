"""ORM models for the rental kernel."""

from rental_kernel.models.audit_event import AuditAction, AuditEvent
from rental_kernel.models.escrow import EscrowEntry
from rental_kernel.models.rental import (
    DEFAULT_LEDGER_KEY,
    RENTAL_TERM_FIELDS,
    LedgerStateModel,
    RentalModel,
)
from rental_kernel.models.sequence import SequenceCounter

__all__ = [
    "AuditAction",
    "AuditEvent",
    "DEFAULT_LEDGER_KEY",
    "EscrowEntry",
    "LedgerStateModel",
    "RENTAL_TERM_FIELDS",
    "RentalModel",
    "SequenceCounter",
]
