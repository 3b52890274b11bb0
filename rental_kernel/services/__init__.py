"""Imperative shell: services that persist rental ledger transitions."""

from rental_kernel.services.auditor_service import AuditorService, AuditTrace, AuditTraceEntry
from rental_kernel.services.escrow_service import EscrowService
from rental_kernel.services.property_locks import PropertyLockRegistry
from rental_kernel.services.rental_ledger_service import RentalLedgerService
from rental_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditorService",
    "AuditTrace",
    "AuditTraceEntry",
    "EscrowService",
    "PropertyLockRegistry",
    "RentalLedgerService",
    "SequenceService",
]
