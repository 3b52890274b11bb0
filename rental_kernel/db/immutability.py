"""
ORM-level immutability enforcement for the rental ledger.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners here intercept those events and raise
``ImmutabilityViolationError`` so the flush aborts and nothing is written:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------

Entity          | Rule
----------------|--------------------------------------------------------
AuditEvent      | Never updated, never deleted
EscrowEntry     | Never updated, never deleted
RentalModel     | Never deleted; terms fields frozen after INSERT
                | (status, timestamps and audit metadata may change)

Only statements issued through the ORM unit of work are covered.  Bulk
``update()``/``delete()`` statements and raw SQL bypass these listeners.

Usage
-----

    from rental_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup (create_tables does it)

Tests that must perform a forbidden write call
``unregister_immutability_listeners()`` first and re-register afterwards.
"""

from sqlalchemy import event, inspect

from rental_kernel.exceptions import ImmutabilityViolationError
from rental_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    extra = {
        "entity_type": entity_type,
        "entity_id": str(target.id),
        "operation": operation,
    }
    if field is not None:
        extra["field"] = field
    logger.error("immutability_violation_blocked", extra=extra)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# Append-only tables
# =============================================================================


def _check_audit_event_immutability(mapper, connection, target):
    """Audit events are always immutable."""
    _block("AuditEvent", target, "UPDATE",
           "Audit events are immutable and cannot be modified")


def _check_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target, "DELETE", "Audit events cannot be deleted")


def _check_escrow_entry_immutability(mapper, connection, target):
    """Settled escrow movements are facts; corrections are new entries."""
    _block("EscrowEntry", target, "UPDATE",
           "Escrow entries are immutable and cannot be modified")


def _check_escrow_entry_delete(mapper, connection, target):
    _block("EscrowEntry", target, "DELETE", "Escrow entries cannot be deleted")


# =============================================================================
# Rentals
# =============================================================================


def _check_rental_terms_immutability(mapper, connection, target):
    """
    Block changes to the terms columns of an existing rental.

    Lifecycle columns (status, start_time, rent_due_date, end_time) and
    the TrackedBase metadata stay writable.
    """
    from rental_kernel.models.rental import RENTAL_TERM_FIELDS

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key not in RENTAL_TERM_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "Rental",
                target,
                "UPDATE",
                f"Cannot modify term '{attr.key}' of rental {target.property_id}",
                field=attr.key,
            )


def _check_rental_delete(mapper, connection, target):
    _block("Rental", target, "DELETE",
           f"Rental {target.property_id} cannot be deleted")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from rental_kernel.models.audit_event import AuditEvent
    from rental_kernel.models.escrow import EscrowEntry
    from rental_kernel.models.rental import RentalModel

    return (
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (EscrowEntry, "before_update", _check_escrow_entry_immutability),
        (EscrowEntry, "before_delete", _check_escrow_entry_delete),
        (RentalModel, "before_update", _check_rental_terms_immutability),
        (RentalModel, "before_delete", _check_rental_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; an already-registered listener is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it is not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
