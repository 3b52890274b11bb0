"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for audit events and
    escrow entries.  A dedicated counter table is read with
    ``SELECT ... FOR UPDATE`` so concurrent allocations serialize on the
    counter row.

Invariants enforced:
    - Sequences are strictly monotonic.  The aggregate-max-plus-one pattern
      is never used; the locked counter row is the only source of truth.
    - The increment is transactional: it becomes visible when the caller's
      transaction commits, and a rollback returns the value.

Failure modes:
    - IntegrityError if two transactions create the same missing counter
      concurrently.  ``initialize_sequences()`` (run by ledger
      initialization) creates every well-known counter up front.
"""

from sqlalchemy import select

from rental_kernel.logging_config import get_logger
from rental_kernel.models.sequence import SequenceCounter
from rental_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    AUDIT_EVENT = "audit_event"
    ESCROW_ENTRY = "escrow_entry"

    WELL_KNOWN = (AUDIT_EVENT, ESCROW_ENTRY)

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row, increment it, and return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for ``sequence_name``.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if the sequence is unknown."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def initialize_sequences(self) -> None:
        """Create every well-known counter that does not exist yet."""
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == name)
            ).scalar_one_or_none()
            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
        self._session.flush()
