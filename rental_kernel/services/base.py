"""
BaseService -- common constructor for flush-only kernel services.

Services that write rows (escrow, audit, sequences) receive the caller's
``Session`` and persist with ``session.flush()``; they never commit or roll
back.  ``RentalLedgerService`` is the single place that owns transaction
boundaries.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session
