"""
Module: rental_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the portable column types for identities
    and minor-unit amounts, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/, selectors/, or domain/.

Invariants enforced:
    - UUID primary keys on every table.
    - Amounts are exact: AmountString stores integer minor units as decimal
      digit strings, so values beyond 64 bits (18-decimal units) never pass
      through a float or a fixed-width integer column.
    - Audit timestamps: TrackedBase provides created_at, updated_at and
      created_by for every tracked entity.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Identities are opaque strings (addresses, account keys, user names).
IDENTITY_LENGTH = 128


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - UUID -> str on INSERT/UPDATE, str -> UUID on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class AmountString(TypeDecorator):
    """
    Non-negative integer minor-unit amount stored as a decimal digit string.

    Guarantees:
        - int -> str on INSERT/UPDATE, str -> int on SELECT.
        - Rejects negative values and non-integers at bind time.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Amount must be an int of minor units, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"Amount cannot be negative: {value}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is not None:
            return int(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all rental kernel models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (UNIX-second timestamps, sequences).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and creator tracking.

    Guarantees:
        - created_at is set on INSERT and never changes.
        - updated_at is refreshed on every UPDATE.
        - created_by is required -- every row names the identity that
          caused it.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(
        String(IDENTITY_LENGTH),
        nullable=False,
    )
