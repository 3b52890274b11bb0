"""
Module: rental_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.

Each row holds the last value handed out for one sequence; the row is
locked (SELECT ... FOR UPDATE) while it is incremented.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
