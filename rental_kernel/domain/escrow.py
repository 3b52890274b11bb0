"""
Escrow movements (``rental_kernel.domain.escrow``).

Responsibility:
    Describes fund movements a transition requires -- captures of attached
    payments into a property's escrow and releases out of it -- without
    performing them.  The service layer hands movements to an
    ``EscrowAccount`` inside the same transaction that persists the record.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Movement amounts are non-negative integer minor units.
    - A release never names the property as its own counterparty; the
      counterparty is always the external identity funds go to.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class EscrowDirection(str, Enum):
    """Direction of a movement relative to the property's escrow."""

    CAPTURE = "capture"
    RELEASE = "release"


class EscrowPurpose(str, Enum):
    """Why funds moved.  Used for reporting, never for validation."""

    ACTIVATION = "activation"
    RENT = "rent"
    LATE_RENT = "late_rent"
    DEPOSIT_REFUND = "deposit_refund"


@dataclass(frozen=True)
class EscrowMovement:
    """One capture or release against a property's escrow."""

    property_id: str
    direction: EscrowDirection
    counterparty: str
    amount: int
    purpose: EscrowPurpose

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Escrow movement amount cannot be negative: {self.amount}")

    @classmethod
    def capture(
        cls, property_id: str, payer: str, amount: int, purpose: EscrowPurpose
    ) -> EscrowMovement:
        return cls(property_id, EscrowDirection.CAPTURE, payer, amount, purpose)

    @classmethod
    def release(
        cls, property_id: str, payee: str, amount: int, purpose: EscrowPurpose
    ) -> EscrowMovement:
        return cls(property_id, EscrowDirection.RELEASE, payee, amount, purpose)


class EscrowAccount(Protocol):
    """Holds and releases funds on behalf of rental records."""

    def settle(self, movement: EscrowMovement, occurred_at: int) -> None:
        """Apply one movement; must raise rather than partially apply."""
        ...

    def balance_of(self, property_id: str) -> int:
        """Funds currently held for a property."""
        ...
