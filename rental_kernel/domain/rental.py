"""
Rental Domain Models (``rental_kernel.domain.rental``).

Responsibility
--------------
Value objects for the nouns of the rental ledger: the status lattice,
validated creation terms, the per-property rental record, and the
process-wide ledger state the transitions operate on.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Consumed by
``rental_kernel.domain.transitions`` and returned to callers by services and
selectors.

Invariants enforced
-------------------
* ``RentalRecord`` is frozen; a transition produces a new record.
* Terms (tenant, amounts, interval) are validated once at construction of
  ``RentalTerms`` and never change afterwards.
* All monetary fields are integer minor units -- NEVER ``float``.
* ``rent_due_date`` is non-zero iff status is Active, Late or Expired.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from rental_kernel.exceptions import InvalidTermsError, RentalNotFoundError

if TYPE_CHECKING:
    from rental_kernel.domain.transitions import TransitionOutcome


class RentalStatus(IntEnum):
    """
    Rental lifecycle states.

    Values are the wire codes of the persisted record layout
    (0 = Pending, 1 = Active, 2 = Expired, 3 = Late).
    """

    PENDING = 0
    ACTIVE = 1
    EXPIRED = 2
    LATE = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def accepts_rent(self) -> bool:
        return self in (RentalStatus.ACTIVE, RentalStatus.LATE)

    @property
    def is_terminal(self) -> bool:
        return self is RentalStatus.EXPIRED


def _require_amount(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTermsError(name, "must be an integer amount of minor units")
    if value < 0:
        raise InvalidTermsError(name, "cannot be negative")


@dataclass(frozen=True)
class RentalTerms:
    """
    The immutable terms an owner supplies when creating a rental.

    Raises:
        InvalidTermsError: empty property id or tenant, negative amounts,
            or a non-positive rent interval.
    """

    property_id: str
    tenant: str
    rent_amount: int
    deposit_amount: int
    late_fee: int
    rent_interval: int

    def __post_init__(self) -> None:
        if not isinstance(self.property_id, str) or not self.property_id.strip():
            raise InvalidTermsError("property_id", "cannot be empty")
        if not isinstance(self.tenant, str) or not self.tenant.strip():
            raise InvalidTermsError("tenant", "cannot be empty")
        _require_amount("rent_amount", self.rent_amount)
        _require_amount("deposit_amount", self.deposit_amount)
        _require_amount("late_fee", self.late_fee)
        if isinstance(self.rent_interval, bool) or not isinstance(self.rent_interval, int):
            raise InvalidTermsError("rent_interval", "must be whole seconds")
        if self.rent_interval <= 0:
            raise InvalidTermsError("rent_interval", "must be positive")


@dataclass(frozen=True)
class RentalRecord:
    """One rental agreement, keyed by property id."""

    property_id: str
    tenant: str
    rent_amount: int
    deposit_amount: int
    late_fee: int
    rent_interval: int
    status: RentalStatus = RentalStatus.PENDING
    start_time: int = 0
    rent_due_date: int = 0
    end_time: int = 0

    @classmethod
    def from_terms(cls, terms: RentalTerms) -> RentalRecord:
        """A fresh Pending record with all timestamps zero."""
        return cls(
            property_id=terms.property_id,
            tenant=terms.tenant,
            rent_amount=terms.rent_amount,
            deposit_amount=terms.deposit_amount,
            late_fee=terms.late_fee,
            rent_interval=terms.rent_interval,
        )

    @property
    def activation_amount(self) -> int:
        """First period's rent plus the deposit."""
        return self.rent_amount + self.deposit_amount

    @property
    def late_payment_amount(self) -> int:
        return self.rent_amount + self.late_fee

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def evolve(self, **changes: Any) -> RentalRecord:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.label
        return data


@dataclass
class LedgerState:
    """
    Process-wide ledger state: owner, pause flag, and the rentals mapping.

    Contract:
        Passed by reference into every transition.  Transitions only read
        it; ``apply()`` is the single place an outcome is written back.
        A service may hold a *scoped* state containing only the record a
        call touches -- transitions never look at other keys.

    Guarantees:
        - ``owner`` never changes after construction.
        - Keys in ``rentals`` are never removed.
    """

    owner: str
    paused: bool = False
    rentals: dict[str, RentalRecord] = field(default_factory=dict)

    def get(self, property_id: str) -> RentalRecord | None:
        return self.rentals.get(property_id)

    def require(self, property_id: str) -> RentalRecord:
        record = self.rentals.get(property_id)
        if record is None:
            raise RentalNotFoundError(property_id)
        return record

    def apply(self, outcome: TransitionOutcome) -> None:
        """Write a successful transition's effects into this state."""
        if outcome.record is not None:
            self.rentals[outcome.record.property_id] = outcome.record
        if outcome.paused is not None:
            self.paused = outcome.paused
