"""
Amounts -- fixed-point currency units and minor-unit conversion.

Responsibility:
    Converts between human-facing decimal amounts ("1.1") and the integer
    minor units the ledger stores and compares.  Exact-match payment
    validation is only sound on integers, so every amount inside the
    kernel is an ``int`` count of minor units.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are never floats; ``float`` input is rejected outright.
    - ``to_minor`` never rounds: input with more precision than the unit
      carries raises ``ValueError``.
    - Amounts are non-negative.

Failure modes:
    - ValueError on negative, non-numeric, float, or over-precise input.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext

# Integer count of minor units (e.g. wei for an 18-decimal native unit).
Amount = int

# Enough digits for any uint256 amount at any supported scale.
_WORKING_PRECISION = 120


@dataclass(frozen=True, slots=True)
class CurrencyUnit:
    """
    A currency and its fixed-point precision.

    Contract:
        ``decimal_places`` fixes the scale between major and minor units.
        The native unit uses 18 places so that ``to_minor("1")`` equals
        ``10**18``.

    Guarantees:
        - Immutable and hashable.
        - Round trip ``to_minor(to_major(x)) == x`` for every valid amount.
    """

    code: str
    decimal_places: int

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise ValueError("Currency code cannot be empty")
        if self.decimal_places < 0 or self.decimal_places > 36:
            raise ValueError(
                f"decimal_places must be between 0 and 36, got {self.decimal_places}"
            )

    @property
    def scale(self) -> int:
        """Minor units per major unit."""
        return 10 ** self.decimal_places

    def to_minor(self, value: Decimal | str | int) -> Amount:
        """
        Convert a major-unit amount to integer minor units.

        Raises:
            ValueError: If value is a float, negative, not a number, or has
                more fractional digits than ``decimal_places``.
        """
        if isinstance(value, bool) or isinstance(value, float):
            raise ValueError(
                f"Amounts must be Decimal, str or int, not {type(value).__name__}"
            )
        try:
            major = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a valid amount: {value!r}") from exc
        if not major.is_finite():
            raise ValueError(f"Not a valid amount: {value!r}")
        if major < 0:
            raise ValueError(f"Amount cannot be negative: {value}")

        with localcontext() as ctx:
            ctx.prec = _WORKING_PRECISION
            minor = major.scaleb(self.decimal_places)
        if minor != minor.to_integral_value():
            raise ValueError(
                f"{value} has more precision than {self.code} "
                f"({self.decimal_places} decimal places)"
            )
        return int(minor)

    def to_major(self, amount: Amount) -> Decimal:
        """Convert integer minor units back to a major-unit Decimal."""
        if amount < 0:
            raise ValueError(f"Amount cannot be negative: {amount}")
        with localcontext() as ctx:
            ctx.prec = _WORKING_PRECISION
            return Decimal(amount).scaleb(-self.decimal_places)

    def format(self, amount: Amount) -> str:
        """Render minor units as e.g. ``"1.1 ETH"`` (trailing zeros trimmed)."""
        with localcontext() as ctx:
            ctx.prec = _WORKING_PRECISION
            major = self.to_major(amount).normalize()
        text = format(major, "f") if amount else "0"
        if "." not in text and self.decimal_places:
            text = f"{text}.0"
        return f"{text} {self.code}"


NATIVE_UNIT = CurrencyUnit("ETH", 18)


def parse_amount(value: Decimal | str | int, unit: CurrencyUnit = NATIVE_UNIT) -> Amount:
    """Parse a major-unit amount into minor units of ``unit``."""
    return unit.to_minor(value)


def format_amount(amount: Amount, unit: CurrencyUnit = NATIVE_UNIT) -> str:
    """Format minor units of ``unit`` for display."""
    return unit.format(amount)
