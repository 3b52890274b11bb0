"""CLI utilities: output formatting, logging mute."""

import logging
from datetime import UTC, datetime

from rental_kernel.domain.amounts import CurrencyUnit, format_amount
from rental_kernel.domain.rental import RentalRecord, RentalStatus
from rental_kernel.domain.clock import SECONDS_PER_DAY

W = 72

STATUS_MAP = ", ".join(f"{s.value} = {s.label}" for s in RentalStatus)


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(label: str, value, indent: int = 2) -> None:
    print(f"{' ' * indent}{label + ':':<16}{value}")


def fmt_time(seconds: int) -> str:
    """UNIX seconds as ISO-8601 UTC; 0 means unset."""
    if not seconds:
        return "-"
    return datetime.fromtimestamp(seconds, tz=UTC).isoformat()


def fmt_days(seconds: int) -> str:
    return f"{seconds} seconds (~{seconds / SECONDS_PER_DAY:.2f} days)"


def print_record(record: RentalRecord, unit: CurrencyUnit) -> None:
    field("Property ID", record.property_id)
    field("Tenant", record.tenant)
    field("Rent Amount", format_amount(record.rent_amount, unit))
    field("Deposit", format_amount(record.deposit_amount, unit))
    field("Late Fee", format_amount(record.late_fee, unit))
    field("Due Date", fmt_time(record.rent_due_date))
    field("Interval (s)", record.rent_interval)
    field("Status Code", f"{record.status.value} ({record.status.label})")
    field("Start Time", fmt_time(record.start_time))
    field("End Time", fmt_time(record.end_time))
    print(f"  Status Map: {STATUS_MAP}")


def enable_quiet_logging() -> list:
    """Mute console handlers so CLI output stays clean. Returns list to pass to restore_logging."""
    kernel_logger = logging.getLogger("rental_kernel")
    muted = []
    for h in kernel_logger.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            muted.append((h, h.level))
            h.setLevel(logging.CRITICAL + 1)
    return muted


def restore_logging(muted: list) -> None:
    """Restore muted handlers after a quiet-logging section."""
    for h, orig_level in muted:
        h.setLevel(orig_level)
