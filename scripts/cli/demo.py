"""
Six-month rental simulation on an in-memory ledger.

Creates one rental (rent 1, deposit 2, late fee 0.1, 30-day interval),
activates it, pays rent for six months with month three paid a day after
the due date, then ends the rental and shows the deposit refund.
"""

from rental_kernel.db.engine import create_tables, get_session, init_engine_from_url
from rental_kernel.domain.amounts import NATIVE_UNIT, format_amount, parse_amount
from rental_kernel.domain.clock import SECONDS_PER_DAY, DeterministicClock
from rental_kernel.domain.events import CollectingEventSink
from rental_kernel.domain.transitions import required_payment
from rental_kernel.selectors.rental_selector import RentalSelector
from rental_kernel.services.auditor_service import AuditorService
from rental_kernel.services.escrow_service import EscrowService
from rental_kernel.services.property_locks import PropertyLockRegistry
from rental_kernel.services.rental_ledger_service import RentalLedgerService
from scripts.cli.util import banner, enable_quiet_logging, field, fmt_time, restore_logging

OWNER = "owner"
TENANT = "tenant"
PROPERTY_ID = "property1"
MONTHS = 6
LATE_MONTH = 3


def run_demo(verbose: bool = False) -> int:
    muted = [] if verbose else enable_quiet_logging()
    try:
        init_engine_from_url("sqlite://")
        create_tables()
        if not verbose:
            # init_engine_from_url() may have installed a fresh console handler
            muted.extend(enable_quiet_logging())
        session = get_session()
        try:
            return _simulate(session)
        finally:
            session.close()
    finally:
        restore_logging(muted)


def _simulate(session) -> int:
    clock = DeterministicClock()
    sink = CollectingEventSink()
    ledger = RentalLedgerService(
        session, clock=clock, event_sink=sink, lock_registry=PropertyLockRegistry()
    )
    escrow = EscrowService(session)
    selector = RentalSelector(session)
    unit = NATIVE_UNIT

    banner("RENTAL LEDGER DEMO")
    ledger.initialize(OWNER)
    record = ledger.create_rental(
        caller=OWNER,
        property_id=PROPERTY_ID,
        tenant=TENANT,
        rent_amount=parse_amount("1"),
        deposit_amount=parse_amount("2"),
        late_fee=parse_amount("0.1"),
        rent_interval=30 * SECONDS_PER_DAY,
    )
    print(f"  Rental created: {record.property_id}")

    record = ledger.activate_rental(TENANT, PROPERTY_ID, record.activation_amount)
    print(f"  Rental activated at {fmt_time(record.start_time)}")

    for month in range(1, MONTHS + 1):
        if month == LATE_MONTH:
            clock.advance(record.rent_due_date - clock.timestamp() + SECONDS_PER_DAY)
        else:
            clock.advance(record.rent_due_date - clock.timestamp() - SECONDS_PER_DAY)
        amount = required_payment(record, clock.timestamp())
        record = ledger.pay_rent(TENANT, PROPERTY_ID, amount)
        label = "Late rent paid with fee" if month == LATE_MONTH else "Rent paid on time"
        print(f"  Month {month}: {label} ({format_amount(amount, unit)})")
        print(f"    Status: {record.status.label} | Due: {fmt_time(record.rent_due_date)}")
        print(f"    Escrow balance: {format_amount(selector.escrow_balance(PROPERTY_ID), unit)}")

    refunded_before = escrow.released_to(TENANT)
    record = ledger.end_rental(OWNER, PROPERTY_ID)
    refunded = escrow.released_to(TENANT) - refunded_before
    print(f"  Rental ended. Deposit refunded: {format_amount(refunded, unit)}")

    banner("FINAL RENTAL STATE")
    field("Status", record.status.label)
    field("End Time", fmt_time(record.end_time))
    field("Escrow balance", format_amount(selector.escrow_balance(PROPERTY_ID), unit))
    field("Events emitted", len(sink.events))
    field("Audit chain", "valid" if AuditorService(session, clock).validate_chain() else "broken")
    return 0
