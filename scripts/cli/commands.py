"""Command handlers: one function per subcommand, each returning an exit code."""

import json

from rental_kernel.domain.amounts import format_amount
from rental_kernel.domain.clock import SECONDS_PER_DAY, DeterministicClock
from rental_kernel.domain.transitions import required_payment
from rental_kernel.selectors.rental_selector import RentalSelector
from rental_kernel.services.rental_ledger_service import RentalLedgerService
from scripts.cli.util import banner, field, fmt_days, fmt_time, print_record


def _ledger(ctx) -> RentalLedgerService:
    return RentalLedgerService(ctx.session, clock=ctx.clock)


def cmd_init(args, ctx) -> int:
    owner = args.owner or ctx.config.owner
    if not owner:
        print("  ERROR: No owner given (use --owner or set ledger.owner)")
        return 1
    _ledger(ctx).initialize(owner)
    print(f"  Ledger initialized. Owner: {owner}")
    return 0


def cmd_create(args, ctx) -> int:
    interval = args.interval if args.interval is not None else args.interval_days * SECONDS_PER_DAY
    record = _ledger(ctx).create_rental(
        caller=args.caller,
        property_id=args.property_id,
        tenant=args.tenant,
        rent_amount=ctx.unit.to_minor(args.rent),
        deposit_amount=ctx.unit.to_minor(args.deposit),
        late_fee=ctx.unit.to_minor(args.late_fee),
        rent_interval=interval,
    )
    print(f"  Rental created: {record.property_id} (tenant {record.tenant})")
    return 0


def cmd_activate(args, ctx) -> int:
    ledger = _ledger(ctx)
    if args.amount is None:
        attached = ledger.get_rental(args.property_id).activation_amount
    else:
        attached = ctx.unit.to_minor(args.amount)
    record = ledger.activate_rental(args.caller, args.property_id, attached)
    print(f"  Rental activated: {record.property_id}")
    field("Paid", format_amount(attached, ctx.unit))
    field("Due Date", fmt_time(record.rent_due_date))
    return 0


def cmd_pay(args, ctx) -> int:
    # One clock reading for both the default amount and the payment itself
    now = ctx.clock.timestamp()
    ledger = RentalLedgerService(ctx.session, clock=DeterministicClock.at_timestamp(now))
    if args.amount is None:
        attached = required_payment(ledger.get_rental(args.property_id), now)
    else:
        attached = ctx.unit.to_minor(args.amount)
    record = ledger.pay_rent(args.caller, args.property_id, attached)
    print(f"  Rent paid: {record.property_id}")
    field("Paid", format_amount(attached, ctx.unit))
    field("Status", record.status.label)
    field("Due Date", fmt_time(record.rent_due_date))
    return 0


def cmd_end(args, ctx) -> int:
    record = _ledger(ctx).end_rental(args.caller, args.property_id)
    print(f"  Rental ended: {record.property_id}")
    field("Deposit refunded", format_amount(record.deposit_amount, ctx.unit))
    field("End Time", fmt_time(record.end_time))
    return 0


def cmd_pause(args, ctx) -> int:
    paused = _ledger(ctx).set_paused(args.caller, args.paused)
    print(f"  Ledger {'paused' if paused else 'unpaused'}")
    return 0


def cmd_show(args, ctx) -> int:
    record = RentalSelector(ctx.session).get(args.property_id)
    if args.json:
        print(json.dumps(record.to_dict(), indent=2))
        return 0
    banner("RENTAL INFO")
    print_record(record, ctx.unit)
    return 0


def cmd_status(args, ctx) -> int:
    now = ctx.clock.timestamp()
    status = RentalSelector(ctx.session).due_status(args.property_id, now)
    banner("TIME SINCE RENTAL START")
    field("Status", status.status.label)
    field("Start Time", status.start_time)
    field("Current Time", now)
    field("Elapsed", fmt_days(status.elapsed))
    field("Due Date", fmt_time(status.rent_due_date))
    if status.required_payment is not None:
        field("Overdue", "yes" if status.overdue else "no")
        field("Payment due", format_amount(status.required_payment, ctx.unit))
    return 0


def cmd_deposit(args, ctx) -> int:
    deposit = _ledger(ctx).get_deposit(args.property_id)
    print(f"  Deposit: {format_amount(deposit, ctx.unit)}")
    return 0


COMMANDS = {
    "init": cmd_init,
    "create": cmd_create,
    "activate": cmd_activate,
    "pay": cmd_pay,
    "end": cmd_end,
    "pause": cmd_pause,
    "show": cmd_show,
    "status": cmd_status,
    "deposit": cmd_deposit,
}
