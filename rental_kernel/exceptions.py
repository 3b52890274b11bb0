"""
Typed Exception Hierarchy for the Rental Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejected transition touches money, time, or authority. Callers (the CLI,
an HTTP layer, a settlement relay) must be able to tell an underpayment from a
wrong caller without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        ledger.pay_rent(caller, "p1", attached=amount)
    except IncorrectPaymentError as e:
        log.warning("rent rejected", extra={"expected": e.expected})
        api_response(code=e.code, expected=e.expected, received=e.received)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RentalKernelError:

    RentalKernelError (base)
    |
    +-- AccessError
    |   +-- UnauthorizedError
    |   +-- PausedError
    |
    +-- RentalError
    |   +-- RentalNotFoundError
    |   +-- DuplicatePropertyError
    |   +-- InvalidStateError
    |   +-- InvalidTermsError
    |
    +-- PaymentError
    |   +-- IncorrectPaymentError
    |
    +-- EscrowError
    |   +-- InsufficientEscrowError
    |
    +-- LedgerError
    |   +-- LedgerNotInitializedError
    |   +-- LedgerAlreadyInitializedError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                        | When Raised
------------|-----------------------------|------------------------------------------
Access      | UNAUTHORIZED                | Caller lacks the owner/tenant role
            | PAUSED                      | create_rental while the ledger is paused
------------|-----------------------------|------------------------------------------
Rental      | NOT_FOUND                   | Unknown property id
            | DUPLICATE_PROPERTY          | Property id already created
            | INVALID_STATE               | Operation not valid for current status
            | INVALID_TERMS               | Creation terms outside the data model
------------|-----------------------------|------------------------------------------
Payment     | INCORRECT_PAYMENT           | Attached funds != exact required amount
------------|-----------------------------|------------------------------------------
Escrow      | INSUFFICIENT_ESCROW         | Release exceeds the property's balance
------------|-----------------------------|------------------------------------------
Ledger      | LEDGER_NOT_INITIALIZED      | No owner row persisted yet
            | LEDGER_ALREADY_INITIALIZED  | initialize() called twice
------------|-----------------------------|------------------------------------------
Audit       | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
------------|-----------------------------|------------------------------------------
Immutable   | IMMUTABILITY_VIOLATION      | Changing rental terms, audit or escrow rows

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS:

    except IncorrectPaymentError as e:
        prompt_user(f"Send exactly {e.expected}")
    except AccessError as e:
        log.error(f"Rejected: {e.code}")

2. NOTHING IS PARTIALLY APPLIED. Any RentalKernelError raised by a ledger
   operation means no record, escrow, or audit row was written. Callers may
   resubmit (e.g. with the corrected amount); the kernel never retries.

===============================================================================
"""


class RentalKernelError(Exception):
    """
    Base exception for all rental kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RENTAL_KERNEL_ERROR"


# Access control exceptions


class AccessError(RentalKernelError):
    """Base exception for role and pause gating errors."""

    code: str = "ACCESS_ERROR"


class UnauthorizedError(AccessError):
    """Caller does not hold the role the operation requires."""

    code: str = "UNAUTHORIZED"

    def __init__(self, caller: str, required_role: str, operation: str):
        self.caller = caller
        self.required_role = required_role
        self.operation = operation
        if required_role == "owner":
            message = "Only the owner can call this function"
        else:
            message = f"Only the {required_role} can call this function"
        super().__init__(f"{message} ({operation}, caller={caller})")


class PausedError(AccessError):
    """Operation is blocked while the ledger is paused."""

    code: str = "PAUSED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Contract is paused ({operation})")


# Rental record exceptions


class RentalError(RentalKernelError):
    """Base exception for rental record errors."""

    code: str = "RENTAL_ERROR"


class RentalNotFoundError(RentalError):
    """No rental exists for the property id."""

    code: str = "NOT_FOUND"

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Rental not found: {property_id}")


class DuplicatePropertyError(RentalError):
    """A rental already exists for the property id."""

    code: str = "DUPLICATE_PROPERTY"

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Rental already exists: {property_id}")


class InvalidStateError(RentalError):
    """The operation is not valid for the rental's current status."""

    code: str = "INVALID_STATE"

    def __init__(self, property_id: str, status: str, operation: str):
        self.property_id = property_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} rental {property_id} in status {status}"
        )


class InvalidTermsError(RentalError):
    """Creation terms fall outside the rental data model."""

    code: str = "INVALID_TERMS"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid rental terms: {field} {reason}")


# Payment exceptions


class PaymentError(RentalKernelError):
    """Base exception for attached-payment errors."""

    code: str = "PAYMENT_ERROR"


class IncorrectPaymentError(PaymentError):
    """
    Attached funds do not equal the exact amount the transition requires.

    Amounts are integer minor units. No partial or excess payment is ever
    accepted.
    """

    code: str = "INCORRECT_PAYMENT"

    def __init__(self, property_id: str, expected: int, received: int):
        self.property_id = property_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Incorrect payment for {property_id}: "
            f"expected {expected}, received {received}"
        )


# Escrow exceptions


class EscrowError(RentalKernelError):
    """Base exception for escrow errors."""

    code: str = "ESCROW_ERROR"


class InsufficientEscrowError(EscrowError):
    """A release would take more than the property's escrow holds."""

    code: str = "INSUFFICIENT_ESCROW"

    def __init__(self, property_id: str, requested: int, available: int):
        self.property_id = property_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient escrow for {property_id}: "
            f"requested {requested}, available {available}"
        )


# Ledger lifecycle exceptions


class LedgerError(RentalKernelError):
    """Base exception for ledger lifecycle errors."""

    code: str = "LEDGER_ERROR"


class LedgerNotInitializedError(LedgerError):
    """The ledger has no persisted owner yet."""

    code: str = "LEDGER_NOT_INITIALIZED"

    def __init__(self):
        super().__init__("Ledger not initialized. Call initialize(owner) first.")


class LedgerAlreadyInitializedError(LedgerError):
    """The ledger owner has already been fixed."""

    code: str = "LEDGER_ALREADY_INITIALIZED"

    def __init__(self, owner: str):
        self.owner = owner
        super().__init__(f"Ledger already initialized with owner {owner}")


# Audit exceptions


class AuditError(RentalKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at event {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


# Immutability exceptions


class ImmutabilityError(RentalKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
