"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch jobs, the closing screen) must react to kernel
failures precisely without parsing message strings.  Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        service.commit_transaction(header, lines)
    except InsufficientInventoryError as e:
        return 400, {"error": e.code, "details": e.details}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ErpKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidLineError
    |   +-- LineSignError
    |   +-- UnsupportedTransactionTypeError
    |   +-- InvalidMonthError
    |   +-- ProductionOutputError
    |   +-- BomConsumptionMismatchError
    |   +-- UnfixedBomError
    |   +-- ProcessSequenceError
    |   +-- ClosingPreconditionError
    |   +-- SnapshotOrderError
    |
    +-- InsufficientInventoryError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- BomFixedError
    |   +-- PriceMonthFixedError
    |   +-- SnapshotClosedError
    |   +-- ClosedMonthError
    |   +-- MonthInCountError
    |
    +-- IntegrityFailureError
    |
    +-- PersistenceError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- PartnerNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- BomNotFoundError
    |   +-- SnapshotNotFoundError
    |   +-- SnapshotLineNotFoundError
    |
    +-- ConcurrencyError
        +-- DuplicateBomError
        +-- SnapshotAlreadyExistsError
        +-- SnapshotAlreadyClosedError

===============================================================================
HANDLING PATTERNS
===============================================================================

- ValidationError, InsufficientInventoryError, ImmutabilityError: fatal to the
  single request, surfaced to the operator for correction, never retried.
- IntegrityFailureError: the store is inconsistent.  Alert an operator; never
  swallow.
- ConcurrencyError: another request won a race (double close, duplicate
  snapshot).  Re-read state before deciding anything.
"""


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"


# Validation exceptions


class ValidationError(ErpKernelError):
    """Malformed input; fatal to the single request."""

    code: str = "VALIDATION_ERROR"


class InvalidLineError(ValidationError):
    """A proposed line is malformed (zero, non-finite, unknown item)."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int, reason: str):
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Invalid line #{line_index}: {reason}")


class LineSignError(ValidationError):
    """Line quantity sign contradicts the transaction type."""

    code: str = "LINE_SIGN_MISMATCH"

    def __init__(self, transaction_type: str, line_index: int, quantity: str, expected: str):
        self.transaction_type = transaction_type
        self.line_index = line_index
        self.quantity = quantity
        self.expected = expected
        super().__init__(
            f"Line #{line_index} of {transaction_type} has quantity {quantity}; "
            f"expected {expected}"
        )


class UnsupportedTransactionTypeError(ValidationError):
    """Transaction type exists in the data model but has no stock semantics."""

    code: str = "UNSUPPORTED_TRANSACTION_TYPE"

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type
        super().__init__(f"Transaction type {transaction_type} cannot be committed")


class InvalidMonthError(ValidationError):
    """Month string is not a valid YYYY-MM code."""

    code: str = "INVALID_MONTH"

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"Invalid month code: {month!r} (expected YYYY-MM)")


class ProductionOutputError(ValidationError):
    """Production transaction does not carry exactly one positive output line."""

    code: str = "PRODUCTION_OUTPUT_INVALID"

    def __init__(self, transaction_type: str, output_count: int):
        self.transaction_type = transaction_type
        self.output_count = output_count
        super().__init__(
            f"{transaction_type} requires exactly one positive output line, "
            f"got {output_count}"
        )


class BomConsumptionMismatchError(ValidationError):
    """Caller-supplied consumption lines disagree with the BOM."""

    code: str = "BOM_CONSUMPTION_MISMATCH"

    def __init__(self, item_id: str, month: str, errors: list[str]):
        self.item_id = item_id
        self.month = month
        self.errors = errors
        super().__init__(
            f"Consumption for {item_id} does not match BOM {month}: "
            + "; ".join(errors)
        )


class UnfixedBomError(ValidationError):
    """Production against a BOM that has not been fixed, when policy forbids it."""

    code: str = "BOM_NOT_FIXED"

    def __init__(self, item_id: str, month: str):
        self.item_id = item_id
        self.month = month
        super().__init__(f"BOM for {item_id} in {month} is not fixed")


class ProcessSequenceError(ValidationError):
    """A later process ran before the earlier process produced its input."""

    code: str = "PROCESS_SEQUENCE_VIOLATION"

    def __init__(self, process: str, missing_process: str, material_ids: list[str]):
        self.process = process
        self.missing_process = missing_process
        self.material_ids = material_ids
        super().__init__(
            f"{process} requires {missing_process} output in stock first "
            f"(missing: {', '.join(material_ids)})"
        )


class ClosingPreconditionError(ValidationError):
    """BOM or price set for the month is not fixed yet."""

    code: str = "CLOSING_PRECONDITION_FAILED"

    def __init__(self, month: str, bom_fixed: bool, prices_fixed: bool):
        self.month = month
        self.bom_fixed = bom_fixed
        self.prices_fixed = prices_fixed
        missing = []
        if not bom_fixed:
            missing.append("BOM")
        if not prices_fixed:
            missing.append("prices")
        super().__init__(
            f"Cannot close {month}: {' and '.join(missing)} not fixed"
        )


class SnapshotOrderError(ValidationError):
    """Snapshots are taken and closed one month at a time, oldest first."""

    code: str = "SNAPSHOT_OUT_OF_ORDER"

    def __init__(self, month: str, blocking_month: str, reason: str):
        self.month = month
        self.blocking_month = blocking_month
        self.reason = reason
        super().__init__(f"Snapshot {month} blocked by {blocking_month}: {reason}")


# Inventory exceptions


class InsufficientInventoryError(ErpKernelError):
    """
    Outbound quantity exceeds available stock.

    details is a list of dicts with item_id, item_name, item_code,
    available and required, one per short item.
    """

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, details: list[dict], stage: str = "submitted"):
        self.details = details
        self.stage = stage
        items = ", ".join(
            f"{d.get('item_code') or d['item_id']} "
            f"(available {d['available']}, required {d['required']})"
            for d in details
        )
        super().__init__(f"Insufficient inventory for {stage} lines: {items}")


# Immutability exceptions


class ImmutabilityError(ErpKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record at the ORM layer.

    Raised by db/immutability.py listeners.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class BomFixedError(ImmutabilityError):
    """BOM header is fixed; it and its lines can no longer change."""

    code: str = "BOM_FIXED"

    def __init__(self, bom_header_id: str, operation: str):
        self.bom_header_id = bom_header_id
        self.operation = operation
        super().__init__(f"Cannot {operation} fixed BOM {bom_header_id}")


class PriceMonthFixedError(ImmutabilityError):
    """Monthly prices are fixed for this month."""

    code: str = "PRICE_MONTH_FIXED"

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"Prices for {month} are fixed")


class SnapshotClosedError(ImmutabilityError):
    """Snapshot is CLOSED; its lines can no longer change."""

    code: str = "SNAPSHOT_CLOSED"

    def __init__(self, month: str, operation: str):
        self.month = month
        self.operation = operation
        super().__init__(f"Cannot {operation}: snapshot {month} is closed")


class ClosedMonthError(ImmutabilityError):
    """Posting or deleting a transaction dated inside a closed month."""

    code: str = "CLOSED_MONTH"

    def __init__(self, month: str, transaction_date: str):
        self.month = month
        self.transaction_date = transaction_date
        super().__init__(
            f"Month {month} is closed (transaction date: {transaction_date})"
        )


class MonthInCountError(ImmutabilityError):
    """Posting or deleting a transaction dated in or before a month being counted."""

    code: str = "MONTH_IN_COUNT"

    def __init__(self, month: str, transaction_date: str):
        self.month = month
        self.transaction_date = transaction_date
        super().__init__(
            f"Month {month} has an open snapshot (transaction date: {transaction_date})"
        )


# Integrity exceptions


class IntegrityFailureError(ErpKernelError):
    """
    The store is inconsistent and needs operator intervention.

    Never swallow this.
    """

    code: str = "INTEGRITY_FAILURE"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Integrity failure on {entity_type} {entity_id}: {reason}")


class PersistenceError(ErpKernelError):
    """A write was rolled back cleanly; nothing was persisted."""

    code: str = "PERSISTENCE_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed and was rolled back: {reason}")


# Not-found exceptions


class NotFoundError(ErpKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class PartnerNotFoundError(NotFoundError):
    """Partner with given ID was not found."""

    code: str = "PARTNER_NOT_FOUND"

    def __init__(self, partner_id: str):
        self.partner_id = partner_id
        super().__init__(f"Partner not found: {partner_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BomNotFoundError(NotFoundError):
    """BOM header was not found."""

    code: str = "BOM_NOT_FOUND"

    def __init__(self, bom_ref: str):
        self.bom_ref = bom_ref
        super().__init__(f"BOM not found: {bom_ref}")


class SnapshotNotFoundError(NotFoundError):
    """No inventory snapshot exists for the month."""

    code: str = "SNAPSHOT_NOT_FOUND"

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"No inventory snapshot for {month}")


class SnapshotLineNotFoundError(NotFoundError):
    """Snapshot line with given ID was not found."""

    code: str = "SNAPSHOT_LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Snapshot line not found: {line_id}")


# Concurrency exceptions


class ConcurrencyError(ErpKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class DuplicateBomError(ConcurrencyError):
    """A BOM header already exists for (item, version)."""

    code: str = "DUPLICATE_BOM"

    def __init__(self, item_id: str, version: str):
        self.item_id = item_id
        self.version = version
        super().__init__(f"BOM already exists for item {item_id} version {version}")


class SnapshotAlreadyExistsError(ConcurrencyError):
    """An inventory snapshot already exists for the month."""

    code: str = "SNAPSHOT_ALREADY_EXISTS"

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"Inventory snapshot for {month} already exists")


class SnapshotAlreadyClosedError(ConcurrencyError):
    """The month was already closed (possibly by a concurrent request)."""

    code: str = "SNAPSHOT_ALREADY_CLOSED"

    def __init__(self, month: str):
        self.month = month
        super().__init__(f"Month {month} is already closed")
