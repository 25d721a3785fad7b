"""
Sign convention for transaction lines.

Lines carry their signed stock effect; the transaction type is a category.
This module is the line-insertion boundary that keeps the two consistent:
it rejects a positive quantity on an outbound-only type, a production without
exactly one output line, zero quantities, and TRANSFER (no defined effect).

Pure functions; raise typed ValidationErrors.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from erp_kernel.domain.dtos import ProposedLine
from erp_kernel.exceptions import (
    InvalidLineError,
    LineSignError,
    ProductionOutputError,
    UnsupportedTransactionTypeError,
    ValidationError,
)

INBOUND_ONLY_TYPES = frozenset({"PURCHASE_RECEIPT"})
OUTBOUND_ONLY_TYPES = frozenset({"SHIPMENT", "SCRAP_SHIPMENT"})
PRODUCTION_TYPES = frozenset({"PRODUCTION_PRESS", "PRODUCTION_WELD", "PRODUCTION_PAINT"})
UNRESTRICTED_TYPES = frozenset({"ADJUSTMENT"})
UNSUPPORTED_TYPES = frozenset({"TRANSFER"})

KNOWN_TYPES = (
    INBOUND_ONLY_TYPES
    | OUTBOUND_ONLY_TYPES
    | PRODUCTION_TYPES
    | UNRESTRICTED_TYPES
    | UNSUPPORTED_TYPES
)

OPENING_BALANCE = "OPENING_BALANCE"

TYPE_LABELS = {
    "PURCHASE_RECEIPT": "Purchase receipt",
    "PRODUCTION_PRESS": "Press production",
    "PRODUCTION_WELD": "Weld production",
    "PRODUCTION_PAINT": "Paint production",
    "SHIPMENT": "Shipment",
    "SCRAP_SHIPMENT": "Scrap shipment",
    "ADJUSTMENT": "Inventory adjustment",
    "TRANSFER": "Transfer",
    OPENING_BALANCE: "Opening balance",
}


def type_code(transaction_type) -> str:
    """Plain string code for a TransactionType member or string."""
    return getattr(transaction_type, "value", transaction_type)


def type_label(transaction_type: str) -> str:
    code = type_code(transaction_type)
    return TYPE_LABELS.get(code, code)


def production_process(transaction_type: str) -> str | None:
    """PRODUCTION_WELD -> "WELD"; None for non-production types."""
    code = type_code(transaction_type)
    if code in PRODUCTION_TYPES:
        return code.removeprefix("PRODUCTION_")
    return None


def validate_line_shape(lines: Sequence[ProposedLine]) -> None:
    """Every line needs an item and a finite, non-zero Decimal quantity."""
    if not lines:
        raise ValidationError("A transaction needs at least one line")
    for index, line in enumerate(lines, start=1):
        if line.item_id is None:
            raise InvalidLineError(index, "item_id is required")
        if not isinstance(line.quantity, Decimal):
            raise InvalidLineError(
                index, f"quantity must be Decimal, got {type(line.quantity).__name__}"
            )
        if not line.quantity.is_finite():
            raise InvalidLineError(index, f"quantity {line.quantity} is not finite")
        if line.quantity == 0:
            raise InvalidLineError(index, "quantity must not be zero")


def validate_line_signs(transaction_type: str, lines: Sequence[ProposedLine]) -> None:
    """
    Enforce the sign rule for ``transaction_type``.

    Raises:
        UnsupportedTransactionTypeError: TRANSFER or an unknown type.
        LineSignError: a line's sign contradicts the type.
        ProductionOutputError: production without exactly one output line.
    """
    transaction_type = type_code(transaction_type)
    if transaction_type not in KNOWN_TYPES or transaction_type in UNSUPPORTED_TYPES:
        raise UnsupportedTransactionTypeError(transaction_type)

    validate_line_shape(lines)

    if transaction_type in INBOUND_ONLY_TYPES:
        for index, line in enumerate(lines, start=1):
            if line.quantity < 0:
                raise LineSignError(transaction_type, index, str(line.quantity), "positive")
    elif transaction_type in OUTBOUND_ONLY_TYPES:
        for index, line in enumerate(lines, start=1):
            if line.quantity > 0:
                raise LineSignError(transaction_type, index, str(line.quantity), "negative")
    elif transaction_type in PRODUCTION_TYPES:
        outputs = [line for line in lines if line.quantity > 0]
        if len(outputs) != 1:
            raise ProductionOutputError(transaction_type, len(outputs))


def find_output_line(lines: Sequence[ProposedLine]) -> ProposedLine | None:
    """First positive line -- the produced item on a production transaction."""
    for line in lines:
        if line.quantity > 0:
            return line
    return None
