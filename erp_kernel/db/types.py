"""
Module: erp_kernel.db.types
Responsibility: Annotated type aliases and conversion helpers for quantity and
    price columns.  Centralizes precision and rounding so that every model,
    selector and service handles stock quantities identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Quantities carry QUANTITY_DECIMAL_PLACES (4) fractional digits and
      prices PRICE_DECIMAL_PLACES (2).  round_quantity() is the only
      sanctioned rounding function for stock quantities.
    - No floats.  to_quantity() converts through str so a float that slips
      in from a driver never contributes binary noise.

Failure modes:
    - decimal.InvalidOperation on a non-numeric string passed to to_quantity().
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Stock quantity: 18 digits total, 4 decimal places
Quantity = Annotated[Decimal, Numeric(18, 4)]

# Unit price / line amount: 15 digits total, 2 decimal places
Price = Annotated[Decimal, Numeric(15, 2)]

# Month code "YYYY-MM"
MonthCode = Annotated[str, String(7)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]


QUANTITY_DECIMAL_PLACES = 4
PRICE_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_quantity(
    value: Decimal,
    decimal_places: int = QUANTITY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a stock quantity to the canonical precision.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to keep.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_quantity(value) -> Decimal:
    """
    Coerce a driver or caller value into a rounded quantity Decimal.

    None becomes zero, which is what an empty SUM() returns.
    """
    if value is None:
        return round_quantity(ZERO)
    if isinstance(value, Decimal):
        return round_quantity(value)
    return round_quantity(Decimal(str(value)))


def round_price(value: Decimal | None) -> Decimal | None:
    """Round a price or amount to two places, passing None through."""
    if value is None:
        return None
    return round_quantity(Decimal(str(value)), PRICE_DECIMAL_PLACES)
