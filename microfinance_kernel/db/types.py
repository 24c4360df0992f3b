"""
Module: microfinance_kernel.db.types
Responsibility: Annotated column aliases and the money rounding helpers
    shared by models, services and selectors.

All monetary amounts are Decimal.  round_money() is the only rounding
function used for ledger values; closing amounts and snapshots are
quantized to MONEY_DISPLAY_PLACES with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

Sequence = Annotated[int, BigInteger]

# SHA-256 hex digest
PayloadHash = Annotated[str, String(64)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 9
MONEY_DISPLAY_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Coerce an int, str or Decimal amount to Decimal.

    Floats are rejected: binary fractions cannot represent currency.
    """
    if isinstance(value, float):
        raise TypeError(f"Monetary amounts must not be float: {value!r}")
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DISPLAY_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value to ``decimal_places`` (default 2, half-up)."""
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
