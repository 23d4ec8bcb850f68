"""Currency amounts are Decimals quantized to cents."""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """
    Normalize a number to a cent-quantized Decimal.

    Database drivers may hand back floats or ints for SUM();
    going through str() keeps the value exact.
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
