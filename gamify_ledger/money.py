from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Coerce JSON-ish input to Decimal.

    Accepts Decimals, ints, floats (via ``str`` so 19.99 stays 19.99) and
    strings, including a decimal comma ("12,50"). Raises ``InvalidOperation``
    for anything unparseable.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidOperation(f"not a number: {value!r}")
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    return Decimal(str(value))


def round2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price_or_zero(value: Any) -> Decimal:
    # Line items with a missing or garbled price contribute nothing to the total.
    try:
        return to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
