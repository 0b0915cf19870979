"""
Shared field validation for request schemas
"""

from decimal import Decimal

# Numeric(20, 2): at most 18 integer digits and 2 decimal places
AMOUNT_DECIMAL_PLACES = 2
AMOUNT_MAX_INTEGER_DIGITS = 18


def check_amount(v: Decimal) -> Decimal:
    """
    Positive, finite, at most 2 decimal places and fits Numeric(20, 2).

    Sub-cent amounts are rejected rather than rounded: rounding would send
    the provider and store a different amount than the one requested.
    """
    if not v.is_finite():
        raise ValueError("Amount must be a finite number")
    if v <= 0:
        raise ValueError("Amount must be greater than 0")

    _, digits, exponent = v.normalize().as_tuple()
    if exponent < -AMOUNT_DECIMAL_PLACES:
        raise ValueError(f"Amount must have at most {AMOUNT_DECIMAL_PLACES} decimal places")
    if len(digits) + exponent > AMOUNT_MAX_INTEGER_DIGITS:
        raise ValueError("Amount is too large")
    return v


def check_text(v: str) -> str:
    """Reject strings that cannot be stored or sent as UTF-8 (lone surrogates from JSON escapes)"""
    try:
        v.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("Text contains characters that are not valid UTF-8")
    return v
