"""
Module: workload_kernel.db.types
Responsibility: Numeric coercion and rounding helpers shared by models, engines and services.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    engines and services.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats in stored or computed figures.  Incoming floats are converted
      through ``str`` so 0.67 stays Decimal("0.67").
    - round2() is the ONLY sanctioned rounding function: two places,
      ROUND_HALF_UP (round-half-away-from-zero on Decimal).
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from workload_kernel.exceptions import ValidationError

DEFAULT_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round2(value: Decimal, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    """
    Round a load or money value using round-half-away-from-zero.

    Raises ValidationError when the value has too many digits to be held
    at ``decimal_places`` in the current decimal context.
    """
    quantize_str = "0." + "0" * decimal_places
    try:
        return value.quantize(Decimal(quantize_str), rounding=DEFAULT_ROUNDING)
    except InvalidOperation:
        raise ValidationError(
            "amount", value, f"too large to hold at {decimal_places} decimal places",
        ) from None


def strip_scale(value: Decimal) -> Decimal:
    """
    Drop storage padding: Decimal("800.000000000") becomes Decimal("800").

    Numeric(38, 9) columns read back with nine places.  Values shown to
    callers or written to logs go through here first.
    """
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return normalized.quantize(Decimal(1))
    return normalized


def to_decimal(value: object, field: str, *, default: Decimal | None = None) -> Decimal:
    """
    Coerce caller input to a finite Decimal.

    ``None`` yields ``default`` when one is given.  Booleans, NaN, infinities
    and non-numeric strings raise ValidationError.
    """
    if value is None:
        if default is not None:
            return default
        raise ValidationError(field, value, "value is required")
    if isinstance(value, bool):
        raise ValidationError(field, value, "must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(field, value, "must be a finite number")
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(field, value, "must be a number") from None
    else:
        raise ValidationError(field, value, "must be a number")

    if not result.is_finite():
        raise ValidationError(field, value, "must be a finite number")
    return result


def to_non_negative(value: object, field: str, *, default: Decimal | None = None) -> Decimal:
    """Like to_decimal() but also rejects negative values."""
    result = to_decimal(value, field, default=default)
    if result < 0:
        raise ValidationError(field, value, "must not be negative")
    return result
