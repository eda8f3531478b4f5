"""Exact decimal money primitives.

Every monetary and rate value in the engine is a ``Decimal``. Arithmetic runs
in ``CALC_CONTEXT`` (34 significant digits, ROUND_HALF_UP) and is rounded to
cents only when a value is presented. Binary floats are rejected at the door:
``to_decimal(0.1)`` raises instead of silently carrying ``0.1000000000000000055``.

The string-returning functions (``add``, ``subtract``, ``total`` ...) are the
presentation API and always answer with a canonical 2-place money string.
Engine internals chain plain ``Decimal`` operations under ``CALC_CONTEXT`` and
call ``to_money`` once at the end.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from functools import wraps

from dealtax.engine.errors import (
    DivisionByZeroError,
    InvalidRateError,
    MalformedDecimalError,
    NegativeAmountError,
)

Numeric = str | int | Decimal

CALC_CONTEXT = Context(prec=34, rounding=ROUND_HALF_UP)

MONEY_PLACES = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")


def exact(func):
    """Run ``func`` under CALC_CONTEXT regardless of the caller's context."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext(CALC_CONTEXT):
            return func(*args, **kwargs)

    return wrapper


def to_decimal(value: Numeric, field: str = "value") -> Decimal:
    """Parse a canonical decimal string, int or Decimal. Floats are refused."""
    if isinstance(value, bool) or isinstance(value, float):
        raise MalformedDecimalError(
            f"{field} must be a decimal string, not {type(value).__name__}", field
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            with localcontext(CALC_CONTEXT):
                result = Decimal(value.strip())
        except InvalidOperation:
            raise MalformedDecimalError(f"{field} is not a valid decimal: {value!r}", field) from None
    else:
        raise MalformedDecimalError(
            f"{field} must be a decimal string, not {type(value).__name__}", field
        )
    if not result.is_finite():
        raise MalformedDecimalError(f"{field} must be finite: {value!r}", field)
    return result


def to_money(value: Numeric) -> Decimal:
    """Round to cents (ROUND_HALF_UP). Negative zero collapses to 0.00."""
    with localcontext(CALC_CONTEXT):
        result = to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    if result.is_zero():
        return result.copy_abs()
    return result


def to_money_string(value: Numeric) -> str:
    return format(to_money(value), "f")


def to_rate(value: Numeric) -> Decimal:
    """Rate with at least 4 decimal places; extra precision is kept."""
    result = to_decimal(value)
    if result.as_tuple().exponent > -4:
        with localcontext(CALC_CONTEXT):
            result = result.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
    return result


def to_rate_string(value: Numeric) -> str:
    return format(to_rate(value), "f")


# Arithmetic (presentation API)


@exact
def add(*values: Numeric) -> str:
    """Add any number of values. ``add("0.1", "0.2") == "0.30"``."""
    result = ZERO
    for value in values:
        result += to_decimal(value)
    return to_money_string(result)


@exact
def subtract(minuend: Numeric, *subtrahends: Numeric) -> str:
    result = to_decimal(minuend)
    for value in subtrahends:
        result -= to_decimal(value)
    return to_money_string(result)


@exact
def multiply(*values: Numeric) -> str:
    result = ONE
    for value in values:
        result *= to_decimal(value)
    return to_money_string(result)


@exact
def divide(dividend: Numeric, divisor: Numeric) -> str:
    return to_money_string(exact_divide(dividend, divisor))


@exact
def exact_divide(dividend: Numeric, divisor: Numeric) -> Decimal:
    """Unrounded quotient, for use inside computation chains."""
    denominator = to_decimal(divisor, "divisor")
    if denominator.is_zero():
        raise DivisionByZeroError("Division by zero")
    return to_decimal(dividend, "dividend") / denominator


@exact
def total(values) -> str:
    """Sum an iterable. ``total(["0.1", ..., "0.9"]) == "4.50"``."""
    result = ZERO
    for value in values:
        result += to_decimal(value)
    return to_money_string(result)


def minimum(*values: Numeric) -> str:
    if not values:
        return "0.00"
    return to_money_string(min(to_decimal(v) for v in values))


def maximum(*values: Numeric) -> str:
    if not values:
        return "0.00"
    return to_money_string(max(to_decimal(v) for v in values))


def absolute(value: Numeric) -> str:
    return to_money_string(to_decimal(value).copy_abs())


@exact
def percentage_of(part: Numeric, whole: Numeric) -> str:
    """Fraction ``part / whole`` to 4 places; "0.0000" when whole is zero."""
    denominator = to_decimal(whole)
    if denominator.is_zero():
        return "0.0000"
    ratio = to_decimal(part) / denominator
    return format(ratio.quantize(RATE_PLACES, rounding=ROUND_HALF_UP), "f")


def apply_cap(value: Numeric, cap: Numeric) -> str:
    """``apply_cap("300.00", "85.00") == "85.00"``."""
    return to_money_string(min(to_decimal(value), to_decimal(cap)))


@exact
def apply_percent(value: Numeric, percent: Numeric) -> str:
    return to_money_string(to_decimal(value) * to_decimal(percent))


# Comparisons: exact, never epsilon based


def is_equal(a: Numeric, b: Numeric) -> bool:
    return to_decimal(a) == to_decimal(b)


def is_greater_than(a: Numeric, b: Numeric) -> bool:
    return to_decimal(a) > to_decimal(b)


def is_less_than(a: Numeric, b: Numeric) -> bool:
    return to_decimal(a) < to_decimal(b)


def is_zero(value: Numeric) -> bool:
    return to_decimal(value).is_zero()


def is_positive(value: Numeric) -> bool:
    return to_decimal(value) > ZERO


def is_negative(value: Numeric) -> bool:
    return to_decimal(value) < ZERO


# Guards


def validate_money(value: Numeric, field: str = "value") -> Decimal:
    return to_decimal(value, field)


def validate_non_negative(value: Numeric, field: str = "value") -> Decimal:
    result = validate_money(value, field)
    if result < ZERO:
        raise NegativeAmountError(f"{field} cannot be negative: {value}", field)
    return result


def validate_rate(value: Numeric, field: str = "rate") -> Decimal:
    result = validate_money(value, field)
    if result < ZERO or result > ONE:
        raise InvalidRateError(f"{field} must be between 0 and 1: {value}", field)
    return result


# Formatting for notes and narrative text


def format_usd(value: Numeric) -> str:
    amount = to_money(value)
    sign = "-" if amount < ZERO else ""
    return f"{sign}${amount.copy_abs():,.2f}"


def format_percent(rate: Numeric, places: int = 2) -> str:
    with localcontext(CALC_CONTEXT):
        percent = to_decimal(rate) * 100
        quantum = Decimal(1).scaleb(-places)
        return f"{percent.quantize(quantum, rounding=ROUND_HALF_UP)}%"
