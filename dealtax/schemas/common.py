"""Shared request field types and decimal output formatting."""

from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator

from dealtax.engine.decimal_math import to_money_string, to_rate_string


def _reject_float(value):
    """JSON floats are refused; send money and rates as strings or integers."""
    if isinstance(value, float):
        raise ValueError("binary floats are not accepted; send a decimal string")
    if isinstance(value, bool):
        raise ValueError("expected a decimal string")
    return value


DecimalInput = Annotated[Decimal, BeforeValidator(_reject_float)]


def money(value: Decimal | None) -> str | None:
    """Canonical 2-place money string."""
    return None if value is None else to_money_string(value)


def rate(value: Decimal | None) -> str | None:
    """Canonical rate string with at least 4 places."""
    return None if value is None else to_rate_string(value)
