"""Retail finance payment calculator."""

from dataclasses import dataclass
from decimal import Decimal

from dealtax.engine.decimal_math import (
    ONE,
    ZERO,
    exact,
    to_decimal,
    to_money,
    validate_non_negative,
)
from dealtax.engine.errors import InputValidationError


def validate_term(term_months, field: str = "term_months") -> int:
    if isinstance(term_months, bool) or not isinstance(term_months, int):
        raise InputValidationError(f"{field} must be a whole number of months", field)
    if term_months < 0:
        raise InputValidationError(f"{field} cannot be negative: {term_months}", field)
    return term_months


@dataclass(frozen=True)
class FinanceTerms:
    vehicle_price: Decimal
    apr: Decimal
    term_months: int
    down_payment: Decimal = ZERO
    trade_allowance: Decimal = ZERO
    trade_payoff: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_fees: Decimal = ZERO

    def __post_init__(self):
        for name in (
            "vehicle_price",
            "apr",
            "down_payment",
            "trade_allowance",
            "trade_payoff",
            "total_tax",
            "total_fees",
        ):
            object.__setattr__(self, name, validate_non_negative(getattr(self, name), name))
        validate_term(self.term_months)


@dataclass(frozen=True)
class FinancePayment:
    monthly_payment: Decimal
    amount_financed: Decimal
    total_cost: Decimal
    total_interest: Decimal
    trade_equity: Decimal
    apr: Decimal
    term_months: int


def periodic_rate(apr: Decimal) -> Decimal:
    """Monthly rate from an APR expressed in percent (5.99 -> 0.0049916...)."""
    return to_decimal(apr, "apr") / 12 / 100


@exact
def level_payment(principal: Decimal, apr: Decimal, term_months: int) -> Decimal:
    """Unrounded level payment ``P * r(1+r)^n / ((1+r)^n - 1)``."""
    if principal <= ZERO or term_months == 0:
        return ZERO
    r = periodic_rate(apr)
    if r == ZERO:
        return principal / term_months
    growth = (ONE + r) ** term_months
    return principal * r * growth / (growth - ONE)


@exact
def calculate_finance_payment(terms: FinanceTerms) -> FinancePayment:
    """Amount financed and level monthly payment; rounding happens only on output."""
    trade_equity = terms.trade_allowance - terms.trade_payoff
    amount_financed = (
        terms.vehicle_price - terms.down_payment - trade_equity + terms.total_tax + terms.total_fees
    )
    if amount_financed <= ZERO or terms.term_months == 0:
        return FinancePayment(
            monthly_payment=to_money(ZERO),
            amount_financed=to_money(amount_financed),
            total_cost=to_money(max(amount_financed, ZERO)),
            total_interest=to_money(ZERO),
            trade_equity=to_money(trade_equity),
            apr=terms.apr,
            term_months=terms.term_months,
        )

    payment = level_payment(amount_financed, terms.apr, terms.term_months)
    total_cost = to_money(payment * terms.term_months)
    return FinancePayment(
        monthly_payment=to_money(payment),
        amount_financed=to_money(amount_financed),
        total_cost=total_cost,
        total_interest=total_cost - to_money(amount_financed),
        trade_equity=to_money(trade_equity),
        apr=terms.apr,
        term_months=terms.term_months,
    )
