"""Amortization schedule generator."""

import calendar
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, localcontext

from dealtax.engine.decimal_math import CALC_CONTEXT, ZERO, to_money, validate_non_negative
from dealtax.engine.finance import level_payment, periodic_rate, validate_term


@dataclass(frozen=True)
class AmortizationEntry:
    payment_number: int
    payment_date: date
    payment_amount: Decimal
    principal: Decimal
    interest: Decimal
    remaining_balance: Decimal
    cumulative_principal: Decimal
    cumulative_interest: Decimal


def add_months(start: date, months: int) -> date:
    """Advance by calendar months, clamping the day to the target month's end."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def iter_amortization_schedule(
    principal, apr, term_months: int, start_date: date
) -> Iterator[AmortizationEntry]:
    """Lazily yield one row per period. Inputs are checked before the first row.

    Payments and interest are rounded to cents per period; the final row pays
    off whatever balance remains so the schedule ends at exactly 0.00.
    """
    principal = validate_non_negative(principal, "principal")
    apr = validate_non_negative(apr, "apr")
    validate_term(term_months)
    if principal <= ZERO or term_months == 0:
        return iter(())
    return _rows(to_money(principal), apr, term_months, start_date)


def _rows(principal: Decimal, apr: Decimal, term_months: int, start_date: date) -> Iterator[AmortizationEntry]:
    with localcontext(CALC_CONTEXT):
        rate = periodic_rate(apr)
        payment = to_money(level_payment(principal, apr, term_months))
    balance = principal
    paid_principal = ZERO
    paid_interest = ZERO

    for number in range(1, term_months + 1):
        with localcontext(CALC_CONTEXT):
            interest = to_money(balance * rate)
            if number == term_months:
                principal_paid = balance
            else:
                principal_paid = min(payment - interest, balance)
            balance = balance - principal_paid
            paid_principal += principal_paid
            paid_interest += interest
            entry = AmortizationEntry(
                payment_number=number,
                payment_date=add_months(start_date, number),
                payment_amount=principal_paid + interest,
                principal=principal_paid,
                interest=interest,
                remaining_balance=to_money(balance),
                cumulative_principal=paid_principal,
                cumulative_interest=paid_interest,
            )
        yield entry


def generate_amortization_schedule(principal, apr, term_months: int, start_date: date) -> list[AmortizationEntry]:
    return list(iter_amortization_schedule(principal, apr, term_months, start_date))
