"""Lease payment calculator and money factor conversions."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from dealtax.engine.decimal_math import (
    ZERO,
    exact,
    format_usd,
    to_decimal,
    to_money,
    validate_non_negative,
    validate_rate,
)
from dealtax.engine.finance import validate_term

APR_PER_MONEY_FACTOR = Decimal("2400")
APR_DISPLAY_PLACES = Decimal("0.01")
MONEY_FACTOR_PLACES = Decimal("0.000001")


def money_factor_to_apr(money_factor) -> Decimal:
    """Display-only conversion: 0.00125 -> 3.00."""
    apr = validate_rate(money_factor, "money_factor") * APR_PER_MONEY_FACTOR
    return apr.quantize(APR_DISPLAY_PLACES, rounding=ROUND_HALF_UP)


def apr_to_money_factor(apr) -> Decimal:
    """Display-only conversion: 3.00 -> 0.001250."""
    mf = validate_non_negative(apr, "apr") / APR_PER_MONEY_FACTOR
    return mf.quantize(MONEY_FACTOR_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LeaseTerms:
    vehicle_price: Decimal
    money_factor: Decimal
    term_months: int
    residual_value: Decimal
    down_payment: Decimal = ZERO
    trade_equity: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_fees: Decimal = ZERO

    def __post_init__(self):
        for name in ("vehicle_price", "residual_value", "down_payment", "total_tax", "total_fees"):
            object.__setattr__(self, name, validate_non_negative(getattr(self, name), name))
        # Trade equity may be negative (payoff above allowance).
        object.__setattr__(self, "trade_equity", to_decimal(self.trade_equity, "trade_equity"))
        object.__setattr__(self, "money_factor", validate_rate(self.money_factor, "money_factor"))
        validate_term(self.term_months)


@dataclass(frozen=True)
class LeasePayment:
    capitalized_cost: Decimal
    residual_value: Decimal
    depreciation: Decimal
    rent_charge: Decimal
    monthly_payment: Decimal
    total_of_payments: Decimal
    money_factor: Decimal
    apr_equivalent: Decimal
    term_months: int
    warnings: tuple[str, ...] = field(default_factory=tuple)


@exact
def calculate_lease_payment(terms: LeaseTerms) -> LeasePayment:
    """Depreciation plus rent charge; money factor is used as-is, never via APR."""
    cap_cost = (
        terms.vehicle_price
        + terms.total_fees
        + terms.total_tax
        - terms.down_payment
        - terms.trade_equity
    )
    apr_equivalent = money_factor_to_apr(terms.money_factor)
    if cap_cost <= ZERO or terms.term_months == 0:
        return LeasePayment(
            capitalized_cost=to_money(cap_cost),
            residual_value=to_money(terms.residual_value),
            depreciation=to_money(ZERO),
            rent_charge=to_money(ZERO),
            monthly_payment=to_money(ZERO),
            total_of_payments=to_money(ZERO),
            money_factor=terms.money_factor,
            apr_equivalent=apr_equivalent,
            term_months=terms.term_months,
        )

    warnings = []
    if terms.residual_value > cap_cost:
        warnings.append(
            f"Residual value {format_usd(terms.residual_value)} exceeds capitalized cost "
            f"{format_usd(cap_cost)}; depreciation is negative"
        )
    depreciation = (cap_cost - terms.residual_value) / terms.term_months
    rent_charge = (cap_cost + terms.residual_value) * terms.money_factor
    payment = depreciation + rent_charge
    return LeasePayment(
        capitalized_cost=to_money(cap_cost),
        residual_value=to_money(terms.residual_value),
        depreciation=to_money(depreciation),
        rent_charge=to_money(rent_charge),
        monthly_payment=to_money(payment),
        total_of_payments=to_money(payment * terms.term_months),
        money_factor=terms.money_factor,
        apr_equivalent=apr_equivalent,
        term_months=terms.term_months,
        warnings=tuple(warnings),
    )
