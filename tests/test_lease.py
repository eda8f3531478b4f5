"""Unit tests for the lease calculator."""

from decimal import Decimal

import pytest

from dealtax.engine.errors import InvalidRateError
from dealtax.engine.lease import (
    LeaseTerms,
    apr_to_money_factor,
    calculate_lease_payment,
    money_factor_to_apr,
)


def test_money_factor_conversions():
    """Money factor and APR convert by 2400, for display."""
    assert money_factor_to_apr("0.00125") == Decimal("3.00")
    assert apr_to_money_factor("3") == Decimal("0.001250")
    assert str(apr_to_money_factor("3")) == "0.001250"


def test_lease_payment_components():
    """Payment is depreciation plus rent charge."""
    terms = LeaseTerms(
        vehicle_price="35000",
        money_factor="0.00125",
        term_months=36,
        residual_value="20000",
        down_payment="2000",
    )
    lease = calculate_lease_payment(terms)
    assert lease.capitalized_cost == Decimal("33000.00")
    assert lease.depreciation == Decimal("361.11")
    assert lease.rent_charge == Decimal("66.25")
    assert lease.monthly_payment == Decimal("427.36")
    assert lease.total_of_payments == Decimal("15385.00")
    assert lease.apr_equivalent == Decimal("3.00")
    assert lease.warnings == ()


def test_negative_trade_equity_raises_cap_cost():
    """Trade equity may be negative and is added to the cap cost."""
    terms = LeaseTerms(
        vehicle_price="30000",
        money_factor="0.001",
        term_months=36,
        residual_value="18000",
        trade_equity="-1500",
    )
    assert calculate_lease_payment(terms).capitalized_cost == Decimal("31500.00")


def test_residual_above_cap_cost_warns():
    """A residual above the cap cost produces a warning and negative depreciation."""
    terms = LeaseTerms(vehicle_price="20000", money_factor="0.001", term_months=36, residual_value="25000")
    lease = calculate_lease_payment(terms)
    assert lease.depreciation == Decimal("-138.89")
    assert len(lease.warnings) == 1


def test_zero_cap_cost():
    """Nothing capitalized means no payment."""
    terms = LeaseTerms(
        vehicle_price="10000", money_factor="0.001", term_months=36, residual_value="6000", down_payment="10000"
    )
    lease = calculate_lease_payment(terms)
    assert lease.monthly_payment == Decimal("0.00")
    assert lease.total_of_payments == Decimal("0.00")


def test_money_factor_is_a_rate():
    """Money factors outside [0, 1] are rejected."""
    with pytest.raises(InvalidRateError):
        LeaseTerms(vehicle_price="30000", money_factor="1.5", term_months=36, residual_value="18000")
