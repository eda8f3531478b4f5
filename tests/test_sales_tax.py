"""Unit tests for the sales tax calculator."""

from dataclasses import replace
from decimal import Decimal

import pytest

from dealtax.engine.errors import InvalidRateError, NegativeBaseError
from dealtax.engine.rules import ReciprocityPolicy, VehicleTaxScheme
from dealtax.engine.sales_tax import (
    calculate_sales_tax,
    compute_tax_lines,
    effective_rate,
    scale_lines_to_cap,
)
from dealtax.engine.types import FeeLineItem, TaxCalculationInput, TaxLineItem, TaxRateSet


def test_ca_with_trade_in(ca_rules, ca_jurisdiction):
    """CA: 35000 price, 10000 trade-in, 7.25%."""
    inputs = TaxCalculationInput(vehicle_price="35000", trade_in_value="10000", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.taxable_amount == Decimal("25000.00")
    assert result.total_tax == Decimal("1812.50")
    assert result.state_tax == Decimal("1812.50")
    assert result.local_tax == Decimal("0.00")
    assert result.effective_tax_rate == Decimal("0.0725")


def test_mi_capped_trade_in(mi_rules, mi_jurisdiction):
    """MI: trade-in credit capped at 2000, 6%."""
    inputs = TaxCalculationInput(vehicle_price="30000", trade_in_value="5000", jurisdiction=mi_jurisdiction)
    result = calculate_sales_tax(inputs, mi_rules)
    assert result.trade_in_credit == Decimal("2000.00")
    assert result.taxable_amount == Decimal("28000.00")
    assert result.total_tax == Decimal("1680.00")


def test_full_deal(ca_rules, ca_jurisdiction):
    """Full deal: doc fee and service contract are taxable; fees exclude products."""
    inputs = TaxCalculationInput(
        vehicle_price="35000",
        trade_in_value="10000",
        doc_fee="299",
        products=[FeeLineItem("SERVICE_CONTRACT", "Service Contract", "2500", taxable=True)],
        jurisdiction=ca_jurisdiction,
    )
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.vehicle_tax == Decimal("1812.50")
    assert result.fees_tax == Decimal("202.93")
    assert result.total_tax == Decimal("2015.43")
    assert result.total_fees == Decimal("364.00")
    assert result.total_tax_and_fees == Decimal("2379.43")
    assert {fee.code for fee in result.fees} == {"DOC_FEE", "TITLE", "REGISTRATION"}


def test_breakdown_is_itemized_and_sums_to_total(ca_jurisdiction, ca_rules):
    """State, county, city and district lines sum exactly to total tax."""
    rules = replace(
        ca_rules,
        rate_set=TaxRateSet(
            state_rate="0.0725", county_rate="0.0100", city_rate="0.0075", special_district_rate="0.0025"
        ),
    )
    inputs = TaxCalculationInput(vehicle_price="33333.33", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, rules)
    codes = [line.code for line in result.breakdown]
    assert codes == ["STATE", "COUNTY", "CITY", "SPECIAL_DISTRICT"]
    assert result.breakdown_sum == result.total_tax
    assert result.state_tax + result.local_tax == result.total_tax


def test_tax_cap_scales_lines(ca_jurisdiction, ca_rules):
    """A binding cap scales every line and keeps the exact sum."""
    rules = replace(
        ca_rules,
        rate_set=TaxRateSet(state_rate="0.05", county_rate="0.0133", city_rate="0.0077"),
        tax_cap=Decimal("500.00"),
    )
    inputs = TaxCalculationInput(vehicle_price="41234.57", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, rules)
    assert result.tax_cap_applied
    assert result.total_tax == Decimal("500.00")
    assert result.breakdown_sum == Decimal("500.00")
    assert any("cap" in note.lower() for note in result.notes)


def test_cap_not_binding(ca_jurisdiction, ca_rules):
    """A cap above the computed tax changes nothing."""
    rules = replace(ca_rules, tax_cap=Decimal("5000.00"))
    inputs = TaxCalculationInput(vehicle_price="10000", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, rules)
    assert not result.tax_cap_applied
    assert result.total_tax == Decimal("725.00")


def test_scale_lines_residue_goes_to_largest_line():
    """Rounding residue lands on the line with the largest amount."""
    lines = [
        TaxLineItem("STATE", "State", Decimal("20.00")),
        TaxLineItem("COUNTY", "County", Decimal("5.00")),
        TaxLineItem("CITY", "City", Decimal("5.00")),
    ]
    scaled = scale_lines_to_cap(lines, Decimal("10.00"))
    assert sum(line.amount for line in scaled) == Decimal("10.00")
    assert [line.amount for line in scaled] == [Decimal("6.66"), Decimal("1.67"), Decimal("1.67")]


def test_luxury_tax(ca_jurisdiction, ca_rules):
    """Luxury tax applies only above the threshold."""
    inputs = TaxCalculationInput(
        vehicle_price="60000",
        luxury_threshold="45000",
        luxury_rate="0.004",
        jurisdiction=ca_jurisdiction,
    )
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.luxury_tax == Decimal("60.00")
    assert result.total_tax == Decimal("4350.00") + Decimal("60.00")

    below = replace(inputs, vehicle_price=Decimal("40000"))
    assert calculate_sales_tax(below, ca_rules).luxury_tax == Decimal("0.00")


def test_no_luxury_line_without_threshold(ca_jurisdiction, ca_rules):
    """luxury_tax is None when no threshold is configured."""
    inputs = TaxCalculationInput(vehicle_price="60000", jurisdiction=ca_jurisdiction)
    assert calculate_sales_tax(inputs, ca_rules).luxury_tax is None


def test_ev_fee_and_incentive(ca_jurisdiction, ca_rules):
    """EV lines are flat amounts, not blended into the rate."""
    inputs = TaxCalculationInput(
        vehicle_price="20000", ev_fee="250", ev_incentive="100", jurisdiction=ca_jurisdiction
    )
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.line("EV_FEE").amount == Decimal("250.00")
    assert result.line("EV_FEE").rate is None
    assert result.line("EV_INCENTIVE").amount == Decimal("-100.00")
    assert result.total_tax == Decimal("1450.00") + Decimal("150.00")
    assert result.breakdown_sum == result.total_tax


def test_ev_incentive_never_drives_tax_negative(ca_jurisdiction, ca_rules):
    """The incentive is limited to the tax otherwise owed."""
    inputs = TaxCalculationInput(vehicle_price="1000", ev_incentive="7500", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.total_tax == Decimal("0.00")
    assert result.line("EV_INCENTIVE").amount == Decimal("-72.50")
    assert any("limited" in note for note in result.notes)


def test_zero_taxable_amount(ca_jurisdiction, ca_rules):
    """Zero base means zero tax and a zero effective rate."""
    inputs = TaxCalculationInput(vehicle_price="0", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.total_tax == Decimal("0.00")
    assert result.effective_tax_rate == Decimal("0")


def test_invalid_rate_rejected():
    """Rates outside [0, 1] raise InvalidRateError."""
    with pytest.raises(InvalidRateError):
        TaxRateSet(state_rate="1.25")
    with pytest.raises(InvalidRateError):
        compute_tax_lines(
            Decimal("100"),
            TaxRateSet(state_rate="0.05"),
            luxury_threshold=Decimal("0"),
            luxury_rate=Decimal("2"),
        )


def test_negative_base_rejected():
    """A negative base is re-validated at entry."""
    with pytest.raises(NegativeBaseError):
        compute_tax_lines(Decimal("-0.01"), TaxRateSet(state_rate="0.05"))


def test_effective_rate():
    """Effective rate is 0 for a zero base."""
    assert effective_rate(Decimal("0"), Decimal("0")) == Decimal("0")
    assert effective_rate(Decimal("1812.50"), Decimal("25000.00")) == Decimal("0.0725")


def test_warnings(ca_jurisdiction, ca_rules):
    """High effective rate and missing local data produce warnings."""
    rules = replace(ca_rules, rate_set=TaxRateSet(state_rate="0.20", local_rates_missing=True))
    inputs = TaxCalculationInput(vehicle_price="10000", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, rules)
    assert len(result.warnings) == 2
    assert result.total_tax == Decimal("2000.00")


def test_idempotent(ca_jurisdiction, ca_rules):
    """Identical inputs give identical results."""
    inputs = TaxCalculationInput(
        vehicle_price="35000", trade_in_value="10000", doc_fee="299", jurisdiction=ca_jurisdiction
    )
    assert calculate_sales_tax(inputs, ca_rules) == calculate_sales_tax(inputs, ca_rules)


def test_local_tax_rounded_once_across_layers(ca_jurisdiction, ca_rules):
    """Half-cent local layers do not each round up; local tax is rounded as one amount."""
    rules = replace(
        ca_rules,
        rate_set=TaxRateSet(
            state_rate="0.0625", county_rate="0.005", city_rate="0.005", special_district_rate="0.005"
        ),
    )
    result = calculate_sales_tax(TaxCalculationInput(vehicle_price="30001", jurisdiction=ca_jurisdiction), rules)
    assert result.state_tax == Decimal("1875.06")
    assert result.local_tax == Decimal("450.02")
    assert result.total_tax == Decimal("2325.08")
    assert [result.line(code).amount for code in ("COUNTY", "CITY", "SPECIAL_DISTRICT")] == [
        Decimal("150.01"),
        Decimal("150.01"),
        Decimal("150.00"),
    ]
    assert result.breakdown_sum == result.total_tax


def test_local_cents_go_to_largest_remainders():
    """Leftover local cents land on the layers with the largest fractions."""
    lines, _ = compute_tax_lines(
        Decimal("33333.33"),
        TaxRateSet(state_rate="0.0725", county_rate="0.0100", city_rate="0.0075", special_district_rate="0.0025"),
    )
    amounts = {line.code: line.amount for line in lines}
    assert amounts["COUNTY"] == Decimal("333.33")
    assert amounts["CITY"] == Decimal("250.00")
    assert amounts["SPECIAL_DISTRICT"] == Decimal("83.34")


def test_state_only_scheme_drops_local_lines(ca_jurisdiction, ca_rules):
    """Vehicle sales in a state-only jurisdiction ignore county and city rates."""
    rules = replace(
        ca_rules,
        rate_set=TaxRateSet(state_rate="0.056", county_rate="0.007", city_rate="0.023"),
        vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    )
    result = calculate_sales_tax(TaxCalculationInput(vehicle_price="20000", jurisdiction=ca_jurisdiction), rules)
    assert [line.code for line in result.breakdown] == ["STATE"]
    assert result.total_tax == Decimal("1120.00")
    assert result.local_tax == Decimal("0")
    assert result.total_rate == Decimal("0.056")
    assert any("state rate only" in note for note in result.notes)


def test_state_only_scheme_taxes_fees_at_state_rate(ca_jurisdiction, ca_rules):
    """The fees share of tax follows the rates actually charged."""
    rules = replace(
        ca_rules,
        rate_set=TaxRateSet(state_rate="0.05", county_rate="0.02"),
        vehicle_tax_scheme=VehicleTaxScheme.STATE_ONLY,
    )
    inputs = TaxCalculationInput(vehicle_price="10000", doc_fee="200", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, rules)
    assert result.total_tax == Decimal("510.00")
    assert result.fees_tax == Decimal("10.00")


def test_reciprocity_credit_limited_to_tax_due(ca_jurisdiction, ca_rules):
    """Tax paid elsewhere is credited, but never below zero tax."""
    rules = replace(ca_rules, reciprocity=ReciprocityPolicy.CREDIT_UP_TO_TAX)
    inputs = TaxCalculationInput(
        vehicle_price="10000", origin_tax_paid="1000", origin_state="NV", jurisdiction=ca_jurisdiction
    )
    result = calculate_sales_tax(inputs, rules)
    assert result.reciprocity_credit == Decimal("725.00")
    assert result.line("RECIPROCITY_CREDIT").amount == Decimal("-725.00")
    assert result.total_tax == Decimal("0.00")
    assert result.breakdown_sum == result.total_tax
    assert any("limited" in note and "NV" in note for note in result.notes)


def test_partial_reciprocity_credit(ca_jurisdiction, ca_rules):
    """A smaller out-of-state payment reduces the tax by exactly that amount."""
    rules = replace(ca_rules, reciprocity=ReciprocityPolicy.CREDIT_UP_TO_TAX)
    inputs = TaxCalculationInput(
        vehicle_price="10000", doc_fee="100", origin_tax_paid="300", jurisdiction=ca_jurisdiction
    )
    result = calculate_sales_tax(inputs, rules)
    assert result.total_tax == Decimal("432.25")
    assert result.vehicle_tax + result.fees_tax == result.total_tax
    assert any("another state" in note for note in result.notes)


def test_no_reciprocity_means_no_credit_line(ca_jurisdiction, ca_rules):
    """Without a reciprocity policy, out-of-state tax is noted but not credited."""
    inputs = TaxCalculationInput(vehicle_price="10000", origin_tax_paid="500", jurisdiction=ca_jurisdiction)
    result = calculate_sales_tax(inputs, ca_rules)
    assert result.line("RECIPROCITY_CREDIT") is None
    assert result.reciprocity_credit == Decimal("0")
    assert result.total_tax == Decimal("725.00")
    assert any("No credit" in note for note in result.notes)
