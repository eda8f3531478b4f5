"""Sales tax calculator.

Applies the layered rate set (state, county, city, special district) to the
taxable base, then luxury tax, flat EV lines, the jurisdiction tax cap and any
credit for tax paid to another state. State and combined local tax are each
rounded once; the local cents are then spread across county, city and district
by largest remainder. ``total_tax`` is the sum of the lines, so the breakdown
always reconciles exactly, capped or not.
"""

import logging
from dataclasses import replace
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from dealtax.engine.decimal_math import (
    MONEY_PLACES,
    RATE_PLACES,
    ZERO,
    exact,
    format_percent,
    format_usd,
    to_money,
    validate_rate,
)
from dealtax.engine.errors import InputValidationError, NegativeBaseError
from dealtax.engine.rules import (
    JurisdictionRules,
    VehicleTaxScheme,
    applicable_rates,
    reciprocity_credit,
)
from dealtax.engine.taxable_base import assemble_taxable_base
from dealtax.engine.types import (
    FeeLineItem,
    TaxCalculationInput,
    TaxCalculationResult,
    TaxLineItem,
    TaxRateSet,
)

logger = logging.getLogger(__name__)

DEFAULT_HIGH_RATE_THRESHOLD = Decimal("0.15")

STATE = "STATE"
COUNTY = "COUNTY"
CITY = "CITY"
SPECIAL_DISTRICT = "SPECIAL_DISTRICT"
LUXURY = "LUXURY"
EV_FEE = "EV_FEE"
EV_INCENTIVE = "EV_INCENTIVE"
RECIPROCITY_CREDIT = "RECIPROCITY_CREDIT"

LOCAL_CODES = (COUNTY, CITY, SPECIAL_DISTRICT)


def _rate_line(code: str, label: str, base: Decimal, rate: Decimal) -> TaxLineItem:
    return TaxLineItem(code=code, label=label, amount=to_money(base * rate), rate=rate, base=base)


def _local_lines(taxable_amount: Decimal, rate_set: TaxRateSet) -> list[TaxLineItem]:
    """County, city and district lines that sum to the once-rounded local tax."""
    layers = [
        (COUNTY, "County sales tax", validate_rate(rate_set.county_rate, "county_rate")),
        (CITY, "City sales tax", validate_rate(rate_set.city_rate, "city_rate")),
        (
            SPECIAL_DISTRICT,
            "Special district tax",
            validate_rate(rate_set.special_district_rate, "special_district_rate"),
        ),
    ]
    unrounded = [taxable_amount * rate for _, _, rate in layers]
    amounts = [value.quantize(MONEY_PLACES, rounding=ROUND_DOWN) for value in unrounded]
    local_total = to_money(sum(unrounded, ZERO))
    cents = int((local_total - sum(amounts, ZERO)) / MONEY_PLACES)
    # Stable sort: equal remainders keep county, city, district order.
    by_remainder = sorted(range(len(layers)), key=lambda i: unrounded[i] - amounts[i], reverse=True)
    for index in by_remainder[:cents]:
        amounts[index] += MONEY_PLACES
    return [
        TaxLineItem(code=code, label=label, amount=amount, rate=rate, base=taxable_amount)
        for (code, label, rate), amount in zip(layers, amounts)
    ]


@exact
def compute_tax_lines(
    taxable_amount: Decimal,
    rate_set: TaxRateSet,
    *,
    vehicle_tax_scheme: VehicleTaxScheme = VehicleTaxScheme.STATE_PLUS_LOCAL,
    luxury_threshold: Decimal | None = None,
    luxury_rate: Decimal | None = None,
    ev_fee: Decimal | None = None,
    ev_incentive: Decimal | None = None,
) -> tuple[list[TaxLineItem], list[str]]:
    """Itemized tax lines before any cap, plus the notes they produced."""
    if taxable_amount < ZERO:
        raise NegativeBaseError(f"Taxable amount cannot be negative: {taxable_amount}", "taxable_amount")
    state_rate = validate_rate(rate_set.state_rate, "state_rate")

    notes: list[str] = []
    scheme = VehicleTaxScheme(vehicle_tax_scheme)
    rate_set, scheme_note = applicable_rates(rate_set, scheme)
    if scheme_note:
        notes.append(scheme_note)
    lines = [_rate_line(STATE, "State sales tax", taxable_amount, state_rate)]
    if scheme is VehicleTaxScheme.STATE_PLUS_LOCAL:
        lines.extend(_local_lines(taxable_amount, rate_set))

    if luxury_threshold is not None:
        if luxury_rate is None:
            raise InputValidationError("luxury_rate is required with luxury_threshold", "luxury_rate")
        rate = validate_rate(luxury_rate, "luxury_rate")
        luxury_base = max(ZERO, taxable_amount - luxury_threshold)
        lines.append(_rate_line(LUXURY, "Luxury tax", luxury_base, rate))
        if luxury_base > ZERO:
            notes.append(
                f"Luxury tax of {format_percent(rate)} on {format_usd(luxury_base)} "
                f"above the {format_usd(luxury_threshold)} threshold"
            )

    if ev_fee is not None and ev_fee > ZERO:
        lines.append(TaxLineItem(code=EV_FEE, label="Electric vehicle fee", amount=to_money(ev_fee)))

    if ev_incentive is not None and ev_incentive > ZERO:
        running = sum((line.amount for line in lines), ZERO)
        credit = min(to_money(ev_incentive), running)
        if credit < ev_incentive:
            notes.append(
                f"EV incentive limited to {format_usd(credit)} of {format_usd(ev_incentive)} "
                "so total tax is not negative"
            )
        lines.append(TaxLineItem(code=EV_INCENTIVE, label="Electric vehicle incentive", amount=-credit))

    return lines, notes


@exact
def scale_lines_to_cap(lines: list[TaxLineItem], cap: Decimal) -> list[TaxLineItem]:
    """Scale every line by cap/total; the rounding residue lands on the largest line."""
    uncapped = sum((line.amount for line in lines), ZERO)
    factor = cap / uncapped
    scaled = [replace(line, amount=to_money(line.amount * factor)) for line in lines]
    residue = cap - sum((line.amount for line in scaled), ZERO)
    if residue:
        index = max(range(len(scaled)), key=lambda i: abs(scaled[i].amount))
        scaled[index] = replace(scaled[index], amount=scaled[index].amount + residue)
    return scaled


def effective_rate(total_tax: Decimal, taxable_amount: Decimal) -> Decimal:
    if taxable_amount == ZERO:
        return ZERO.quantize(RATE_PLACES)
    return (total_tax / taxable_amount).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def government_fee_lines(rules: JurisdictionRules) -> list[FeeLineItem]:
    lines = []
    if rules.title_fee > ZERO:
        lines.append(FeeLineItem("TITLE", "Title Fee", rules.title_fee, taxable=False))
    if rules.registration_fee > ZERO:
        lines.append(FeeLineItem("REGISTRATION", "Registration Fee", rules.registration_fee, taxable=False))
    return lines


@exact
def calculate_sales_tax(
    inputs: TaxCalculationInput,
    rules: JurisdictionRules,
    *,
    high_rate_threshold: Decimal = DEFAULT_HIGH_RATE_THRESHOLD,
) -> TaxCalculationResult:
    """Full calculation from raw inputs to an itemized, reconciled result."""
    base = assemble_taxable_base(inputs, rules)
    warnings: list[str] = []
    notes = list(base.notes)
    rate_set, _ = applicable_rates(rules.rate_set, rules.vehicle_tax_scheme)

    def pick(requested, default):
        return requested if requested is not None else default

    lines, line_notes = compute_tax_lines(
        base.taxable_amount,
        rules.rate_set,
        vehicle_tax_scheme=rules.vehicle_tax_scheme,
        luxury_threshold=pick(inputs.luxury_threshold, rules.luxury_threshold),
        luxury_rate=pick(inputs.luxury_rate, rules.luxury_rate),
        ev_fee=pick(inputs.ev_fee, rules.ev_fee),
        ev_incentive=pick(inputs.ev_incentive, rules.ev_incentive),
    )
    notes.extend(line_notes)

    uncapped_total = sum((line.amount for line in lines), ZERO)
    cap_applied = rules.tax_cap is not None and uncapped_total > rules.tax_cap
    if cap_applied:
        lines = scale_lines_to_cap(lines, rules.tax_cap)
        notes.append(
            f"Tax cap of {format_usd(rules.tax_cap)} applied (calculated tax {format_usd(uncapped_total)})"
        )
        logger.debug("Tax cap %s applied to %s", rules.tax_cap, uncapped_total)

    tax_due = sum((line.amount for line in lines), ZERO)
    credit, credit_note = reciprocity_credit(
        rules.reciprocity, inputs.origin_tax_paid, tax_due, inputs.origin_state
    )
    if credit_note:
        notes.append(credit_note)
    if credit > ZERO:
        lines.append(
            TaxLineItem(code=RECIPROCITY_CREDIT, label="Credit for tax paid to another state", amount=-credit)
        )

    total_tax = sum((line.amount for line in lines), ZERO)
    amounts = {line.code: line.amount for line in lines}
    state_tax = amounts[STATE]
    local_tax = sum((amounts.get(code, ZERO) for code in LOCAL_CODES), ZERO)
    luxury_tax = amounts.get(LUXURY)

    # Share of tax attributable to taxable fees, products and accessories.
    fees_portion = min(base.taxable_additions, base.taxable_amount)
    fees_tax = to_money(fees_portion * rate_set.total_rate)
    if cap_applied:
        fees_tax = to_money(fees_tax * rules.tax_cap / uncapped_total)
    if credit > ZERO:
        fees_tax = to_money(fees_tax * total_tax / tax_due)
    fees_tax = max(ZERO, min(fees_tax, total_tax))

    fees = ([base.doc_fee] if base.doc_fee is not None else []) + government_fee_lines(rules)
    fees.extend(inputs.other_fees)
    total_fees = to_money(sum((fee.amount for fee in fees), ZERO))

    rate = effective_rate(total_tax, base.taxable_amount)
    if rate_set.local_rates_missing:
        warnings.append("Local tax rates unavailable for this jurisdiction; defaulted to 0%")
    if rate > high_rate_threshold:
        warnings.append(
            f"Effective tax rate {format_percent(rate)} exceeds {format_percent(high_rate_threshold)}"
        )

    return TaxCalculationResult(
        taxable_amount=base.taxable_amount,
        breakdown=tuple(lines),
        state_tax=state_tax,
        local_tax=local_tax,
        luxury_tax=luxury_tax,
        total_tax=total_tax,
        total_fees=total_fees,
        total_tax_and_fees=total_tax + total_fees,
        effective_tax_rate=rate,
        total_rate=rate_set.total_rate,
        trade_in_credit=base.trade_in_credit,
        rebate_deduction=base.rebate_deduction,
        vehicle_tax=total_tax - fees_tax,
        fees_tax=fees_tax,
        reciprocity_credit=credit,
        total_non_taxable=base.non_taxable_total,
        fees=tuple(fees),
        tax_cap_applied=cap_applied,
        warnings=tuple(warnings),
        notes=tuple(notes),
    )
