"""Taxable base assembly: trade-in credit, rebates, fee and product classification."""

from dataclasses import dataclass
from decimal import Decimal

from dealtax.engine.decimal_math import ZERO, apply_cap, exact, format_usd, to_decimal, to_money
from dealtax.engine.rules import JurisdictionRules, rebate_deduction, trade_in_credit
from dealtax.engine.types import FeeLineItem, TaxCalculationInput

DOC_FEE_CODE = "DOC_FEE"


@dataclass(frozen=True)
class TaxableBase:
    """Assembler output; every amount is rounded to cents."""

    taxable_amount: Decimal
    trade_in_credit: Decimal
    rebate_deduction: Decimal
    taxable_additions: Decimal
    non_taxable_total: Decimal
    doc_fee: FeeLineItem | None
    taxable_lines: tuple[FeeLineItem, ...]
    non_taxable_lines: tuple[FeeLineItem, ...]
    clamped: bool
    notes: tuple[str, ...]


def doc_fee_line(inputs: TaxCalculationInput, rules: JurisdictionRules) -> tuple[FeeLineItem | None, str | None]:
    """Doc fee after the jurisdiction cap, taxable per the jurisdiction rule."""
    if inputs.doc_fee is None or inputs.doc_fee == ZERO:
        return None, None
    amount = inputs.doc_fee
    note = None
    if rules.doc_fee_cap is not None and amount > rules.doc_fee_cap:
        amount = to_decimal(apply_cap(amount, rules.doc_fee_cap))
        note = f"Doc fee capped at {format_usd(rules.doc_fee_cap)} (requested {format_usd(inputs.doc_fee)})"
    line = FeeLineItem(DOC_FEE_CODE, "Documentation Fee", amount, taxable=rules.doc_fee_taxable)
    return line, note


@exact
def assemble_taxable_base(inputs: TaxCalculationInput, rules: JurisdictionRules) -> TaxableBase:
    """Price less trade-in credit and exempt rebates, plus taxable lines, floored at zero."""
    notes: list[str] = []

    credit, narrative = trade_in_credit(rules.trade_in_policy, inputs.trade_in_value)
    if narrative:
        notes.append(narrative)

    deduction, narrative = rebate_deduction(
        rules.rebate_taxability, inputs.rebate_manufacturer, inputs.rebate_dealer
    )
    if narrative:
        notes.append(narrative)

    doc_fee, note = doc_fee_line(inputs, rules)
    if note:
        notes.append(note)

    lines = [doc_fee] if doc_fee is not None else []
    lines.extend(inputs.other_fees)
    lines.extend(inputs.products)
    lines.extend(inputs.accessories)
    taxable_lines = tuple(line for line in lines if line.taxable)
    non_taxable_lines = tuple(line for line in lines if not line.taxable)
    additions = sum((line.amount for line in taxable_lines), ZERO)
    non_taxable = sum((line.amount for line in non_taxable_lines), ZERO)

    running = inputs.vehicle_price - credit - deduction + additions
    clamped = running < ZERO
    if clamped:
        notes.append("Credits exceed the taxable amount; taxable amount set to $0.00")
        running = ZERO

    return TaxableBase(
        taxable_amount=to_money(running),
        trade_in_credit=to_money(credit),
        rebate_deduction=to_money(deduction),
        taxable_additions=to_money(additions),
        non_taxable_total=to_money(non_taxable),
        doc_fee=doc_fee,
        taxable_lines=taxable_lines,
        non_taxable_lines=non_taxable_lines,
        clamped=clamped,
        notes=tuple(notes),
    )


def taxable_amount(vehicle_price, trade_in_value, rules: JurisdictionRules, jurisdiction) -> Decimal:
    """Shortcut for price/trade-in only deals."""
    inputs = TaxCalculationInput(
        vehicle_price=vehicle_price, trade_in_value=trade_in_value, jurisdiction=jurisdiction
    )
    return assemble_taxable_base(inputs, rules).taxable_amount
