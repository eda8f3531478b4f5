"""Tax calculation endpoints."""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter

from dealtax.api.deps import AuditLogDep, CalculationCacheDep, ResolverDep
from dealtax.config import settings
from dealtax.engine.audit import DEAL_TAXES, SALES_TAX, AuditRecord, build_audit_record
from dealtax.engine.rules import JurisdictionRules
from dealtax.engine.sales_tax import calculate_sales_tax
from dealtax.engine.types import FeeLineItem, Jurisdiction, TaxCalculationInput, TaxCalculationResult
from dealtax.engine.validator import validate_tax_calculation
from dealtax.schemas.common import money, rate
from dealtax.schemas.tax import (
    AuditEntry,
    AuditHistoryResponse,
    AuditTrail,
    DealTaxRequest,
    DealTaxResponse,
    FeeLine,
    JurisdictionInfo,
    JurisdictionResponse,
    RateSetInfo,
    SalesTaxRequest,
    SalesTaxResponse,
    TaxLine,
)
from dealtax.utils.canonical import request_hash

logger = logging.getLogger(__name__)

router = APIRouter()

ANONYMOUS = "system"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _line_items(items) -> tuple[FeeLineItem, ...]:
    return tuple(FeeLineItem(i.code, i.name, i.amount, i.taxable) for i in items)


def _to_engine_input(body: SalesTaxRequest, jurisdiction: Jurisdiction) -> TaxCalculationInput:
    extra = {}
    if isinstance(body, DealTaxRequest):
        extra = {
            "doc_fee": body.doc_fee,
            "other_fees": _line_items(body.other_fees),
            "products": _line_items(body.products),
            "accessories": _line_items(body.accessories),
        }
    return TaxCalculationInput(
        vehicle_price=body.vehicle_price,
        jurisdiction=jurisdiction,
        trade_in_value=body.trade_in_value,
        rebate_manufacturer=body.rebate_manufacturer,
        rebate_dealer=body.rebate_dealer,
        luxury_threshold=body.luxury_threshold,
        luxury_rate=body.luxury_rate,
        ev_fee=body.ev_fee,
        ev_incentive=body.ev_incentive,
        origin_tax_paid=body.origin_tax_paid,
        origin_state=body.origin_state,
        **extra,
    )


def _jurisdiction_info(jurisdiction: Jurisdiction) -> JurisdictionInfo:
    return JurisdictionInfo(
        postal_code=jurisdiction.postal_code,
        state=jurisdiction.state,
        county=jurisdiction.county,
        city=jurisdiction.city,
        special_district=jurisdiction.special_district,
    )


def _result_fields(result: TaxCalculationResult) -> dict:
    return {
        "taxable_amount": money(result.taxable_amount),
        "breakdown": [
            TaxLine(
                code=line.code,
                label=line.label,
                rate=rate(line.rate),
                base=money(line.base),
                amount=money(line.amount),
            )
            for line in result.breakdown
        ],
        "state_tax": money(result.state_tax),
        "local_tax": money(result.local_tax),
        "luxury_tax": money(result.luxury_tax),
        "reciprocity_credit": money(result.reciprocity_credit),
        "total_tax": money(result.total_tax),
        "total_fees": money(result.total_fees),
        "total_tax_and_fees": money(result.total_tax_and_fees),
        "effective_tax_rate": rate(result.effective_tax_rate),
        "tax_cap_applied": result.tax_cap_applied,
        "warnings": list(result.warnings),
        "notes": list(result.notes),
    }


def _audit_trail(record: AuditRecord | None) -> AuditTrail | None:
    if record is None:
        return None
    return AuditTrail(
        calculation_id=record.calculation_id,
        calculated_at=record.calculated_at,
        calculated_by=record.calculated_by,
        engine_version=record.engine_version,
        rules_version=record.rules_version,
        inputs_hash=record.inputs_hash,
    )


async def _run_calculation(
    body: SalesTaxRequest,
    calculation_type: str,
    resolver,
    audit_log,
    cache,
):
    """Resolve, calculate (memoized), validate, and record when valid."""
    as_of = body.calculation_date or _now()
    resolved = await resolver.resolve(body.postal_code, as_of)
    rules: JurisdictionRules = resolved.rules
    inputs = _to_engine_input(body, resolved.jurisdiction)

    threshold = settings.high_tax_rate_threshold
    cache_key = request_hash(
        {"inputs": inputs, "rules_version": rules.rules_version, "high_rate_threshold": threshold}
    )
    result = cache.get_or_compute(
        cache_key, lambda: calculate_sales_tax(inputs, rules, high_rate_threshold=threshold)
    )

    validation = validate_tax_calculation(
        result, rules, calculated_at=as_of, high_rate_threshold=threshold
    )
    if not validation.all_checks_pass:
        logger.warning(
            "Tax calculation failed validation for %s (rules %s): %s",
            resolved.jurisdiction.postal_code,
            rules.rules_version,
            "; ".join(validation.error_messages),
        )
        return resolved, result, validation, None

    record = build_audit_record(
        calculation_id=str(uuid4()),
        calculated_at=_now(),
        calculated_by=body.user_id or ANONYMOUS,
        engine_version=settings.engine_version,
        rules_version=rules.rules_version,
        inputs={"request": body.model_dump(mode="json"), "calculation": inputs, "as_of": as_of},
        outputs=result,
        calculation_type=calculation_type,
        deal_id=body.deal_id,
        dealership_id=body.dealership_id,
        rules_hash=rules.bundle_hash,
    )
    await audit_log.append(record)
    logger.info(
        "Calculation %s: rules %s, total tax %s",
        record.calculation_id,
        rules.rules_version,
        money(result.total_tax),
    )
    return resolved, result, validation, record


@router.post("/calculate-sales-tax", response_model=SalesTaxResponse)
async def calculate_sales_tax_endpoint(
    body: SalesTaxRequest,
    resolver: ResolverDep,
    audit_log: AuditLogDep,
    cache: CalculationCacheDep,
):
    """
    Sales tax for a vehicle price, trade-in and rebates in the postal code's jurisdiction.
    Valid calculations are appended to the audit log.
    """
    resolved, result, validation, record = await _run_calculation(
        body, SALES_TAX, resolver, audit_log, cache
    )
    return SalesTaxResponse(
        jurisdiction=_jurisdiction_info(resolved.jurisdiction),
        rules_version=resolved.rules.rules_version,
        validated=validation.all_checks_pass,
        validation_errors=validation.error_messages,
        audit_trail=_audit_trail(record),
        **_result_fields(result),
    )


@router.post("/calculate-deal-taxes", response_model=DealTaxResponse)
async def calculate_deal_taxes_endpoint(
    body: DealTaxRequest,
    resolver: ResolverDep,
    audit_log: AuditLogDep,
    cache: CalculationCacheDep,
):
    """Full deal: fees, products and accessories on top of the vehicle."""
    resolved, result, validation, record = await _run_calculation(
        body, DEAL_TAXES, resolver, audit_log, cache
    )
    return DealTaxResponse(
        jurisdiction=_jurisdiction_info(resolved.jurisdiction),
        rules_version=resolved.rules.rules_version,
        validated=validation.all_checks_pass,
        validation_errors=validation.error_messages,
        audit_trail=_audit_trail(record),
        trade_in_credit=money(result.trade_in_credit),
        vehicle_tax=money(result.vehicle_tax),
        fees_tax=money(result.fees_tax),
        total_taxable=money(result.total_taxable),
        total_non_taxable=money(result.total_non_taxable),
        total_taxes_and_fees=money(result.total_tax_and_fees),
        fees=[
            FeeLine(code=f.code, name=f.name, amount=money(f.amount), taxable=f.taxable)
            for f in result.fees
        ],
        **_result_fields(result),
    )


@router.get("/jurisdiction/{postal_code}", response_model=JurisdictionResponse)
async def get_jurisdiction(
    postal_code: str,
    resolver: ResolverDep,
    as_of: datetime | None = None,
):
    """Resolve a postal code to its jurisdiction, rate set and effective rules."""
    resolved = await resolver.resolve(postal_code, as_of or _now())
    rules = resolved.rules
    rates = resolved.rate_set
    return JurisdictionResponse(
        jurisdiction=_jurisdiction_info(resolved.jurisdiction),
        rates=RateSetInfo(
            state_rate=rate(rates.state_rate),
            county_rate=rate(rates.county_rate),
            city_rate=rate(rates.city_rate),
            special_district_rate=rate(rates.special_district_rate),
            total_rate=rate(rates.total_rate),
        ),
        rules_version=rules.rules_version,
        effective_from=rules.effective_from,
        effective_to=rules.effective_to,
        trade_in_policy=rules.trade_in_policy.to_dict(),
        rebate_taxability=rules.rebate_taxability.value,
        vehicle_tax_scheme=rules.vehicle_tax_scheme.value,
        reciprocity=rules.reciprocity.value,
        doc_fee_taxable=rules.doc_fee_taxable,
        doc_fee_cap=money(rules.doc_fee_cap),
        tax_cap=money(rules.tax_cap),
        title_fee=money(rules.title_fee),
        registration_fee=money(rules.registration_fee),
    )


@router.get("/audit/{deal_id}", response_model=AuditHistoryResponse)
async def get_audit_history(deal_id: str, audit_log: AuditLogDep):
    """Append-only calculation history for a deal, oldest first. Read only."""
    records = await audit_log.history(deal_id)
    return AuditHistoryResponse(
        deal_id=deal_id,
        records=[
            AuditEntry(
                calculation_id=r.calculation_id,
                calculation_type=r.calculation_type,
                calculated_at=r.calculated_at,
                calculated_by=r.calculated_by,
                engine_version=r.engine_version,
                rules_version=r.rules_version,
                inputs_hash=r.inputs_hash,
                dealership_id=r.dealership_id,
                inputs=r.inputs_snapshot,
                outputs=r.outputs_snapshot,
            )
            for r in records
        ],
    )
