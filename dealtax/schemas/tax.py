"""Tax calculation request/response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from dealtax.schemas.common import DecimalInput


class LineItemIn(BaseModel):
    """Fee, product or accessory line."""

    code: str
    name: str
    amount: DecimalInput
    taxable: bool = False


class SalesTaxRequest(BaseModel):
    """POST /v1/tax/calculate-sales-tax request."""

    postal_code: str
    vehicle_price: DecimalInput
    trade_in_value: DecimalInput = Decimal("0")
    rebate_manufacturer: DecimalInput = Decimal("0")
    rebate_dealer: DecimalInput = Decimal("0")
    luxury_threshold: DecimalInput | None = None
    luxury_rate: DecimalInput | None = None
    ev_fee: DecimalInput | None = None
    ev_incentive: DecimalInput | None = None
    origin_tax_paid: DecimalInput | None = None
    origin_state: str | None = None
    calculation_date: datetime | None = None
    deal_id: str | None = None
    dealership_id: str | None = None
    user_id: str | None = None


class DealTaxRequest(SalesTaxRequest):
    """POST /v1/tax/calculate-deal-taxes request."""

    doc_fee: DecimalInput | None = None
    other_fees: list[LineItemIn] = Field(default_factory=list)
    products: list[LineItemIn] = Field(default_factory=list)
    accessories: list[LineItemIn] = Field(default_factory=list)


class JurisdictionInfo(BaseModel):
    postal_code: str
    state: str
    county: str | None = None
    city: str | None = None
    special_district: str | None = None


class RateSetInfo(BaseModel):
    state_rate: str
    county_rate: str
    city_rate: str
    special_district_rate: str
    total_rate: str


class TaxLine(BaseModel):
    code: str
    label: str
    rate: str | None = None
    base: str | None = None
    amount: str


class FeeLine(BaseModel):
    code: str
    name: str
    amount: str
    taxable: bool


class AuditTrail(BaseModel):
    calculation_id: str
    calculated_at: datetime
    calculated_by: str
    engine_version: str
    rules_version: str
    inputs_hash: str


class SalesTaxResponse(BaseModel):
    """Decimal values are canonical strings, never floats."""

    jurisdiction: JurisdictionInfo
    rules_version: str
    taxable_amount: str
    breakdown: list[TaxLine]
    state_tax: str
    local_tax: str
    luxury_tax: str | None = None
    reciprocity_credit: str = "0.00"
    total_tax: str
    total_fees: str
    total_tax_and_fees: str
    effective_tax_rate: str
    tax_cap_applied: bool = False
    warnings: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    validated: bool
    validation_errors: list[str] = Field(default_factory=list)
    audit_trail: AuditTrail | None = None


class DealTaxResponse(SalesTaxResponse):
    """Full-deal variant."""

    trade_in_credit: str
    vehicle_tax: str
    fees_tax: str
    total_taxable: str
    total_non_taxable: str
    total_taxes_and_fees: str
    fees: list[FeeLine] = Field(default_factory=list)


class JurisdictionResponse(BaseModel):
    """GET /v1/tax/jurisdiction/{postal_code} response."""

    jurisdiction: JurisdictionInfo
    rates: RateSetInfo
    rules_version: str
    effective_from: datetime
    effective_to: datetime | None = None
    trade_in_policy: dict[str, Any]
    rebate_taxability: str
    vehicle_tax_scheme: str
    reciprocity: str
    doc_fee_taxable: bool
    doc_fee_cap: str | None = None
    tax_cap: str | None = None
    title_fee: str
    registration_fee: str


class AuditEntry(BaseModel):
    calculation_id: str
    calculation_type: str
    calculated_at: datetime
    calculated_by: str
    engine_version: str
    rules_version: str
    inputs_hash: str
    dealership_id: str | None = None
    inputs: dict[str, Any]
    outputs: dict[str, Any]


class AuditHistoryResponse(BaseModel):
    """GET /v1/tax/audit/{deal_id} response."""

    deal_id: str
    records: list[AuditEntry]
