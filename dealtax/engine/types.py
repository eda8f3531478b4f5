"""Immutable value types shared by the tax engine."""

from dataclasses import dataclass, field
from decimal import Decimal

from dealtax.engine.decimal_math import (
    ZERO,
    validate_non_negative,
    validate_rate,
)


def _set(obj, name: str, value) -> None:
    object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class Jurisdiction:
    """Resolved taxing jurisdiction for one postal code."""

    postal_code: str
    state: str
    county: str | None = None
    city: str | None = None
    special_district: str | None = None
    jurisdiction_id: str | None = None


@dataclass(frozen=True)
class TaxRateSet:
    """Layered rates. ``total_rate`` is always derived, never stored."""

    state_rate: Decimal
    county_rate: Decimal = ZERO
    city_rate: Decimal = ZERO
    special_district_rate: Decimal = ZERO
    local_rates_missing: bool = False

    def __post_init__(self):
        for name in ("state_rate", "county_rate", "city_rate", "special_district_rate"):
            _set(self, name, validate_rate(getattr(self, name), name))

    @property
    def local_rate(self) -> Decimal:
        return self.county_rate + self.city_rate + self.special_district_rate

    @property
    def total_rate(self) -> Decimal:
        return self.state_rate + self.local_rate


@dataclass(frozen=True)
class FeeLineItem:
    """Fee, product or accessory line. Duplicated codes are simply summed."""

    code: str
    name: str
    amount: Decimal
    taxable: bool = False

    def __post_init__(self):
        _set(self, "amount", validate_non_negative(self.amount, f"{self.code}.amount"))


ProductLineItem = FeeLineItem


@dataclass(frozen=True)
class TaxCalculationInput:
    """Raw inputs for one calculation. Never mutated after construction."""

    vehicle_price: Decimal
    jurisdiction: Jurisdiction
    trade_in_value: Decimal = ZERO
    rebate_manufacturer: Decimal = ZERO
    rebate_dealer: Decimal = ZERO
    doc_fee: Decimal | None = None
    other_fees: tuple[FeeLineItem, ...] = ()
    products: tuple[FeeLineItem, ...] = ()
    accessories: tuple[FeeLineItem, ...] = ()
    luxury_threshold: Decimal | None = None
    luxury_rate: Decimal | None = None
    ev_fee: Decimal | None = None
    ev_incentive: Decimal | None = None
    origin_tax_paid: Decimal | None = None
    origin_state: str | None = None

    def __post_init__(self):
        for name in ("vehicle_price", "trade_in_value", "rebate_manufacturer", "rebate_dealer"):
            _set(self, name, validate_non_negative(getattr(self, name), name))
        for name in ("doc_fee", "luxury_threshold", "ev_fee", "ev_incentive", "origin_tax_paid"):
            value = getattr(self, name)
            if value is not None:
                _set(self, name, validate_non_negative(value, name))
        if self.luxury_rate is not None:
            _set(self, "luxury_rate", validate_rate(self.luxury_rate, "luxury_rate"))
        for name in ("other_fees", "products", "accessories"):
            _set(self, name, tuple(getattr(self, name)))


@dataclass(frozen=True)
class TaxLineItem:
    """One line of the tax breakdown. Flat EV lines carry no rate."""

    code: str
    label: str
    amount: Decimal
    rate: Decimal | None = None
    base: Decimal | None = None


@dataclass(frozen=True)
class TaxCalculationResult:
    """Itemized outcome. ``sum(line.amount for line in breakdown) == total_tax``."""

    taxable_amount: Decimal
    breakdown: tuple[TaxLineItem, ...]
    state_tax: Decimal
    local_tax: Decimal
    luxury_tax: Decimal | None
    total_tax: Decimal
    total_fees: Decimal
    total_tax_and_fees: Decimal
    effective_tax_rate: Decimal
    total_rate: Decimal
    trade_in_credit: Decimal = ZERO
    rebate_deduction: Decimal = ZERO
    vehicle_tax: Decimal = ZERO
    fees_tax: Decimal = ZERO
    reciprocity_credit: Decimal = ZERO
    total_non_taxable: Decimal = ZERO
    fees: tuple[FeeLineItem, ...] = ()
    tax_cap_applied: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_taxable(self) -> Decimal:
        return self.taxable_amount

    @property
    def breakdown_sum(self) -> Decimal:
        return sum((line.amount for line in self.breakdown), ZERO)

    def line(self, code: str) -> TaxLineItem | None:
        for item in self.breakdown:
            if item.code == code:
                return item
        return None

