"""Jurisdiction rules: trade-in and rebate policies, versioned rule bundles."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, assert_never

from dealtax.engine.decimal_math import (
    ZERO,
    format_percent,
    format_usd,
    to_money,
    validate_non_negative,
    validate_rate,
)
from dealtax.engine.errors import InputValidationError, RulesDataError, RulesNotFoundError
from dealtax.engine.types import TaxRateSet
from dealtax.utils.canonical import bundle_hash as compute_bundle_hash


class TradeInCreditKind(str, Enum):
    NONE = "NONE"
    FULL_CREDIT = "FULL_CREDIT"
    PARTIAL_CREDIT_CAPPED = "PARTIAL_CREDIT_CAPPED"
    TAX_ON_DIFFERENCE = "TAX_ON_DIFFERENCE"
    PERCENT_CREDIT = "PERCENT_CREDIT"


class RebateTaxability(str, Enum):
    ALL_TAXABLE = "ALL_TAXABLE"
    MANUFACTURER_EXEMPT = "MANUFACTURER_EXEMPT"
    ALL_EXEMPT = "ALL_EXEMPT"


class VehicleTaxScheme(str, Enum):
    """Which layers of the rate set apply to a vehicle sale."""

    STATE_ONLY = "STATE_ONLY"
    STATE_PLUS_LOCAL = "STATE_PLUS_LOCAL"


class ReciprocityPolicy(str, Enum):
    """Credit for sales tax already paid to another state on the same vehicle."""

    NONE = "NONE"
    CREDIT_UP_TO_TAX = "CREDIT_UP_TO_TAX"


@dataclass(frozen=True)
class TradeInCreditPolicy:
    """How a trade-in reduces the taxable base.

    ``cap_amount`` belongs to PARTIAL_CREDIT_CAPPED and ``percent`` to
    PERCENT_CREDIT; every other kind must carry neither.
    """

    kind: TradeInCreditKind
    cap_amount: Decimal | None = None
    percent: Decimal | None = None

    def __post_init__(self):
        kind = TradeInCreditKind(self.kind)
        object.__setattr__(self, "kind", kind)
        if kind is TradeInCreditKind.PARTIAL_CREDIT_CAPPED:
            if self.cap_amount is None:
                raise RulesDataError("PARTIAL_CREDIT_CAPPED requires cap_amount")
            object.__setattr__(
                self, "cap_amount", validate_non_negative(self.cap_amount, "cap_amount")
            )
        elif self.cap_amount is not None:
            raise RulesDataError(f"{kind.value} does not take cap_amount")
        if kind is TradeInCreditKind.PERCENT_CREDIT:
            if self.percent is None:
                raise RulesDataError("PERCENT_CREDIT requires percent")
            object.__setattr__(self, "percent", validate_rate(self.percent, "percent"))
        elif self.percent is not None:
            raise RulesDataError(f"{kind.value} does not take percent")

    @classmethod
    def none(cls) -> "TradeInCreditPolicy":
        return cls(TradeInCreditKind.NONE)

    @classmethod
    def full_credit(cls) -> "TradeInCreditPolicy":
        return cls(TradeInCreditKind.FULL_CREDIT)

    @classmethod
    def capped(cls, cap_amount) -> "TradeInCreditPolicy":
        return cls(TradeInCreditKind.PARTIAL_CREDIT_CAPPED, cap_amount=cap_amount)

    @classmethod
    def tax_on_difference(cls) -> "TradeInCreditPolicy":
        return cls(TradeInCreditKind.TAX_ON_DIFFERENCE)

    @classmethod
    def percent_credit(cls, percent) -> "TradeInCreditPolicy":
        return cls(TradeInCreditKind.PERCENT_CREDIT, percent=percent)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.cap_amount is not None:
            data["cap_amount"] = format(self.cap_amount, "f")
        if self.percent is not None:
            data["percent"] = format(self.percent, "f")
        return data


def trade_in_credit(policy: TradeInCreditPolicy, trade_in_value: Decimal) -> tuple[Decimal, str | None]:
    """Credit granted for a trade-in, with the narrative line for audit text."""
    if trade_in_value <= ZERO:
        return ZERO, None
    match policy.kind:
        case TradeInCreditKind.NONE:
            return ZERO, "Trade-in does not reduce the taxable amount in this jurisdiction"
        case TradeInCreditKind.FULL_CREDIT:
            return trade_in_value, f"Full trade-in credit of {format_usd(trade_in_value)} applied"
        case TradeInCreditKind.PARTIAL_CREDIT_CAPPED:
            cap = policy.cap_amount
            if trade_in_value > cap:
                return cap, (
                    f"Trade-in credit capped at {format_usd(cap)} "
                    f"(trade-in value {format_usd(trade_in_value)})"
                )
            return trade_in_value, f"Trade-in credit of {format_usd(trade_in_value)} applied (cap {format_usd(cap)})"
        case TradeInCreditKind.TAX_ON_DIFFERENCE:
            return trade_in_value, (
                f"Tax charged on the difference between price and trade-in "
                f"({format_usd(trade_in_value)})"
            )
        case TradeInCreditKind.PERCENT_CREDIT:
            credit = to_money(trade_in_value * policy.percent)
            return credit, (
                f"Trade-in credit of {format_percent(policy.percent)} of "
                f"{format_usd(trade_in_value)} = {format_usd(credit)}"
            )
        case _:
            assert_never(policy.kind)


def rebate_deduction(
    taxability: RebateTaxability, manufacturer: Decimal, dealer: Decimal
) -> tuple[Decimal, str | None]:
    """Amount of rebates that reduces the taxable base."""
    match taxability:
        case RebateTaxability.ALL_TAXABLE:
            deduction = ZERO
        case RebateTaxability.MANUFACTURER_EXEMPT:
            deduction = manufacturer
        case RebateTaxability.ALL_EXEMPT:
            deduction = manufacturer + dealer
        case _:
            assert_never(taxability)
    if deduction > ZERO:
        return deduction, f"Non-taxable rebates of {format_usd(deduction)} deducted"
    if manufacturer + dealer > ZERO:
        return ZERO, "Rebates are taxable in this jurisdiction"
    return ZERO, None


def applicable_rates(rate_set: TaxRateSet, scheme: VehicleTaxScheme) -> tuple[TaxRateSet, str | None]:
    """Rate set actually charged on a vehicle under the jurisdiction's scheme."""
    match scheme:
        case VehicleTaxScheme.STATE_PLUS_LOCAL:
            return rate_set, None
        case VehicleTaxScheme.STATE_ONLY:
            note = None
            if rate_set.local_rate > ZERO:
                note = "Vehicle sales are taxed at the state rate only; local rates do not apply"
            return TaxRateSet(state_rate=rate_set.state_rate), note
        case _:
            assert_never(scheme)


def reciprocity_credit(
    policy: ReciprocityPolicy, origin_tax_paid: Decimal | None, tax_due: Decimal, origin_state: str | None = None
) -> tuple[Decimal, str | None]:
    """Credit for tax paid elsewhere, never more than the tax due here."""
    if origin_tax_paid is None or origin_tax_paid <= ZERO:
        return ZERO, None
    paid_in = origin_state or "another state"
    match policy:
        case ReciprocityPolicy.NONE:
            return ZERO, f"No credit for tax paid in {paid_in} in this jurisdiction"
        case ReciprocityPolicy.CREDIT_UP_TO_TAX:
            credit = min(to_money(origin_tax_paid), tax_due)
            if credit < origin_tax_paid:
                return credit, (
                    f"Credit for tax paid in {paid_in} limited to {format_usd(credit)} "
                    f"of {format_usd(origin_tax_paid)}"
                )
            return credit, f"Credit of {format_usd(credit)} for tax paid in {paid_in}"
        case _:
            assert_never(policy)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class JurisdictionRules:
    """One published rules version: the rate set plus every policy knob."""

    version: str
    effective_from: datetime
    rate_set: TaxRateSet
    trade_in_policy: TradeInCreditPolicy = field(default_factory=TradeInCreditPolicy.full_credit)
    rebate_taxability: RebateTaxability = RebateTaxability.MANUFACTURER_EXEMPT
    vehicle_tax_scheme: VehicleTaxScheme = VehicleTaxScheme.STATE_PLUS_LOCAL
    reciprocity: ReciprocityPolicy = ReciprocityPolicy.NONE
    doc_fee_taxable: bool = True
    doc_fee_cap: Decimal | None = None
    tax_cap: Decimal | None = None
    title_fee: Decimal = ZERO
    registration_fee: Decimal = ZERO
    luxury_threshold: Decimal | None = None
    luxury_rate: Decimal | None = None
    ev_fee: Decimal | None = None
    ev_incentive: Decimal | None = None
    effective_to: datetime | None = None
    bundle_hash: str = ""

    def __post_init__(self):
        object.__setattr__(self, "effective_from", as_utc(self.effective_from))
        if self.effective_to is not None:
            object.__setattr__(self, "effective_to", as_utc(self.effective_to))
        object.__setattr__(self, "rebate_taxability", RebateTaxability(self.rebate_taxability))
        object.__setattr__(self, "vehicle_tax_scheme", VehicleTaxScheme(self.vehicle_tax_scheme))
        object.__setattr__(self, "reciprocity", ReciprocityPolicy(self.reciprocity))
        for name in ("title_fee", "registration_fee"):
            object.__setattr__(self, name, validate_non_negative(getattr(self, name), name))
        for name in ("doc_fee_cap", "tax_cap", "luxury_threshold", "ev_fee", "ev_incentive"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, validate_non_negative(value, name))
        if self.luxury_rate is not None:
            object.__setattr__(self, "luxury_rate", validate_rate(self.luxury_rate, "luxury_rate"))

    @property
    def rules_version(self) -> str:
        if not self.bundle_hash:
            return self.version
        return f"{self.version}+{self.bundle_hash[:12]}"

    def is_effective(self, as_of: datetime) -> bool:
        """effective_from <= as_of < effective_to (open-ended when effective_to is None)."""
        at = as_utc(as_of)
        if at < self.effective_from:
            return False
        return self.effective_to is None or at < self.effective_to


def select_effective_rules(versions, as_of: datetime) -> JurisdictionRules:
    """Pick the version in force at ``as_of``; the latest effective_from wins."""
    candidates = [v for v in versions if v.is_effective(as_of)]
    if not candidates:
        raise RulesNotFoundError(f"No rules version effective at {as_utc(as_of).isoformat()}")
    return max(candidates, key=lambda v: v.effective_from)


# Bundle parsing

_RATE_KEYS = {
    "state": "state_rate",
    "county": "county_rate",
    "city": "city_rate",
    "special_district": "special_district_rate",
}


def _bundle_value(section: dict, key: str, guard, required: bool = False):
    value = section.get(key)
    if value is None:
        if required:
            raise RulesDataError(f"Rules bundle is missing '{key}'")
        return None
    try:
        return guard(value, key)
    except InputValidationError as e:
        raise RulesDataError(f"Rules bundle field '{key}': {e.message}") from e


def _bundle_enum(bundle: dict, key: str, default: Enum) -> Enum:
    raw = bundle.get(key, default.value)
    try:
        return type(default)(raw)
    except ValueError:
        raise RulesDataError(f"Unknown {key.replace('_', ' ')}: {raw!r}") from None


def rate_set_from_bundle(rates: dict) -> TaxRateSet:
    """Missing local rates default to zero and flag the rate set."""
    values = {}
    missing = False
    for key, attr in _RATE_KEYS.items():
        value = _bundle_value(rates, key, validate_rate, required=key == "state")
        if value is None:
            missing = True
            value = ZERO
        values[attr] = value
    return TaxRateSet(**values, local_rates_missing=missing)


def trade_in_policy_from_bundle(data: dict | None) -> TradeInCreditPolicy:
    if data is None:
        return TradeInCreditPolicy.full_credit()
    try:
        kind = TradeInCreditKind(data.get("type"))
    except ValueError:
        raise RulesDataError(f"Unknown trade-in credit policy: {data.get('type')!r}") from None
    return TradeInCreditPolicy(
        kind,
        cap_amount=_bundle_value(data, "cap_amount", validate_non_negative),
        percent=_bundle_value(data, "percent", validate_rate),
    )


def rules_from_bundle(
    bundle: dict,
    *,
    version: str,
    effective_from: datetime,
    effective_to: datetime | None = None,
    bundle_hash: str | None = None,
) -> JurisdictionRules:
    """Build JurisdictionRules from a stored bundle. Unknown policies are errors."""
    if "rates" not in bundle:
        raise RulesDataError("Rules bundle is missing 'rates'")
    luxury = bundle.get("luxury") or {}
    ev = bundle.get("ev") or {}
    return JurisdictionRules(
        version=version,
        effective_from=effective_from,
        effective_to=effective_to,
        rate_set=rate_set_from_bundle(bundle["rates"]),
        trade_in_policy=trade_in_policy_from_bundle(bundle.get("trade_in_policy")),
        rebate_taxability=_bundle_enum(bundle, "rebate_taxability", RebateTaxability.MANUFACTURER_EXEMPT),
        vehicle_tax_scheme=_bundle_enum(bundle, "vehicle_tax_scheme", VehicleTaxScheme.STATE_PLUS_LOCAL),
        reciprocity=_bundle_enum(bundle, "reciprocity", ReciprocityPolicy.NONE),
        doc_fee_taxable=bool(bundle.get("doc_fee_taxable", True)),
        doc_fee_cap=_bundle_value(bundle, "doc_fee_cap", validate_non_negative),
        tax_cap=_bundle_value(bundle, "tax_cap", validate_non_negative),
        title_fee=_bundle_value(bundle, "title_fee", validate_non_negative) or ZERO,
        registration_fee=_bundle_value(bundle, "registration_fee", validate_non_negative) or ZERO,
        luxury_threshold=_bundle_value(luxury, "threshold", validate_non_negative),
        luxury_rate=_bundle_value(luxury, "rate", validate_rate),
        ev_fee=_bundle_value(ev, "fee", validate_non_negative),
        ev_incentive=_bundle_value(ev, "incentive", validate_non_negative),
        bundle_hash=bundle_hash or compute_bundle_hash(bundle),
    )
