"""Post-calculation validation.

Every check is re-derived from the result and the rules; flags stored on the
result are never trusted. Error severity blocks a calculation from being final;
warnings are informational.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from dealtax.engine.decimal_math import ONE, ZERO, format_percent, format_usd
from dealtax.engine.errors import ValidationCheckFailedError
from dealtax.engine.rules import JurisdictionRules
from dealtax.engine.sales_tax import DEFAULT_HIGH_RATE_THRESHOLD
from dealtax.engine.types import TaxCalculationResult

ERROR = "error"
CRITICAL = "critical"
WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    severity: str
    field: str | None = None


@dataclass(frozen=True)
class TaxCalculationValidation:
    breakdown_sum_matches_total: bool
    sum_difference: Decimal
    rate_within_bounds: bool
    taxable_amount_valid: bool
    jurisdiction_current: bool
    totals_consistent: bool
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def all_checks_pass(self) -> bool:
        return (
            self.breakdown_sum_matches_total
            and self.rate_within_bounds
            and self.taxable_amount_valid
            and self.jurisdiction_current
            and self.totals_consistent
            and not self.errors
        )

    @property
    def error_messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationCheckFailedError(list(self.errors))


def _rate_in_bounds(value: Decimal | None) -> bool:
    return value is None or ZERO <= value <= ONE


def validate_tax_calculation(
    result: TaxCalculationResult,
    rules: JurisdictionRules,
    *,
    calculated_at: datetime,
    high_rate_threshold: Decimal = DEFAULT_HIGH_RATE_THRESHOLD,
) -> TaxCalculationValidation:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    line_sum = sum((line.amount for line in result.breakdown), ZERO)
    difference = result.total_tax - line_sum
    sum_matches = difference == ZERO
    if not sum_matches:
        errors.append(
            ValidationIssue(
                "BREAKDOWN_MISMATCH",
                f"Tax breakdown sums to {format_usd(line_sum)} but total tax is "
                f"{format_usd(result.total_tax)}",
                CRITICAL,
                "breakdown",
            )
        )

    rate_set = rules.rate_set
    rates = [
        rate_set.state_rate,
        rate_set.county_rate,
        rate_set.city_rate,
        rate_set.special_district_rate,
        rules.luxury_rate,
    ]
    rates.extend(line.rate for line in result.breakdown)
    rates_ok = all(_rate_in_bounds(rate) for rate in rates)
    if not rates_ok:
        errors.append(ValidationIssue("INVALID_RATE", "A tax rate is outside [0, 1]", ERROR, "rates"))

    taxable_ok = result.taxable_amount >= ZERO
    if not taxable_ok:
        errors.append(
            ValidationIssue(
                "NEGATIVE_TAXABLE",
                f"Taxable amount cannot be negative: {format_usd(result.taxable_amount)}",
                ERROR,
                "taxable_amount",
            )
        )

    current = rules.is_effective(calculated_at)
    if not current:
        errors.append(
            ValidationIssue(
                "JURISDICTION_EXPIRED",
                f"Rules version {rules.rules_version} is not effective at {calculated_at.isoformat()}",
                ERROR,
                "rules_version",
            )
        )

    totals_ok = result.total_tax_and_fees == result.total_tax + result.total_fees
    if not totals_ok:
        errors.append(
            ValidationIssue(
                "TOTALS_INCONSISTENT",
                "Total tax and fees does not equal total tax plus total fees",
                ERROR,
                "total_tax_and_fees",
            )
        )

    if result.effective_tax_rate > high_rate_threshold:
        warnings.append(
            ValidationIssue(
                "HIGH_TAX_RATE",
                f"Effective tax rate {format_percent(result.effective_tax_rate)} is unusually high",
                WARNING,
                "effective_tax_rate",
            )
        )

    return TaxCalculationValidation(
        breakdown_sum_matches_total=sum_matches,
        sum_difference=difference,
        rate_within_bounds=rates_ok,
        taxable_amount_valid=taxable_ok,
        jurisdiction_current=current,
        totals_consistent=totals_ok,
        errors=tuple(errors),
        warnings=tuple(warnings),
    )
