"""Engine exception hierarchy."""


class DealTaxError(Exception):
    """Base exception for the deal tax engine."""

    code = "DEAL_TAX_ERROR"
    status_code = 500

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InputValidationError(DealTaxError):
    """Input rejected before any computation begins."""

    code = "INVALID_INPUT"
    status_code = 422


class MalformedDecimalError(InputValidationError):
    """Value is not a canonical decimal (includes binary floats)."""

    code = "MALFORMED_DECIMAL"


class NegativeAmountError(InputValidationError):
    code = "NEGATIVE_AMOUNT"


class InvalidRateError(InputValidationError):
    """Rate outside [0, 1]."""

    code = "INVALID_RATE"


class NegativeBaseError(InputValidationError):
    code = "NEGATIVE_BASE"


class DivisionByZeroError(DealTaxError, ZeroDivisionError):
    code = "DIVISION_BY_ZERO"


class JurisdictionNotFoundError(DealTaxError):
    code = "JURISDICTION_NOT_FOUND"
    status_code = 404

    def __init__(self, postal_code: str):
        super().__init__(f"Tax jurisdiction not found for postal code: {postal_code}")
        self.postal_code = postal_code


class RulesNotFoundError(DealTaxError):
    """Jurisdiction exists but no rules version is effective."""

    code = "RULES_NOT_FOUND"
    status_code = 404


class RulesDataError(DealTaxError):
    """Rules bundle is malformed or names an unknown policy."""

    code = "RULES_DATA_ERROR"


class ValidationCheckFailedError(DealTaxError):
    """A recomputed invariant does not hold; the result must not be final."""

    code = "VALIDATION_FAILED"

    def __init__(self, errors: list):
        messages = "; ".join(e.message for e in errors)
        super().__init__(f"Tax calculation validation failed: {messages}")
        self.errors = errors
