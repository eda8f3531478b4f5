"""Database models."""

from dealtax.models.audit import TaxAuditLog
from dealtax.models.jurisdiction import JurisdictionRuleVersion, TaxJurisdiction

__all__ = ["TaxJurisdiction", "JurisdictionRuleVersion", "TaxAuditLog"]
