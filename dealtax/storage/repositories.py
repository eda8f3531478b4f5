"""Repository functions for jurisdictions, rule versions and the audit log."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealtax.engine.audit import AuditRecord
from dealtax.engine.rules import JurisdictionRules, rules_from_bundle
from dealtax.engine.types import Jurisdiction
from dealtax.models import JurisdictionRuleVersion, TaxAuditLog, TaxJurisdiction
from dealtax.utils.canonical import canonical_json


async def get_jurisdiction_by_postal_code(db: AsyncSession, postal_code: str) -> TaxJurisdiction | None:
    """Find jurisdiction by five-digit postal code."""
    result = await db.execute(
        select(TaxJurisdiction).where(TaxJurisdiction.postal_code == postal_code)
    )
    return result.scalar_one_or_none()


async def list_rule_versions(db: AsyncSession, jurisdiction_id: str) -> list[JurisdictionRuleVersion]:
    """All published versions for a jurisdiction, newest effective_from first."""
    result = await db.execute(
        select(JurisdictionRuleVersion)
        .where(JurisdictionRuleVersion.jurisdiction_id == jurisdiction_id)
        .order_by(JurisdictionRuleVersion.effective_from.desc())
    )
    return list(result.scalars().all())


async def create_audit_record(db: AsyncSession, record: AuditRecord) -> TaxAuditLog:
    """Insert an audit row. Rows are never updated or deleted."""
    row = TaxAuditLog(
        calculation_id=record.calculation_id,
        deal_id=record.deal_id,
        dealership_id=record.dealership_id,
        calculation_type=record.calculation_type,
        calculated_by=record.calculated_by,
        calculated_at=record.calculated_at,
        engine_version=record.engine_version,
        rules_version=record.rules_version,
        rules_hash=record.rules_hash,
        inputs_hash=record.inputs_hash,
        inputs_json=record.inputs_snapshot,
        outputs_json=record.outputs_snapshot,
    )
    db.add(row)
    await db.flush()
    return row


async def list_audit_records(db: AsyncSession, deal_id: str) -> list[TaxAuditLog]:
    """Audit history for a deal, oldest first."""
    result = await db.execute(
        select(TaxAuditLog)
        .where(TaxAuditLog.deal_id == deal_id)
        .order_by(TaxAuditLog.calculated_at.asc())
    )
    return list(result.scalars().all())


def jurisdiction_from_row(row: TaxJurisdiction) -> Jurisdiction:
    return Jurisdiction(
        postal_code=row.postal_code,
        state=row.state,
        county=row.county,
        city=row.city,
        special_district=row.special_district,
        jurisdiction_id=str(row.jurisdiction_id),
    )


def rules_from_row(row: JurisdictionRuleVersion) -> JurisdictionRules:
    return rules_from_bundle(
        row.bundle_json,
        version=row.version,
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        bundle_hash=row.bundle_hash,
    )


def audit_record_from_row(row: TaxAuditLog) -> AuditRecord:
    """Rebuild the record; JSONB snapshots are re-serialized canonically."""
    return AuditRecord(
        calculation_id=str(row.calculation_id),
        calculated_at=row.calculated_at,
        calculated_by=row.calculated_by,
        engine_version=row.engine_version,
        rules_version=row.rules_version,
        inputs_json=canonical_json(row.inputs_json),
        outputs_json=canonical_json(row.outputs_json),
        inputs_hash=row.inputs_hash,
        calculation_type=row.calculation_type,
        deal_id=row.deal_id,
        dealership_id=row.dealership_id,
        rules_hash=row.rules_hash,
    )


class SqlJurisdictionSource:
    """JurisdictionSource backed by the tax_jurisdictions tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_jurisdiction(self, postal_code: str) -> Jurisdiction | None:
        row = await get_jurisdiction_by_postal_code(self.db, postal_code)
        return jurisdiction_from_row(row) if row else None

    async def list_rule_versions(self, jurisdiction: Jurisdiction) -> list[JurisdictionRules]:
        rows = await list_rule_versions(self.db, jurisdiction.jurisdiction_id)
        return [rules_from_row(row) for row in rows]


class SqlAuditLog:
    """AuditLog backed by the insert-only tax_audit_log table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, record: AuditRecord) -> None:
        await create_audit_record(self.db, record)

    async def history(self, deal_id: str) -> list[AuditRecord]:
        rows = await list_audit_records(self.db, deal_id)
        return [audit_record_from_row(row) for row in rows]
