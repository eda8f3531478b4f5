"""Initial schema - tax_jurisdictions, jurisdiction_rule_versions, tax_audit_log.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tax_jurisdictions",
        sa.Column("jurisdiction_id", sa.UUID(), primary_key=True),
        sa.Column("postal_code", sa.String(10), nullable=False, unique=True),
        sa.Column("state", sa.String(2), nullable=False),
        sa.Column("county", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("special_district", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "jurisdiction_rule_versions",
        sa.Column("version_id", sa.UUID(), primary_key=True),
        sa.Column(
            "jurisdiction_id",
            sa.UUID(),
            sa.ForeignKey("tax_jurisdictions.jurisdiction_id"),
            nullable=False,
        ),
        sa.Column("version", sa.Text(), nullable=False),
        sa.Column("effective_from", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("effective_to", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("bundle_hash", sa.Text(), nullable=False),
        sa.Column("bundle_json", postgresql.JSONB(), nullable=False),
        sa.Column("published_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=True),
    )
    op.create_unique_constraint(
        "uq_rule_versions_jurisdiction_version",
        "jurisdiction_rule_versions",
        ["jurisdiction_id", "version"],
    )

    op.create_table(
        "tax_audit_log",
        sa.Column("calculation_id", sa.UUID(), primary_key=True),
        sa.Column("deal_id", sa.Text(), nullable=True),
        sa.Column("dealership_id", sa.Text(), nullable=True),
        sa.Column("calculation_type", sa.String(32), nullable=False),
        sa.Column("calculated_by", sa.Text(), nullable=False),
        sa.Column("calculated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("engine_version", sa.String(32), nullable=False),
        sa.Column("rules_version", sa.Text(), nullable=False),
        sa.Column("rules_hash", sa.Text(), nullable=True),
        sa.Column("inputs_hash", sa.String(64), nullable=False),
        sa.Column("inputs_json", postgresql.JSONB(), nullable=False),
        sa.Column("outputs_json", postgresql.JSONB(), nullable=False),
    )
    op.create_index("ix_tax_audit_log_deal_id", "tax_audit_log", ["deal_id"])


def downgrade() -> None:
    op.drop_index("ix_tax_audit_log_deal_id", table_name="tax_audit_log")
    op.drop_table("tax_audit_log")
    op.drop_table("jurisdiction_rule_versions")
    op.drop_table("tax_jurisdictions")
