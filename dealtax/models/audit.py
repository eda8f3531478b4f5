"""Calculation audit log model."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from dealtax.database import Base


class TaxAuditLog(Base):
    """Calculation audit records - append-only."""

    __tablename__ = "tax_audit_log"

    calculation_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    deal_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    dealership_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_type: Mapped[str] = mapped_column(String(32), nullable=False)
    calculated_by: Mapped[str] = mapped_column(Text, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    engine_version: Mapped[str] = mapped_column(String(32), nullable=False)
    rules_version: Mapped[str] = mapped_column(Text, nullable=False)
    rules_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    inputs_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    inputs_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
    outputs_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
