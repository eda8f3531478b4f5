"""Tax jurisdiction and published rule version models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from dealtax.database import Base


class TaxJurisdiction(Base):
    """Postal code to state/county/city/district mapping."""

    __tablename__ = "tax_jurisdictions"

    jurisdiction_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    postal_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    county: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_district: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class JurisdictionRuleVersion(Base):
    """Published rates + rules bundle with an effective window."""

    __tablename__ = "jurisdiction_rule_versions"

    version_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    jurisdiction_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tax_jurisdictions.jurisdiction_id"), nullable=False
    )
    version: Mapped[str] = mapped_column(Text, nullable=False)  # semver
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    effective_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    bundle_hash: Mapped[str] = mapped_column(Text, nullable=False)
    bundle_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
