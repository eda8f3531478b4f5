"""In-memory jurisdiction source and audit log (bundled sample data, tests)."""

import json
from datetime import datetime
from pathlib import Path

from dealtax.engine.audit import AuditRecord
from dealtax.engine.rules import JurisdictionRules, rules_from_bundle
from dealtax.engine.types import Jurisdiction

DATA_FILE = Path(__file__).resolve().parent.parent / "data" / "jurisdictions.json"


def load_jurisdiction_records(path: Path = DATA_FILE) -> list[dict]:
    """Raw records: jurisdiction fields plus a ``rule_versions`` list."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def rules_from_record(version: dict) -> JurisdictionRules:
    return rules_from_bundle(
        version["bundle"],
        version=version["version"],
        effective_from=parse_timestamp(version["effective_from"]),
        effective_to=parse_timestamp(version.get("effective_to")),
    )


class InMemoryJurisdictionSource:
    def __init__(self, records: list[dict]):
        self._jurisdictions: dict[str, Jurisdiction] = {}
        self._versions: dict[str, list[JurisdictionRules]] = {}
        for record in records:
            jurisdiction = Jurisdiction(
                postal_code=record["postal_code"],
                state=record["state"],
                county=record.get("county"),
                city=record.get("city"),
                special_district=record.get("special_district"),
                jurisdiction_id=record.get("jurisdiction_id") or record["postal_code"],
            )
            self._jurisdictions[jurisdiction.postal_code] = jurisdiction
            self._versions[jurisdiction.jurisdiction_id] = [
                rules_from_record(v) for v in record.get("rule_versions", [])
            ]

    @classmethod
    def from_bundled_data(cls) -> "InMemoryJurisdictionSource":
        return cls(load_jurisdiction_records())

    async def find_jurisdiction(self, postal_code: str) -> Jurisdiction | None:
        return self._jurisdictions.get(postal_code)

    async def list_rule_versions(self, jurisdiction: Jurisdiction) -> list[JurisdictionRules]:
        return list(self._versions.get(jurisdiction.jurisdiction_id, []))


class InMemoryAuditLog:
    def __init__(self):
        self._records: list[AuditRecord] = []

    async def append(self, record: AuditRecord) -> None:
        self._records.append(record)

    async def history(self, deal_id: str) -> list[AuditRecord]:
        matching = [r for r in self._records if r.deal_id == deal_id]
        return sorted(matching, key=lambda r: r.calculated_at)

    def __len__(self) -> int:
        return len(self._records)
