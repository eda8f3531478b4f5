"""Immutable audit records and the append-only audit log contract."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from dealtax.utils.canonical import canonical_json, request_hash

SALES_TAX = "SALES_TAX"
DEAL_TAXES = "DEAL_TAXES"


@dataclass(frozen=True)
class AuditRecord:
    """Snapshots are stored as canonical JSON text so the record stays immutable."""

    calculation_id: str
    calculated_at: datetime
    calculated_by: str
    engine_version: str
    rules_version: str
    inputs_json: str
    outputs_json: str
    inputs_hash: str
    calculation_type: str = SALES_TAX
    deal_id: str | None = None
    dealership_id: str | None = None
    rules_hash: str | None = None

    @property
    def inputs_snapshot(self) -> dict:
        return json.loads(self.inputs_json)

    @property
    def outputs_snapshot(self) -> dict:
        return json.loads(self.outputs_json)


def build_audit_record(
    *,
    calculation_id: str,
    calculated_at: datetime,
    calculated_by: str,
    engine_version: str,
    rules_version: str,
    inputs: Any,
    outputs: Any,
    calculation_type: str = SALES_TAX,
    deal_id: str | None = None,
    dealership_id: str | None = None,
    rules_hash: str | None = None,
) -> AuditRecord:
    """Pure: the id and clock value come from the caller."""
    return AuditRecord(
        calculation_id=calculation_id,
        calculated_at=calculated_at,
        calculated_by=calculated_by,
        engine_version=engine_version,
        rules_version=rules_version,
        inputs_json=canonical_json(inputs),
        outputs_json=canonical_json(outputs),
        inputs_hash=request_hash(inputs),
        calculation_type=calculation_type,
        deal_id=deal_id,
        dealership_id=dealership_id,
        rules_hash=rules_hash,
    )


class AuditLog(Protocol):
    """Append-only store: append and read, no update or delete."""

    async def append(self, record: AuditRecord) -> None: ...

    async def history(self, deal_id: str) -> list[AuditRecord]: ...
