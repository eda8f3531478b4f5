"""Canonical JSON and hashing utilities."""

import dataclasses
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def _canonical_value(obj: Any) -> Any:
    """Convert value for canonical representation. Decimals stay strings."""
    if obj is None:
        return None
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, Enum):
        return _canonical_value(obj.value)
    if isinstance(obj, Decimal):
        return format(obj, "f")
    if isinstance(obj, int):
        return int(obj)
    if isinstance(obj, float):
        raise TypeError("Binary floats have no canonical form; use Decimal or str")
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: _canonical_value(getattr(obj, f.name)) for f in dataclasses.fields(obj)
        }
    if isinstance(obj, dict):
        return {str(k): _canonical_value(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple)):
        return [_canonical_value(v) for v in obj]
    if isinstance(obj, str):
        return obj
    return str(obj)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON string (sorted keys, consistent formatting)."""
    canonical = _canonical_value(obj)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"))


def request_hash(obj: Any) -> str:
    """Compute SHA256 hash of canonical request JSON."""
    return hashlib.sha256(canonical_json(obj).encode()).hexdigest()


def bundle_hash(bundle: dict) -> str:
    """Compute SHA256 hash of canonical rules bundle JSON."""
    return hashlib.sha256(canonical_json(bundle).encode()).hexdigest()
