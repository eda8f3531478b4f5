"""Unit tests for canonical JSON and hashing."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from dealtax.engine.rules import RebateTaxability
from dealtax.utils.canonical import bundle_hash, canonical_json, request_hash


def test_canonical_json_sorts_keys():
    """Canonical JSON sorts keys."""
    obj = {"b": 1, "a": 2}
    assert canonical_json(obj) == '{"a":2,"b":1}'


def test_decimals_are_strings():
    """Decimals keep their exact text, never a float."""
    assert canonical_json({"amount": Decimal("1812.50")}) == '{"amount":"1812.50"}'
    assert canonical_json([Decimal("1E+2")]) == '["100"]'


def test_floats_are_refused():
    """Binary floats have no canonical form."""
    with pytest.raises(TypeError):
        canonical_json({"rate": 0.0725})


def test_enums_dates_and_dataclasses():
    """Enums, dates and dataclasses render structurally."""

    @dataclass(frozen=True)
    class Sample:
        taxability: RebateTaxability
        on: date
        tags: tuple

    rendered = canonical_json(Sample(RebateTaxability.ALL_EXEMPT, date(2025, 1, 2), ("x", 1)))
    assert rendered == '{"on":"2025-01-02","tags":["x",1],"taxability":"ALL_EXEMPT"}'


def test_request_hash_deterministic():
    """Request hash is deterministic and ignores key order."""
    h1 = request_hash({"vehicle_price": "35000", "postal_code": "90210"})
    h2 = request_hash({"postal_code": "90210", "vehicle_price": "35000"})
    assert h1 == h2


def test_bundle_hash():
    """Bundle hash produces consistent hash for rules."""
    bundle = {"rates": {"state": "0.0725"}, "trade_in_policy": {"type": "FULL_CREDIT"}}
    h1 = bundle_hash(bundle)
    h2 = bundle_hash(dict(reversed(list(bundle.items()))))
    assert h1 == h2
    assert len(h1) == 64  # SHA256 hex
    assert bundle_hash({"rates": {"state": "0.0726"}}) != bundle_hash({"rates": {"state": "0.0725"}})
