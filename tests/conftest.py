"""Shared fixtures: sample rules, in-memory collaborators, API client."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from dealtax.api.deps import (
    get_audit_log,
    get_calculation_cache,
    get_jurisdiction_cache,
    get_jurisdiction_source,
)
from dealtax.engine.rules import JurisdictionRules, TradeInCreditPolicy
from dealtax.engine.types import Jurisdiction, TaxRateSet
from dealtax.main import app
from dealtax.storage.memory import InMemoryAuditLog, InMemoryJurisdictionSource
from dealtax.utils.cache import TTLCache

EFFECTIVE_FROM = datetime(2024, 1, 1, tzinfo=timezone.utc)

TEST_RECORDS = [
    {
        "postal_code": "90210",
        "state": "CA",
        "county": "Los Angeles",
        "city": "Beverly Hills",
        "rule_versions": [
            {
                "version": "1.0.0",
                "effective_from": "2024-01-01T00:00:00Z",
                "bundle": {
                    "rates": {"state": "0.0725", "county": "0", "city": "0", "special_district": "0"},
                    "trade_in_policy": {"type": "FULL_CREDIT"},
                    "rebate_taxability": "MANUFACTURER_EXEMPT",
                    "doc_fee_taxable": True,
                    "title_fee": "15.00",
                    "registration_fee": "50.00",
                },
            }
        ],
    },
    {
        "postal_code": "48201",
        "state": "MI",
        "county": "Wayne",
        "city": "Detroit",
        "rule_versions": [
            {
                "version": "1.0.0",
                "effective_from": "2020-01-01T00:00:00Z",
                "effective_to": "2024-01-01T00:00:00Z",
                "bundle": {
                    "rates": {"state": "0.06", "county": "0", "city": "0", "special_district": "0"},
                    "trade_in_policy": {"type": "NONE"},
                },
            },
            {
                "version": "1.1.0",
                "effective_from": "2024-01-01T00:00:00Z",
                "bundle": {
                    "rates": {"state": "0.06", "county": "0", "city": "0", "special_district": "0"},
                    "trade_in_policy": {"type": "PARTIAL_CREDIT_CAPPED", "cap_amount": "2000.00"},
                },
            },
        ],
    },
    {
        "postal_code": "29201",
        "state": "SC",
        "rule_versions": [
            {
                "version": "1.0.0",
                "effective_from": "2024-01-01T00:00:00Z",
                "effective_to": "2025-01-01T00:00:00Z",
                "bundle": {
                    "rates": {"state": "0.05", "county": "0", "city": "0", "special_district": "0"},
                    "tax_cap": "500.00",
                },
            }
        ],
    },
]


@pytest.fixture
def ca_jurisdiction():
    return Jurisdiction(postal_code="90210", state="CA", county="Los Angeles", city="Beverly Hills")


@pytest.fixture
def mi_jurisdiction():
    return Jurisdiction(postal_code="48201", state="MI", county="Wayne", city="Detroit")


@pytest.fixture
def ca_rules():
    """7.25% state rate, full trade-in credit, taxable doc fee."""
    return JurisdictionRules(
        version="1.0.0",
        effective_from=EFFECTIVE_FROM,
        rate_set=TaxRateSet(state_rate="0.0725"),
        trade_in_policy=TradeInCreditPolicy.full_credit(),
        doc_fee_taxable=True,
        title_fee="15.00",
        registration_fee="50.00",
        bundle_hash="a" * 64,
    )


@pytest.fixture
def mi_rules():
    """6% state rate, trade-in credit capped at $2,000."""
    return JurisdictionRules(
        version="1.1.0",
        effective_from=EFFECTIVE_FROM,
        rate_set=TaxRateSet(state_rate="0.06"),
        trade_in_policy=TradeInCreditPolicy.capped("2000.00"),
    )


@pytest.fixture
def jurisdiction_records():
    return TEST_RECORDS


@pytest.fixture
def jurisdiction_source(jurisdiction_records):
    return InMemoryJurisdictionSource(jurisdiction_records)


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def client(jurisdiction_source, audit_log):
    """API client with in-memory collaborators and fresh caches."""
    calculation_cache = TTLCache(300)
    jurisdiction_cache = TTLCache(21600)
    app.dependency_overrides[get_jurisdiction_source] = lambda: jurisdiction_source
    app.dependency_overrides[get_audit_log] = lambda: audit_log
    app.dependency_overrides[get_calculation_cache] = lambda: calculation_cache
    app.dependency_overrides[get_jurisdiction_cache] = lambda: jurisdiction_cache
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
