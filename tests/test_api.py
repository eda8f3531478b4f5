"""API tests with in-memory collaborators."""

from decimal import Decimal

SALES_TAX_URL = "/v1/tax/calculate-sales-tax"
DEAL_TAXES_URL = "/v1/tax/calculate-deal-taxes"


def test_health(client):
    """Health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_calculate_sales_tax(client):
    """CA sale with trade-in: decimal strings, validated, audited."""
    response = client.post(
        SALES_TAX_URL,
        json={"postal_code": "90210", "vehicle_price": "35000", "trade_in_value": "10000", "deal_id": "deal-1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["taxable_amount"] == "25000.00"
    assert body["total_tax"] == "1812.50"
    assert body["state_tax"] == "1812.50"
    assert body["local_tax"] == "0.00"
    assert body["effective_tax_rate"] == "0.0725"
    assert body["breakdown"][0] == {
        "code": "STATE",
        "label": "State sales tax",
        "rate": "0.0725",
        "base": "25000.00",
        "amount": "1812.50",
    }
    assert body["jurisdiction"]["city"] == "Beverly Hills"
    assert body["rules_version"].startswith("1.0.0+")
    assert body["validated"] is True
    assert body["audit_trail"]["calculated_by"] == "system"
    assert body["audit_trail"]["rules_version"] == body["rules_version"]


def test_integer_amounts_are_accepted(client):
    """Integers are exact; only binary floats are refused."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "90210-1234", "vehicle_price": 20000})
    assert response.status_code == 200
    assert response.json()["total_tax"] == "1450.00"


def test_capped_trade_in(client):
    """MI caps the trade-in credit at 2000."""
    response = client.post(
        SALES_TAX_URL, json={"postal_code": "48201", "vehicle_price": "30000", "trade_in_value": "5000"}
    )
    body = response.json()
    assert body["taxable_amount"] == "28000.00"
    assert body["total_tax"] == "1680.00"


def test_historical_calculation_date(client):
    """A past calculation date uses the rules in force at that date."""
    response = client.post(
        SALES_TAX_URL,
        json={
            "postal_code": "48201",
            "vehicle_price": "30000",
            "trade_in_value": "5000",
            "calculation_date": "2023-06-01T00:00:00Z",
        },
    )
    body = response.json()
    assert body["rules_version"].startswith("1.0.0+")
    assert body["taxable_amount"] == "30000.00"
    assert body["total_tax"] == "1800.00"


def test_calculate_deal_taxes(client):
    """Full deal splits vehicle and fee tax and lists the fees."""
    response = client.post(
        DEAL_TAXES_URL,
        json={
            "postal_code": "90210",
            "vehicle_price": "35000",
            "trade_in_value": "10000",
            "doc_fee": "299",
            "products": [
                {"code": "SERVICE_CONTRACT", "name": "Service Contract", "amount": "2500", "taxable": True}
            ],
            "deal_id": "deal-2",
            "user_id": "user-7",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["trade_in_credit"] == "10000.00"
    assert body["total_taxable"] == "27799.00"
    assert body["vehicle_tax"] == "1812.50"
    assert body["fees_tax"] == "202.93"
    assert body["total_tax"] == "2015.43"
    assert body["total_fees"] == "364.00"
    assert body["total_taxes_and_fees"] == "2379.43"
    assert [fee["code"] for fee in body["fees"]] == ["DOC_FEE", "TITLE", "REGISTRATION"]
    assert body["audit_trail"]["calculated_by"] == "user-7"


def test_tax_cap_on_historical_rules(client):
    """SC rules in force during 2024 cap the tax at 500."""
    response = client.post(
        SALES_TAX_URL,
        json={"postal_code": "29201", "vehicle_price": "20000", "calculation_date": "2024-06-01T00:00:00Z"},
    )
    body = response.json()
    assert body["tax_cap_applied"] is True
    assert body["total_tax"] == "500.00"
    assert sum(Decimal(line["amount"]) for line in body["breakdown"]) == Decimal("500.00")


def test_expired_rules(client):
    """No effective rules today is a 404, not a guess."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "29201", "vehicle_price": "20000"})
    assert response.status_code == 404
    assert response.json()["code"] == "RULES_NOT_FOUND"


def test_unknown_jurisdiction(client):
    """Unknown postal codes are 404."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "99999", "vehicle_price": "20000"})
    assert response.status_code == 404
    assert response.json()["code"] == "JURISDICTION_NOT_FOUND"


def test_invalid_postal_code(client):
    """Malformed postal codes are rejected."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "ABC", "vehicle_price": "20000"})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_INPUT"


def test_float_rejected(client):
    """JSON floats never reach the engine."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "90210", "vehicle_price": 35000.5})
    assert response.status_code == 422


def test_negative_price_rejected(client):
    """Negative amounts fail validation with their own code."""
    response = client.post(SALES_TAX_URL, json={"postal_code": "90210", "vehicle_price": "-1"})
    assert response.status_code == 422
    assert response.json()["code"] == "NEGATIVE_AMOUNT"


def test_audit_history(client):
    """Each valid calculation appends one record, oldest first."""
    payload = {"postal_code": "90210", "vehicle_price": "35000", "deal_id": "deal-9"}
    first = client.post(SALES_TAX_URL, json=payload).json()
    second = client.post(SALES_TAX_URL, json=payload).json()

    response = client.get("/v1/tax/audit/deal-9")
    assert response.status_code == 200
    records = response.json()["records"]
    assert [r["calculation_id"] for r in records] == [
        first["audit_trail"]["calculation_id"],
        second["audit_trail"]["calculation_id"],
    ]
    assert records[0]["rules_version"] == records[1]["rules_version"]
    assert records[0]["outputs"]["total_tax"] == "2537.50"
    assert records[0]["inputs"]["request"]["vehicle_price"] == "35000"

    assert client.get("/v1/tax/audit/unknown").json()["records"] == []


def test_get_jurisdiction(client):
    """Jurisdiction lookup shows rates and the effective rules version."""
    response = client.get("/v1/tax/jurisdiction/48201")
    assert response.status_code == 200
    body = response.json()
    assert body["rates"]["state_rate"] == "0.0600"
    assert body["rates"]["total_rate"] == "0.0600"
    assert body["trade_in_policy"] == {"type": "PARTIAL_CREDIT_CAPPED", "cap_amount": "2000.00"}
    assert body["rules_version"].startswith("1.1.0+")
    assert body["vehicle_tax_scheme"] == "STATE_PLUS_LOCAL"
    assert body["reciprocity"] == "NONE"

    response = client.get("/v1/tax/jurisdiction/48201", params={"as_of": "2023-06-01T00:00:00Z"})
    assert response.json()["trade_in_policy"] == {"type": "NONE"}


def test_out_of_state_tax_without_reciprocity(client):
    """Tax paid elsewhere is reported in notes but not credited in CA."""
    response = client.post(
        SALES_TAX_URL,
        json={"postal_code": "90210", "vehicle_price": "10000", "origin_tax_paid": "500", "origin_state": "NV"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["reciprocity_credit"] == "0.00"
    assert body["total_tax"] == "725.00"
    assert any("NV" in note for note in body["notes"])
