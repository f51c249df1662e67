import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.conftest import create_active_agreement

pytestmark = pytest.mark.api

AGREEMENT = {
    "partner_id": "partner_dach",
    "partner_name": "DACH Distribution GmbH",
    "region_codes": ["de", "AT", "CH"],
    "region_name": "DACH",
    "commission_percent": "30",
    "valid_from": "2020-01-01T00:00:00",
}


def test_agreement_lifecycle(client: TestClient):
    response = client.post("/api/v1/regional-agreements/", json=AGREEMENT)
    assert response.status_code == 201
    agreement = response.json()
    assert agreement["status"] == "PENDING"
    assert agreement["region_codes"] == ["DE", "AT", "CH"]

    # Not active until signed
    assert client.get("/api/v1/regional-agreements/by-region/DE").status_code == 404

    response = client.post(f"/api/v1/regional-agreements/{agreement['id']}/sign", json={"signed_by": "Max Mustermann"})
    assert response.status_code == 200
    assert response.json()["status"] == "ACTIVE"
    assert response.json()["contract_version"] == "1.0"

    response = client.post(f"/api/v1/regional-agreements/{agreement['id']}/sign", json={"signed_by": "Max Mustermann"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ALREADY_SIGNED"

    response = client.get("/api/v1/regional-agreements/by-region/ch")
    assert response.status_code == 200
    assert response.json()["id"] == agreement["id"]

    response = client.put(f"/api/v1/regional-agreements/{agreement['id']}", json={"commission_percent": "25", "notes": "Renegotiated"})
    assert response.status_code == 200
    assert Decimal(response.json()["commission_percent"]) == Decimal("25")

    response = client.delete(f"/api/v1/regional-agreements/{agreement['id']}")
    assert response.status_code == 200
    assert response.json()["status"] == "TERMINATED"
    assert response.json()["valid_until"] is not None
    assert client.get("/api/v1/regional-agreements/by-region/DE").status_code == 404


def test_overlapping_regions_conflict(client: TestClient):
    assert client.post("/api/v1/regional-agreements/", json=AGREEMENT).status_code == 201
    response = client.post(
        "/api/v1/regional-agreements/",
        json={**AGREEMENT, "partner_id": "partner_alps", "region_codes": ["CH", "LI"], "region_name": "Alps"},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "REGION_CONFLICT"
    assert response.json()["detail"]["details"]["region_codes"] == ["CH"]


def test_list_agreements(client: TestClient, db_session: Session):
    create_active_agreement(db_session)
    assert len(client.get("/api/v1/regional-agreements/", params={"status": "ACTIVE"}).json()) == 1
    assert client.get("/api/v1/regional-agreements/", params={"region": "FR"}).json() == []
    assert client.get("/api/v1/regional-agreements/12345").status_code == 404


def test_revenue_tracking_and_monthly_payouts(client: TestClient, db_session: Session):
    create_active_agreement(db_session)

    response = client.post(
        "/api/v1/regional-revenue/membership",
        json={
            "external_payment_id": "pi_m1", "amount": "29.00", "payment_date": "2024-03-10T10:00:00",
            "customer_id": "cust_1", "membership_type": "PREMIUM", "billing_country": "de",
        },
    )
    assert response.status_code == 201
    assert Decimal(response.json()["partner_provision"]) == Decimal("8.70")
    assert Decimal(response.json()["platform_amount"]) == Decimal("20.30")

    response = client.post(
        "/api/v1/regional-revenue/membership",
        json={
            "external_payment_id": "pi_m2", "amount": "29.00", "payment_date": "2024-03-10T10:00:00",
            "customer_id": "cust_2", "membership_type": "PREMIUM", "billing_country": "US",
        },
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NO_ACTIVE_AGREEMENT"

    response = client.post(
        "/api/v1/regional-revenue/transaction",
        json={
            "external_payment_id": "pi_t1", "amount": "100.00", "payment_date": "2024-03-12T10:00:00",
            "tenant_id": "tenant_1", "transaction_type": "WORKSHOP", "region_id": "DACH", "partner_id": "partner_dach",
        },
    )
    assert response.status_code == 201
    assert Decimal(response.json()["transaction_fee"]) == Decimal("4.40")

    fee = client.get("/api/v1/regional-revenue/fee", params={"amount": "100"}).json()
    assert Decimal(fee["partner_provision"]) == Decimal("1.32")
    assert Decimal(fee["platform_amount"]) == Decimal("3.08")

    response = client.post("/api/v1/regional-payouts/create-monthly", json={"period": "2024-03"})
    assert response.status_code == 201
    result = response.json()
    assert result["count"] == 1
    payout_id = result["payout_ids"][0]

    assert client.post("/api/v1/regional-payouts/create-monthly", json={"period": "2024-03"}).json()["count"] == 0
    assert client.post("/api/v1/regional-payouts/create-monthly", json={"period": "March"}).status_code == 422

    detail = client.get(f"/api/v1/regional-payouts/{payout_id}").json()
    assert Decimal(detail["total_provision"]) == Decimal("10.02")
    assert len(detail["revenue_records"]) == 2

    response = client.post(f"/api/v1/regional-payouts/{payout_id}/approve", json={"approved_by": "finance"})
    assert response.json()["status"] == "PROCESSING"

    response = client.post(f"/api/v1/regional-payouts/{payout_id}/mark-paid", json={"payment_reference": "SEPA-1"})
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"

    listed = client.get("/api/v1/regional-payouts/", params={"partner_id": "partner_dach", "status": "PAID"}).json()
    assert [p["id"] for p in listed] == [payout_id]

    dashboard = client.get("/api/v1/regional-partners/partner_dach/dashboard").json()
    assert Decimal(dashboard["total_paid"]) == Decimal("10.02")
    assert dashboard["payout_count"] == 1

    revenues = client.get("/api/v1/regional-partners/partner_dach/revenues").json()
    assert [r["external_payment_id"] for r in revenues] == ["pi_t1", "pi_m1"]
    assert all(r["payout_status"] == "PAID" for r in revenues)
    memberships = client.get(
        "/api/v1/regional-partners/partner_dach/revenues", params={"type": "MEMBERSHIP", "period": "2024-03"}
    ).json()
    assert [r["external_payment_id"] for r in memberships] == ["pi_m1"]
    assert client.get("/api/v1/regional-partners/partner_dach/revenues", params={"status": "PENDING"}).json() == []

    history = client.get("/api/v1/regional-partners/partner_dach/payouts").json()
    assert [(p["id"], p["payout_period"]) for p in history] == [(payout_id, "2024-03")]
    assert client.get("/api/v1/regional-partners/unknown/payouts").json() == []

    assert client.get("/api/v1/regional-partners/unknown/dashboard").status_code == 404
    assert client.post("/api/v1/regional-payouts/999/mark-paid", json={"payment_reference": "X"}).status_code == 404
