import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from settlement.models.commission import CommissionType, CommissionStatus
from tests.conftest import create_active_agreement, create_attribution, create_commission

pytestmark = pytest.mark.api


def order_payload(**overrides):
    payload = {
        "order_id": "ORD-API-1",
        "order_date": "2024-03-15T12:00:00",
        "net_amount": "100.00",
        "is_platform_product": True,
        "customer_id": "cust_api",
        "customer_billing_country": "de",
    }
    payload.update(overrides)
    return payload


def test_ping(client: TestClient):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"message": "pong"}


def test_calculate_previews_without_recording(client: TestClient, db_session: Session):
    create_active_agreement(db_session)
    response = client.post("/api/v1/commissions/calculate", json=order_payload())
    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] == "ORD-API-1"
    assert len(data["line_items"]) == 1
    assert data["line_items"][0]["commission_type"] == "REGIONAL_EXCLUSIVE"
    assert Decimal(data["line_items"][0]["amount"]) == Decimal("30.00")
    assert Decimal(data["net_for_seller"]) == Decimal("70.00")

    response = client.get("/api/v1/commissions/by-order/ORD-API-1")
    assert response.status_code == 404


def test_process_order_and_duplicate(client: TestClient, db_session: Session):
    create_active_agreement(db_session)
    create_attribution(db_session, customer_id="cust_api")

    response = client.post("/api/v1/commissions/process", json=order_payload(seller_partner_id="tenant_1"))
    assert response.status_code == 201
    data = response.json()
    assert [c["commission_type"] for c in data["commissions"]] == [
        "REGIONAL_EXCLUSIVE", "AFFILIATE_FIRST", "PLATFORM_FEE",
    ]
    assert all(c["status"] == "PENDING" for c in data["commissions"])
    assert Decimal(data["calculation"]["net_for_seller"]) == Decimal("48.00")

    response = client.post("/api/v1/commissions/process", json=order_payload(seller_partner_id="tenant_1"))
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DUPLICATE_ORDER"

    response = client.get("/api/v1/commissions/by-order/ORD-API-1")
    assert len(response.json()) == 3


def test_process_order_validation(client: TestClient):
    response = client.post("/api/v1/commissions/process", json=order_payload(net_amount="-5"))
    assert response.status_code == 422
    response = client.post("/api/v1/commissions/process", json=order_payload(customer_billing_country="DEU"))
    assert response.status_code == 422


def test_refund_and_approve_eligible(client: TestClient, db_session: Session):
    create_commission(db_session, order_id="ORD-R", status=CommissionStatus.PENDING)
    create_commission(db_session, order_id="ORD-OLD", status=CommissionStatus.PENDING)

    response = client.post("/api/v1/commissions/refund", json={"order_id": "ORD-R", "reason": "Cancelled"})
    assert response.status_code == 200
    assert response.json()["count"] == 1

    response = client.post("/api/v1/commissions/approve-eligible", json={"now": "2024-05-01T00:00:00"})
    assert response.status_code == 200
    assert response.json()["count"] == 1

    response = client.get("/api/v1/commissions/", params={"status": "APPROVED"})
    assert [c["order_id"] for c in response.json()] == ["ORD-OLD"]


def test_stats_and_pending_payout(client: TestClient, db_session: Session):
    create_commission(db_session, amount=Decimal("30.00"))
    create_commission(db_session, amount=Decimal("25.00"))
    create_commission(db_session, recipient_id="PLATFORM", amount=Decimal("2.00"), commission_type=CommissionType.PLATFORM_FEE)

    stats = client.get("/api/v1/commissions/stats").json()
    assert stats["total_count"] == 3
    assert Decimal(stats["total_amount"]) == Decimal("57.00")

    summary = client.get("/api/v1/commissions/pending-payout").json()
    assert [b["recipient_id"] for b in summary["eligible"]] == ["affiliate_anna"]
    assert [b["recipient_id"] for b in summary["below_minimum"]] == ["PLATFORM"]
    assert Decimal(summary["below_minimum"][0]["missing_amount"]) == Decimal("48.00")
