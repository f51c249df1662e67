import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from settlement.models.commission import CommissionStatus
from tests.conftest import create_commission

pytestmark = pytest.mark.api


@pytest.fixture
def approved_balance(db_session: Session):
    return [create_commission(db_session, amount=Decimal("20.00")) for _ in range(3)]


def test_payout_lifecycle(client: TestClient, approved_balance):
    response = client.post("/api/v1/payouts/create", json={"recipient_id": "affiliate_anna", "destination_account": "acct_anna"})
    assert response.status_code == 201
    payout = response.json()
    assert payout["status"] == "PENDING"
    assert Decimal(payout["total_amount"]) == Decimal("60.00")
    assert payout["commission_count"] == 3

    response = client.post(f"/api/v1/payouts/{payout['id']}/process")
    assert response.status_code == 200
    assert response.json()["status"] == "PROCESSING"
    assert response.json()["transfer_ref"].startswith("tr_mock_")

    response = client.post(f"/api/v1/payouts/{payout['id']}/complete", json={"external_payout_ref": "po_123"})
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"

    detail = client.get(f"/api/v1/payouts/{payout['id']}").json()
    assert len(detail["commissions"]) == 3
    assert all(c["status"] == "PAID" for c in detail["commissions"])

    stats = client.get("/api/v1/payouts/stats").json()
    assert stats["total_payouts"] == 1
    assert Decimal(stats["total_paid_out"]) == Decimal("60.00")


def test_create_payout_errors(client: TestClient, db_session: Session):
    response = client.post("/api/v1/payouts/create", json={"recipient_id": "nobody", "destination_account": "acct"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "NO_COMMISSIONS"

    create_commission(db_session, amount=Decimal("10.00"))
    response = client.post("/api/v1/payouts/create", json={"recipient_id": "affiliate_anna", "destination_account": "acct"})
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "BELOW_MINIMUM"
    assert detail["details"]["minimum_payout"] == "50"


def test_fail_and_retry(client: TestClient, db_session: Session, approved_balance):
    payout_id = client.post(
        "/api/v1/payouts/create", json={"recipient_id": "affiliate_anna", "destination_account": "acct_anna"}
    ).json()["id"]

    response = client.post(f"/api/v1/payouts/{payout_id}/complete", json={})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_STATUS"

    response = client.post(f"/api/v1/payouts/{payout_id}/fail", json={"reason": "Bank rejected"})
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"
    for commission in approved_balance:
        db_session.refresh(commission)
        assert commission.status == CommissionStatus.APPROVED
        assert commission.payout_id is None

    eligible = client.get("/api/v1/payouts/eligible").json()
    assert [b["recipient_id"] for b in eligible] == ["affiliate_anna"]

    response = client.post("/api/v1/payouts/create", json={"recipient_id": "affiliate_anna", "destination_account": "acct_anna"})
    assert response.status_code == 201

    listed = client.get("/api/v1/payouts/", params={"recipient_id": "affiliate_anna"}).json()
    assert [p["status"] for p in listed] == ["PENDING", "FAILED"]


def test_failing_a_completed_payout_keeps_commissions_paid(client: TestClient, approved_balance):
    payout_id = client.post(
        "/api/v1/payouts/create", json={"recipient_id": "affiliate_anna", "destination_account": "acct_anna"}
    ).json()["id"]
    client.post(f"/api/v1/payouts/{payout_id}/process")
    client.post(f"/api/v1/payouts/{payout_id}/complete", json={})

    response = client.post(f"/api/v1/payouts/{payout_id}/fail", json={"reason": "Chargeback"})
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"
    detail = client.get(f"/api/v1/payouts/{payout_id}").json()
    assert detail["commissions"] == []
    assert client.get("/api/v1/payouts/eligible").json() == []


def test_unknown_payout(client: TestClient):
    response = client.get("/api/v1/payouts/999")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"
