import re
from decimal import Decimal
from unittest import mock

import pytest
import stripe
from sqlalchemy.orm import Session

from settlement.core import audit, transfers
from settlement.core.agreements import create_agreement
from settlement.core.exceptions import TransferError
from settlement.crud import crud_audit
from settlement.schemas.agreement import RegionalAgreementCreate

pytestmark = pytest.mark.core


def test_record_audit_writes_entry(db_session: Session):
    audit.record_audit(
        db_session, action="REFUND", resource="commission", resource_id="ORD-1",
        new_value={"amount": Decimal("12.50")}, metadata={"reason": "test"},
    )
    entries = crud_audit.get_audit_logs(db_session, resource="commission")
    assert len(entries) == 1
    assert entries[0].resource_id == "ORD-1"
    assert entries[0].metadata_json == {"reason": "test"}


def test_audit_failure_never_aborts_the_operation(db_session: Session):
    agreement_in = RegionalAgreementCreate(
        partner_id="partner_benelux", partner_name="Benelux BV", region_codes=["NL", "BE"],
        region_name="Benelux", commission_percent=Decimal("25"),
    )
    with mock.patch.object(audit.crud_audit, "create_audit_log", side_effect=RuntimeError("audit table down")):
        agreement = create_agreement(db_session, agreement_in)

    assert agreement.id is not None
    assert crud_audit.get_audit_logs(db_session) == []


def test_simulated_processor_returns_mock_reference():
    reference = transfers.SimulatedTransferProcessor().initiate_transfer(Decimal("60.00"), "EUR", "acct_1")
    assert re.fullmatch(r"tr_mock_\d+", reference)


def test_stripe_processor_sends_cents(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", "sk_test_configured")
    created = mock.Mock(id="tr_stripe_1")
    with mock.patch.object(stripe.Transfer, "create", return_value=created) as create:
        reference = transfers.StripeTransferProcessor().initiate_transfer(
            Decimal("60.05"), "EUR", "acct_1", {"payout_id": "7"}
        )
    assert reference == "tr_stripe_1"
    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 6005
    assert kwargs["currency"] == "eur"
    assert kwargs["destination"] == "acct_1"
    assert kwargs["transfer_group"] == "payout_7"
    assert kwargs["idempotency_key"] == "payout_7_6005"


def test_stripe_transfer_without_payout_has_no_idempotency_key(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", "sk_test_configured")
    with mock.patch.object(stripe.Transfer, "create", return_value=mock.Mock(id="tr_stripe_2")) as create:
        transfers.StripeTransferProcessor().initiate_transfer(Decimal("10"), "EUR", "acct_1")
    assert "idempotency_key" not in create.call_args.kwargs


def test_stripe_errors_become_transfer_errors(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", "sk_test_configured")
    error = stripe.InvalidRequestError("No such destination", param="destination")
    with mock.patch.object(stripe.Transfer, "create", side_effect=error):
        with pytest.raises(TransferError):
            transfers.StripeTransferProcessor().initiate_transfer(Decimal("60"), "EUR", "acct_missing")


def test_stripe_processor_requires_api_key(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)
    with pytest.raises(TransferError):
        transfers.StripeTransferProcessor().initiate_transfer(Decimal("60"), "EUR", "acct_1")


def test_processor_selection_follows_config(monkeypatch):
    monkeypatch.setattr(transfers.config, "ENABLE_STRIPE_PAYOUTS", False)
    assert isinstance(transfers.get_transfer_processor(), transfers.SimulatedTransferProcessor)
    monkeypatch.setattr(transfers.config, "ENABLE_STRIPE_PAYOUTS", True)
    assert isinstance(transfers.get_transfer_processor(), transfers.StripeTransferProcessor)
