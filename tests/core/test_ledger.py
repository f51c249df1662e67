import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session

from settlement.core import ledger
from settlement.core.config import CommissionSettings
from settlement.crud import crud_commission
from settlement.models.commission import CommissionType, CommissionStatus
from tests.conftest import ORDER_DATE, create_commission

pytestmark = pytest.mark.core


def test_approve_eligible_respects_hold_period(db_session: Session, settings):
    due = create_commission(db_session, status=CommissionStatus.PENDING, order_date=ORDER_DATE)
    boundary = create_commission(db_session, status=CommissionStatus.PENDING, order_date=ORDER_DATE + timedelta(days=5))
    fresh = create_commission(db_session, status=CommissionStatus.PENDING, order_date=ORDER_DATE + timedelta(days=6))

    now = ORDER_DATE + timedelta(days=35)
    count = ledger.approve_eligible_commissions(db_session, now, settings=settings)

    assert count == 2
    for commission, expected in ((due, CommissionStatus.APPROVED), (boundary, CommissionStatus.APPROVED), (fresh, CommissionStatus.PENDING)):
        db_session.refresh(commission)
        assert commission.status == expected
    db_session.refresh(due)
    assert due.approved_at == now


def test_approve_eligible_is_idempotent(db_session: Session, settings):
    create_commission(db_session, status=CommissionStatus.PENDING)
    now = ORDER_DATE + timedelta(days=31)
    assert ledger.approve_eligible_commissions(db_session, now, settings=settings) == 1
    assert ledger.approve_eligible_commissions(db_session, now, settings=settings) == 0


def test_approve_eligible_with_custom_hold_period(db_session: Session):
    create_commission(db_session, status=CommissionStatus.PENDING)
    settings = CommissionSettings(hold_period_days=7)
    assert ledger.approve_eligible_commissions(db_session, ORDER_DATE + timedelta(days=8), settings=settings) == 1


def test_refund_reverses_pending_and_approved(db_session: Session):
    pending = create_commission(
        db_session, order_id="ORD-R1", status=CommissionStatus.PENDING, commission_type=CommissionType.REGIONAL_EXCLUSIVE
    )
    approved = create_commission(
        db_session, order_id="ORD-R1", status=CommissionStatus.APPROVED, commission_type=CommissionType.PLATFORM_FEE
    )

    count = ledger.refund_order(db_session, "ORD-R1", "Customer cancelled")

    assert count == 2
    for commission in (pending, approved):
        db_session.refresh(commission)
        assert commission.status == CommissionStatus.REFUNDED
        assert commission.refund_reason == "Customer cancelled"
        assert commission.refunded_at is not None


def test_refund_leaves_paid_commissions_untouched(db_session: Session):
    # Settled funds are not clawed back
    paid = create_commission(db_session, order_id="ORD-R2", status=CommissionStatus.PAID)

    assert ledger.refund_order(db_session, "ORD-R2", "Chargeback") == 0
    db_session.refresh(paid)
    assert paid.status == CommissionStatus.PAID
    assert paid.refunded_at is None


def test_refund_unknown_order_returns_zero(db_session: Session):
    assert ledger.refund_order(db_session, "ORD-DOES-NOT-EXIST", "n/a") == 0


def test_commission_stats_groups_by_status_and_type(db_session: Session):
    create_commission(db_session, amount=Decimal("10.00"), status=CommissionStatus.PENDING)
    create_commission(db_session, amount=Decimal("20.00"), status=CommissionStatus.APPROVED)
    create_commission(
        db_session, amount=Decimal("2.50"), status=CommissionStatus.APPROVED,
        recipient_id="PLATFORM", commission_type=CommissionType.PLATFORM_FEE,
    )

    stats = ledger.commission_stats(db_session)
    assert stats.total_count == 3
    assert stats.total_amount == Decimal("32.50")
    by_status = {b.key: (b.count, b.amount) for b in stats.by_status}
    assert by_status["APPROVED"] == (2, Decimal("22.50"))
    assert by_status["PENDING"] == (1, Decimal("10.00"))
    by_type = {b.key: b.count for b in stats.by_type}
    assert by_type == {"AFFILIATE_RECURRING": 2, "PLATFORM_FEE": 1}

    anna = ledger.commission_stats(db_session, recipient_id="affiliate_anna")
    assert anna.total_count == 2


def test_pending_payout_summary_splits_by_minimum(db_session: Session, settings):
    create_commission(db_session, recipient_id="affiliate_anna", amount=Decimal("30.00"))
    create_commission(db_session, recipient_id="affiliate_anna", amount=Decimal("25.00"))
    create_commission(db_session, recipient_id="affiliate_ben", amount=Decimal("12.00"))
    create_commission(db_session, recipient_id="affiliate_ben", amount=Decimal("99.00"), status=CommissionStatus.PENDING)

    summary = ledger.pending_payout_summary(db_session, settings=settings)

    assert summary.minimum_payout == Decimal("50")
    assert [b.recipient_id for b in summary.eligible] == ["affiliate_anna"]
    assert summary.eligible[0].total_amount == Decimal("55.00")
    assert summary.eligible[0].commission_count == 2
    assert [b.recipient_id for b in summary.below_minimum] == ["affiliate_ben"]
    assert summary.below_minimum[0].missing_amount == Decimal("38.00")


def test_listing_filters_by_recipient_and_status(db_session: Session):
    create_commission(db_session, recipient_id="affiliate_anna", status=CommissionStatus.APPROVED)
    create_commission(db_session, recipient_id="affiliate_anna", status=CommissionStatus.PENDING)
    create_commission(db_session, recipient_id="affiliate_ben", status=CommissionStatus.APPROVED)

    approved = crud_commission.get_commissions(db_session, recipient_id="affiliate_anna", status=CommissionStatus.APPROVED)
    assert len(approved) == 1
    assert crud_commission.count_commissions(db_session, status=CommissionStatus.APPROVED) == 2
    assert crud_commission.get_commissions(db_session, from_date=datetime(2030, 1, 1)) == []
