"""Commission lifecycle after an order has been processed: hold-period
approval, refund reversal, and reporting over the stored line items."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from settlement.core.audit import record_audit
from settlement.core.config import CommissionSettings, get_settings
from settlement.core.money import utcnow, as_naive_utc, round2
from settlement.core.settlement_batch import ThresholdPolicy
from settlement.crud import crud_commission
from settlement.schemas.commission import (
    AmountBucket,
    CommissionStats,
    PendingPayoutSummary,
    RecipientBalance,
)

logger = logging.getLogger(__name__)


def approve_eligible_commissions(
    db: Session, now: Optional[datetime] = None, *, settings: Optional[CommissionSettings] = None
) -> int:
    """
    Approve every PENDING commission whose order is older than the hold period.
    Safe to run repeatedly; a second run at the same instant approves nothing.
    """
    settings = settings or get_settings()
    now = as_naive_utc(now) if now else utcnow()
    cutoff = now - timedelta(days=settings.hold_period_days)
    try:
        count = crud_commission.approve_due_commissions(db, cutoff=cutoff, approved_at=now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Approved {count} commission(s) with order date on or before {cutoff.isoformat()}")
    if count:
        record_audit(
            db, action="APPROVE_ELIGIBLE", resource="commission",
            metadata={"count": count, "cutoff": cutoff, "hold_period_days": settings.hold_period_days},
        )
    return count


def refund_order(db: Session, order_id: str, reason: str) -> int:
    """
    Reverse the unpaid commissions of an order. Already PAID commissions are
    not clawed back. Returns the number of commissions refunded.
    """
    try:
        count = crud_commission.refund_order_commissions(db, order_id=order_id, reason=reason, refunded_at=utcnow())
        db.commit()
    except Exception:
        db.rollback()
        raise

    if count:
        logger.info(f"Refunded {count} commission(s) for order ID: {order_id}: {reason}")
        record_audit(
            db, action="REFUND", resource="commission", resource_id=order_id,
            metadata={"reason": reason, "count": count},
        )
    else:
        logger.info(f"No refundable commissions for order ID: {order_id}")
    return count


def commission_stats(db: Session, recipient_id: Optional[str] = None) -> CommissionStats:
    totals = crud_commission.get_commission_totals(db, recipient_id=recipient_id)
    return CommissionStats(
        total_count=totals["count"],
        total_amount=round2(totals["amount"]),
        by_status=[
            AmountBucket(key=status.value, count=n, amount=round2(amount))
            for status, n, amount in totals["by_status"]
        ],
        by_type=[
            AmountBucket(key=ctype.value, count=n, amount=round2(amount))
            for ctype, n, amount in totals["by_type"]
        ],
    )


def pending_payout_summary(
    db: Session, recipient_id: Optional[str] = None, *, settings: Optional[CommissionSettings] = None
) -> PendingPayoutSummary:
    """Approved, not yet batched balances per recipient, split by the payout minimum."""
    settings = settings or get_settings()
    policy = ThresholdPolicy(settings.minimum_payout)
    eligible, below = [], []
    for rid, name, count, total in crud_commission.get_unlinked_approved_balances(db, recipient_id=recipient_id):
        total = round2(total)
        balance = RecipientBalance(
            recipient_id=rid,
            recipient_name=name,
            commission_count=count,
            total_amount=total,
            is_eligible=policy.admits(total),
            missing_amount=policy.missing(total),
        )
        (eligible if balance.is_eligible else below).append(balance)
    return PendingPayoutSummary(eligible=eligible, below_minimum=below, minimum_payout=policy.minimum)
