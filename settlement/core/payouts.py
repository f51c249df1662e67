import logging
from typing import Optional, List

from sqlalchemy.orm import Session

from settlement.core.audit import record_audit
from settlement.core.config import CommissionSettings, get_settings
from settlement.core.exceptions import NotFound, NoEligibleCommissions, InvalidStatus, PayoutConflict
from settlement.core.ledger import pending_payout_summary
from settlement.core.money import utcnow, round2
from settlement.core.settlement_batch import ThresholdPolicy, summarize
from settlement.core.transfers import TransferProcessor, get_transfer_processor
from settlement.crud import crud_commission, crud_payout
from settlement.models.payout import Payout, PayoutStatus
from settlement.schemas.commission import RecipientBalance
from settlement.schemas.payout import PayoutStats, PayoutStatusBucket

logger = logging.getLogger(__name__)


def get_payout_or_404(db: Session, payout_id: int) -> Payout:
    payout = crud_payout.get_payout(db, payout_id)
    if not payout:
        raise NotFound(f"Payout {payout_id} not found", payout_id=payout_id)
    return payout


def _require_status(payout: Payout, expected: PayoutStatus) -> None:
    if payout.status != expected:
        raise InvalidStatus(f"Payout {payout.id}", payout.status.value, expected.value)


def create_payout(
    db: Session, recipient_id: str, destination_account: str, *, settings: Optional[CommissionSettings] = None
) -> Payout:
    """
    Batch every approved, unpaid commission of a recipient into one PENDING
    payout. The payout row and the commission links are committed together.
    """
    settings = settings or get_settings()
    commissions = crud_commission.get_unlinked_approved_commissions(db, recipient_id=recipient_id)
    if not commissions:
        raise NoEligibleCommissions(recipient_id)

    batch = summarize(commissions, amount_of=lambda c: c.amount, date_of=lambda c: c.order_date)
    ThresholdPolicy(settings.minimum_payout).check(batch.total)

    try:
        payout = crud_payout.create_payout(
            db,
            recipient_id=recipient_id,
            recipient_name=commissions[0].recipient_name,
            destination_account=destination_account,
            total_amount=batch.total,
            commission_count=batch.count,
            currency=settings.currency,
            period_start=batch.period_start,
            period_end=batch.period_end,
        )
        claimed = crud_commission.link_commissions_to_payout(
            db, commission_ids=[c.id for c in commissions], payout_id=payout.id
        )
        if claimed != batch.count:
            raise PayoutConflict(
                f"Only {claimed} of {batch.count} commissions could be claimed for recipient {recipient_id}",
                recipient_id=recipient_id,
                claimed=claimed,
                expected=batch.count,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(
        f"Created payout {payout.id} for recipient {recipient_id}: {batch.count} commission(s), total {batch.total} {settings.currency}"
    )
    record_audit(
        db, action="CREATE", resource="payout", resource_id=payout.id,
        new_value={"recipient_id": recipient_id, "total_amount": batch.total, "commission_count": batch.count},
    )
    return payout


def process_payout(db: Session, payout_id: int, *, processor: Optional[TransferProcessor] = None) -> Payout:
    """
    Hand a PENDING payout to the transfer processor. The amount is recomputed
    from the linked commissions that are still APPROVED, so anything refunded
    since batching is not sent. If the processor refuses the transfer, the
    TransferError propagates and the payout stays PENDING.
    """
    payout = get_payout_or_404(db, payout_id)
    _require_status(payout, PayoutStatus.PENDING)
    processor = processor or get_transfer_processor()

    count, total = crud_commission.get_payable_payout_totals(db, payout_id=payout.id)
    if not count:
        raise NoEligibleCommissions(payout.recipient_id)
    total = round2(total)
    if total != payout.total_amount:
        logger.warning(
            f"Payout {payout.id} total adjusted from {payout.total_amount} to {total} "
            f"({payout.commission_count - count} commission(s) refunded since batching)"
        )

    reference = processor.initiate_transfer(
        total,
        payout.currency,
        payout.destination_account,
        {"payout_id": str(payout.id), "recipient_id": payout.recipient_id},
    )
    try:
        crud_payout.update_payout(
            db,
            db_obj=payout,
            update_data={
                "status": PayoutStatus.PROCESSING,
                "transfer_ref": reference,
                "processed_at": utcnow(),
                "total_amount": total,
                "commission_count": count,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Payout {payout.id} is PROCESSING, transfer reference {reference}")
    record_audit(db, action="PROCESS", resource="payout", resource_id=payout.id, new_value={"transfer_ref": reference})
    return payout


def complete_payout(db: Session, payout_id: int, external_payout_ref: Optional[str] = None) -> Payout:
    payout = get_payout_or_404(db, payout_id)
    _require_status(payout, PayoutStatus.PROCESSING)

    now = utcnow()
    try:
        paid = crud_commission.mark_payout_commissions_paid(db, payout_id=payout.id, paid_at=now)
        crud_payout.update_payout(
            db,
            db_obj=payout,
            update_data={
                "status": PayoutStatus.COMPLETED,
                "completed_at": now,
                "external_payout_ref": external_payout_ref,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Payout {payout.id} COMPLETED, {paid} commission(s) marked PAID")
    record_audit(
        db, action="COMPLETE", resource="payout", resource_id=payout.id,
        new_value={"external_payout_ref": external_payout_ref, "paid_commissions": paid},
    )
    return payout


def fail_payout(db: Session, payout_id: int, reason: str) -> Payout:
    """
    Mark a payout FAILED and unlink its commissions. APPROVED items become
    eligible for the next payout; items already PAID keep their status and
    are never batched again.
    """
    payout = get_payout_or_404(db, payout_id)
    old_status = payout.status

    try:
        released = crud_commission.release_payout_commissions(db, payout_id=payout.id)
        crud_payout.update_payout(
            db,
            db_obj=payout,
            update_data={"status": PayoutStatus.FAILED, "failed_at": utcnow(), "failure_reason": reason},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.warning(f"Payout {payout.id} FAILED ({reason}), {released} commission(s) released")
    record_audit(
        db, action="FAIL", resource="payout", resource_id=payout.id,
        old_value={"status": old_status}, new_value={"status": payout.status, "reason": reason, "released": released},
    )
    return payout


def list_payouts(
    db: Session, *, recipient_id: Optional[str] = None, status: Optional[PayoutStatus] = None, skip: int = 0, limit: int = 50
) -> List[Payout]:
    return crud_payout.get_payouts(db, recipient_id=recipient_id, status=status, skip=skip, limit=limit)


def payout_stats(db: Session, recipient_id: Optional[str] = None) -> PayoutStats:
    totals = crud_payout.get_payout_totals(db, recipient_id=recipient_id)
    return PayoutStats(
        total_paid_out=round2(totals["completed_amount"]),
        total_payouts=totals["completed_count"],
        by_status=[
            PayoutStatusBucket(status=status, count=n, amount=round2(amount))
            for status, n, amount in totals["by_status"]
        ],
    )


def eligible_recipients(db: Session, *, settings: Optional[CommissionSettings] = None) -> List[RecipientBalance]:
    """Recipients whose approved, unbatched balance has reached the payout minimum."""
    return pending_payout_summary(db, settings=settings).eligible
