from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from typing import Optional, List

from settlement.models.payout import Payout, PayoutStatus


def create_payout(
    db: Session,
    *,
    recipient_id: str,
    recipient_name: Optional[str],
    destination_account: str,
    total_amount: Decimal,
    commission_count: int,
    currency: str,
    period_start: datetime,
    period_end: datetime,
) -> Payout:
    """
    Stage a PENDING payout and flush it so it has an id. Does not commit;
    the payout and the commission links must be committed together.
    """
    db_obj = Payout(
        recipient_id=recipient_id,
        recipient_name=recipient_name,
        destination_account=destination_account,
        total_amount=total_amount,
        commission_count=commission_count,
        currency=currency,
        period_start=period_start,
        period_end=period_end,
        status=PayoutStatus.PENDING,
    )
    db.add(db_obj)
    db.flush()
    return db_obj


def get_payout(db: Session, payout_id: int) -> Optional[Payout]:
    """
    Get a payout with its linked commissions eagerly loaded.
    """
    return (
        db.query(Payout)
        .options(selectinload(Payout.commissions))
        .filter(Payout.id == payout_id)
        .first()
    )


def get_payouts(
    db: Session,
    *,
    recipient_id: Optional[str] = None,
    status: Optional[PayoutStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Payout]:
    query = db.query(Payout)
    if recipient_id:
        query = query.filter(Payout.recipient_id == recipient_id)
    if status:
        query = query.filter(Payout.status == status)
    return query.order_by(Payout.id.desc()).offset(skip).limit(limit).all()


def update_payout(db: Session, *, db_obj: Payout, update_data: dict) -> Payout:
    """
    Apply field changes to a payout. Does not commit.
    """
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    return db_obj


def get_payout_totals(db: Session, *, recipient_id: Optional[str] = None) -> dict:
    amount_sum = func.coalesce(func.sum(Payout.total_amount), 0)
    by_status = db.query(Payout.status, func.count(Payout.id), amount_sum)
    completed = db.query(func.count(Payout.id), amount_sum).filter(Payout.status == PayoutStatus.COMPLETED)
    if recipient_id:
        by_status = by_status.filter(Payout.recipient_id == recipient_id)
        completed = completed.filter(Payout.recipient_id == recipient_id)

    completed_count, completed_amount = completed.one()
    return {
        "completed_count": completed_count,
        "completed_amount": Decimal(str(completed_amount or 0)),
        "by_status": [
            (status, n, Decimal(str(total or 0)))
            for status, n, total in by_status.group_by(Payout.status).all()
        ],
    }
