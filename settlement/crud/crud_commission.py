from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from typing import Optional, List, Iterable, Tuple

from settlement.models.commission import Commission, CommissionStatus, CommissionType
from settlement.schemas.commission import CommissionCreate

# Statuses a refund may still reverse
REFUNDABLE_STATUSES = (CommissionStatus.PENDING, CommissionStatus.APPROVED)


def create_commission(db: Session, *, obj_in: CommissionCreate) -> Commission:
    """
    Create a single commission record and commit it.
    """
    db_obj = Commission(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def add_commissions(db: Session, *, objs_in: Iterable[CommissionCreate]) -> List[Commission]:
    """
    Stage several commission records in the current transaction without committing.
    """
    db_objs = [Commission(**obj_in.model_dump()) for obj_in in objs_in]
    db.add_all(db_objs)
    db.flush()
    return db_objs


def get_commission(db: Session, commission_id: int) -> Optional[Commission]:
    return (
        db.query(Commission)
        .options(joinedload(Commission.payout))
        .filter(Commission.id == commission_id)
        .first()
    )


def get_commissions_by_order_id(db: Session, *, order_id: str) -> List[Commission]:
    """
    Get all commissions associated with a specific order ID.
    """
    return db.query(Commission).filter(Commission.order_id == order_id).order_by(Commission.id.asc()).all()


def order_has_commissions(db: Session, *, order_id: str) -> bool:
    return db.query(Commission.id).filter(Commission.order_id == order_id).first() is not None


def _filtered(
    db: Session,
    *,
    recipient_id: Optional[str] = None,
    status: Optional[CommissionStatus] = None,
    commission_type: Optional[CommissionType] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
):
    query = db.query(Commission)
    if recipient_id:
        query = query.filter(Commission.recipient_id == recipient_id)
    if status:
        query = query.filter(Commission.status == status)
    if commission_type:
        query = query.filter(Commission.commission_type == commission_type)
    if from_date:
        query = query.filter(Commission.order_date >= from_date)
    if to_date:
        query = query.filter(Commission.order_date <= to_date)
    return query


def get_commissions(
    db: Session,
    *,
    recipient_id: Optional[str] = None,
    status: Optional[CommissionStatus] = None,
    commission_type: Optional[CommissionType] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Commission]:
    """
    Get commissions, newest orders first, optionally filtered by recipient,
    status, type and order date range.
    """
    query = _filtered(
        db, recipient_id=recipient_id, status=status, commission_type=commission_type,
        from_date=from_date, to_date=to_date,
    )
    return query.order_by(Commission.order_date.desc(), Commission.id.desc()).offset(skip).limit(limit).all()


def count_commissions(db: Session, **filters) -> int:
    return _filtered(db, **filters).count()


def approve_due_commissions(db: Session, *, cutoff: datetime, approved_at: datetime) -> int:
    """
    Move every PENDING commission whose order date is at or before the cutoff
    to APPROVED. Does not commit. Returns the number of rows updated.
    """
    return (
        db.query(Commission)
        .filter(Commission.status == CommissionStatus.PENDING, Commission.order_date <= cutoff)
        .update(
            {Commission.status: CommissionStatus.APPROVED, Commission.approved_at: approved_at},
            synchronize_session=False,
        )
    )


def refund_order_commissions(db: Session, *, order_id: str, reason: str, refunded_at: datetime) -> int:
    """
    Mark the PENDING and APPROVED commissions of an order as REFUNDED. PAID
    commissions are left untouched. Does not commit.
    """
    return (
        db.query(Commission)
        .filter(Commission.order_id == order_id, Commission.status.in_(REFUNDABLE_STATUSES))
        .update(
            {
                Commission.status: CommissionStatus.REFUNDED,
                Commission.refunded_at: refunded_at,
                Commission.refund_reason: reason,
            },
            synchronize_session=False,
        )
    )


def get_unlinked_approved_commissions(db: Session, *, recipient_id: str) -> List[Commission]:
    """
    APPROVED commissions of a recipient not yet claimed by a payout, oldest orders first.
    """
    return (
        db.query(Commission)
        .filter(
            Commission.recipient_id == recipient_id,
            Commission.status == CommissionStatus.APPROVED,
            Commission.payout_id.is_(None),
        )
        .order_by(Commission.order_date.asc(), Commission.id.asc())
        .all()
    )


def link_commissions_to_payout(db: Session, *, commission_ids: List[int], payout_id: int) -> int:
    """
    Claim commissions for a payout. Only rows that are still APPROVED and
    unlinked are claimed, so two concurrent payouts can never share a
    commission. Does not commit. Returns the number of rows claimed.
    """
    if not commission_ids:
        return 0
    return (
        db.query(Commission)
        .filter(
            Commission.id.in_(commission_ids),
            Commission.status == CommissionStatus.APPROVED,
            Commission.payout_id.is_(None),
        )
        .update({Commission.payout_id: payout_id}, synchronize_session=False)
    )


def mark_payout_commissions_paid(db: Session, *, payout_id: int, paid_at: datetime) -> int:
    """
    Mark the APPROVED commissions linked to a payout as PAID. Commissions
    refunded while the payout was in flight stay REFUNDED. Does not commit.
    """
    return (
        db.query(Commission)
        .filter(Commission.payout_id == payout_id, Commission.status == CommissionStatus.APPROVED)
        .update(
            {Commission.status: CommissionStatus.PAID, Commission.paid_at: paid_at},
            synchronize_session=False,
        )
    )


def release_payout_commissions(db: Session, *, payout_id: int) -> int:
    """
    Detach every commission from a payout so it can be batched again. Status
    is left as it is. Does not commit. Returns the number of commissions released.
    """
    return (
        db.query(Commission)
        .filter(Commission.payout_id == payout_id)
        .update({Commission.payout_id: None}, synchronize_session=False)
    )


def get_payable_payout_totals(db: Session, *, payout_id: int) -> Tuple[int, Decimal]:
    """
    (count, total_amount) of the commissions linked to a payout that are still
    APPROVED. Commissions refunded after batching are left out.
    """
    count, total = (
        db.query(func.count(Commission.id), func.coalesce(func.sum(Commission.amount), 0))
        .filter(Commission.payout_id == payout_id, Commission.status == CommissionStatus.APPROVED)
        .one()
    )
    return count, Decimal(str(total or 0))


def get_commission_totals(db: Session, *, recipient_id: Optional[str] = None, since: Optional[datetime] = None) -> dict:
    """
    Count and amount of commissions, overall and grouped by status and by type.
    """
    def scoped(query):
        if recipient_id:
            query = query.filter(Commission.recipient_id == recipient_id)
        if since:
            query = query.filter(Commission.created_at >= since)
        return query

    amount_sum = func.coalesce(func.sum(Commission.amount), 0)
    count, amount = scoped(db.query(func.count(Commission.id), amount_sum)).one()
    by_status = scoped(db.query(Commission.status, func.count(Commission.id), amount_sum)).group_by(Commission.status).all()
    by_type = scoped(
        db.query(Commission.commission_type, func.count(Commission.id), amount_sum)
    ).group_by(Commission.commission_type).all()

    return {
        "count": count,
        "amount": Decimal(str(amount or 0)),
        "by_status": [(status, n, Decimal(str(total or 0))) for status, n, total in by_status],
        "by_type": [(ctype, n, Decimal(str(total or 0))) for ctype, n, total in by_type],
    }


def get_unlinked_approved_balances(
    db: Session, *, recipient_id: Optional[str] = None
) -> List[Tuple[str, Optional[str], int, Decimal]]:
    """
    Per recipient: (recipient_id, recipient_name, commission_count, total_amount)
    of APPROVED commissions not yet linked to a payout.
    """
    query = db.query(
        Commission.recipient_id,
        func.max(Commission.recipient_name),
        func.count(Commission.id),
        func.coalesce(func.sum(Commission.amount), 0),
    ).filter(Commission.status == CommissionStatus.APPROVED, Commission.payout_id.is_(None))
    if recipient_id:
        query = query.filter(Commission.recipient_id == recipient_id)
    rows = query.group_by(Commission.recipient_id).order_by(Commission.recipient_id.asc()).all()
    return [(rid, name, n, Decimal(str(total or 0))) for rid, name, n, total in rows]
