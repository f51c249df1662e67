from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from typing import Optional, List

from settlement.models.revenue import (
    RevenueRecord,
    RegionalPayout,
    RevenueType,
    RevenuePayoutStatus,
    RegionalPayoutStatus,
)


def create_revenue_record(db: Session, *, data: dict) -> RevenueRecord:
    db_obj = RevenueRecord(**data)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_revenue_records(
    db: Session,
    *,
    partner_id: Optional[str] = None,
    period: Optional[str] = None,
    revenue_type: Optional[RevenueType] = None,
    payout_status: Optional[RevenuePayoutStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[RevenueRecord]:
    query = db.query(RevenueRecord)
    if partner_id:
        query = query.filter(RevenueRecord.partner_id == partner_id)
    if period:
        query = query.filter(RevenueRecord.payout_period == period)
    if revenue_type:
        query = query.filter(RevenueRecord.type == revenue_type)
    if payout_status:
        query = query.filter(RevenueRecord.payout_status == payout_status)
    return query.order_by(RevenueRecord.payment_date.desc()).offset(skip).limit(limit).all()


def get_pending_records(db: Session, *, partner_id: str, period: str) -> List[RevenueRecord]:
    return (
        db.query(RevenueRecord)
        .filter(
            RevenueRecord.partner_id == partner_id,
            RevenueRecord.payout_period == period,
            RevenueRecord.payout_status == RevenuePayoutStatus.PENDING,
            RevenueRecord.payout_id.is_(None),
        )
        .order_by(RevenueRecord.payment_date.asc(), RevenueRecord.id.asc())
        .all()
    )


def create_regional_payout(db: Session, *, data: dict) -> RegionalPayout:
    """
    Stage a PENDING regional payout and flush it so it has an id. Does not commit.
    """
    db_obj = RegionalPayout(**data, status=RegionalPayoutStatus.PENDING)
    db.add(db_obj)
    db.flush()
    return db_obj


def link_records_to_payout(db: Session, *, record_ids: List[int], payout_id: int) -> int:
    """
    Link PENDING records to a regional payout and approve them. Does not commit.
    """
    if not record_ids:
        return 0
    return (
        db.query(RevenueRecord)
        .filter(
            RevenueRecord.id.in_(record_ids),
            RevenueRecord.payout_status == RevenuePayoutStatus.PENDING,
            RevenueRecord.payout_id.is_(None),
        )
        .update(
            {RevenueRecord.payout_id: payout_id, RevenueRecord.payout_status: RevenuePayoutStatus.APPROVED},
            synchronize_session=False,
        )
    )


def mark_records_paid(db: Session, *, payout_id: int, paid_at: datetime, payment_reference: str) -> int:
    """
    Mark every record of a regional payout as PAID. Does not commit.
    """
    return (
        db.query(RevenueRecord)
        .filter(RevenueRecord.payout_id == payout_id)
        .update(
            {
                RevenueRecord.payout_status: RevenuePayoutStatus.PAID,
                RevenueRecord.paid_at: paid_at,
                RevenueRecord.payment_reference: payment_reference,
            },
            synchronize_session=False,
        )
    )


def get_regional_payout(db: Session, payout_id: int) -> Optional[RegionalPayout]:
    return (
        db.query(RegionalPayout)
        .options(selectinload(RegionalPayout.revenue_records))
        .filter(RegionalPayout.id == payout_id)
        .first()
    )


def get_regional_payouts(
    db: Session,
    *,
    partner_id: Optional[str] = None,
    period: Optional[str] = None,
    status: Optional[RegionalPayoutStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[RegionalPayout]:
    query = db.query(RegionalPayout)
    if partner_id:
        query = query.filter(RegionalPayout.partner_id == partner_id)
    if period:
        query = query.filter(RegionalPayout.payout_period == period)
    if status:
        query = query.filter(RegionalPayout.status == status)
    return query.order_by(RegionalPayout.payout_period.desc(), RegionalPayout.id.desc()).offset(skip).limit(limit).all()


def update_regional_payout(db: Session, *, db_obj: RegionalPayout, update_data: dict) -> RegionalPayout:
    """
    Apply field changes to a regional payout. Does not commit.
    """
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    return db_obj


def sum_partner_provision(
    db: Session,
    *,
    partner_id: str,
    period: Optional[str] = None,
    payout_status: Optional[RevenuePayoutStatus] = None,
) -> tuple:
    """(record_count, provision_total) for a partner, optionally scoped to a period or payout status."""
    query = db.query(
        func.count(RevenueRecord.id),
        func.coalesce(func.sum(RevenueRecord.partner_provision), 0),
    ).filter(RevenueRecord.partner_id == partner_id)
    if period:
        query = query.filter(RevenueRecord.payout_period == period)
    if payout_status:
        query = query.filter(RevenueRecord.payout_status == payout_status)
    count, total = query.one()
    return count, Decimal(str(total or 0))


def count_regional_payouts(db: Session, *, partner_id: str) -> int:
    return db.query(RegionalPayout).filter(RegionalPayout.partner_id == partner_id).count()
