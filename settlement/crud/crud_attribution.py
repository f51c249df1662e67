from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional, List

from settlement.models.attribution import CustomerAttribution
from settlement.schemas.attribution import CustomerAttributionCreate


def create_attribution(
    db: Session, *, obj_in: CustomerAttributionCreate, attributed_at: datetime, expires_at: datetime
) -> CustomerAttribution:
    db_obj = CustomerAttribution(
        **obj_in.model_dump(),
        attributed_at=attributed_at,
        expires_at=expires_at,
        total_purchases=0,
        total_revenue=Decimal("0"),
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_attribution_by_customer(db: Session, customer_id: str) -> Optional[CustomerAttribution]:
    return db.query(CustomerAttribution).filter(CustomerAttribution.customer_id == customer_id).first()


def _filtered(
    db: Session, *, partner_id: Optional[str], active_only: bool, expired_only: bool, as_of: Optional[datetime]
):
    query = db.query(CustomerAttribution)
    if partner_id:
        query = query.filter(CustomerAttribution.attributed_partner_id == partner_id)
    if active_only:
        query = query.filter(CustomerAttribution.expires_at >= as_of)
    if expired_only:
        query = query.filter(CustomerAttribution.expires_at < as_of)
    return query


def get_attributions(
    db: Session,
    *,
    partner_id: Optional[str] = None,
    active_only: bool = False,
    expired_only: bool = False,
    as_of: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[CustomerAttribution]:
    query = _filtered(db, partner_id=partner_id, active_only=active_only, expired_only=expired_only, as_of=as_of)
    return query.order_by(CustomerAttribution.attributed_at.desc()).offset(skip).limit(limit).all()


def record_purchase(
    db: Session, *, db_obj: CustomerAttribution, order_id: str, order_amount: Decimal, purchased_at: datetime
) -> bool:
    """
    Update purchase counters. Stamps the first purchase if there was none yet.
    Does not commit; the caller owns the transaction. Returns True for a first purchase.
    """
    is_first_purchase = db_obj.first_purchase_at is None
    if is_first_purchase:
        db_obj.first_purchase_at = purchased_at
        db_obj.first_purchase_order_id = order_id
    db_obj.total_purchases = (db_obj.total_purchases or 0) + 1
    db_obj.total_revenue = (db_obj.total_revenue or Decimal("0")) + order_amount
    db.add(db_obj)
    return is_first_purchase


def delete_attribution(db: Session, *, db_obj: CustomerAttribution) -> None:
    db.delete(db_obj)
    db.commit()


def get_attribution_stats(db: Session, *, partner_id: Optional[str] = None, as_of: datetime) -> dict:
    base = _filtered(db, partner_id=partner_id, active_only=False, expired_only=False, as_of=as_of)
    total = base.count()
    active = base.filter(CustomerAttribution.expires_at >= as_of).count()
    with_purchase = base.filter(CustomerAttribution.first_purchase_at.isnot(None)).count()

    sums = db.query(
        func.coalesce(func.sum(CustomerAttribution.total_purchases), 0),
        func.coalesce(func.sum(CustomerAttribution.total_revenue), 0),
    )
    if partner_id:
        sums = sums.filter(CustomerAttribution.attributed_partner_id == partner_id)
    total_purchases, total_revenue = sums.one()

    return {
        "total": total,
        "active": active,
        "with_purchase": with_purchase,
        "total_purchases": int(total_purchases or 0),
        "total_revenue": Decimal(str(total_revenue or 0)),
    }
