import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Protocol

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.audit import record_audit
from settlement.core.config import CommissionSettings, get_settings
from settlement.core.exceptions import NotFound, AlreadyAttributed
from settlement.core.money import utcnow, round2
from settlement.crud import crud_attribution
from settlement.models.attribution import CustomerAttribution
from settlement.schemas.attribution import (
    CustomerAttributionCreate,
    AttributionStatus,
    AttributionCheckResult,
    AttributionStats,
)

logger = logging.getLogger(__name__)


class AttributionStore(Protocol):
    def get(self, customer_id: str) -> Optional[CustomerAttribution]:
        ...

    def record_purchase(self, attribution: CustomerAttribution, order_id: str, order_amount: Decimal, purchased_at: datetime) -> bool:
        """Update purchase counters; True when this was the customer's first purchase."""
        ...


class SqlAttributionStore:
    """Attribution lookups backed by the customer_attribution table. Writes are not committed."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: str) -> Optional[CustomerAttribution]:
        return crud_attribution.get_attribution_by_customer(self.db, customer_id)

    def record_purchase(self, attribution, order_id, order_amount, purchased_at) -> bool:
        return crud_attribution.record_purchase(
            self.db, db_obj=attribution, order_id=order_id, order_amount=order_amount, purchased_at=purchased_at
        )


def days_remaining(attribution: CustomerAttribution, as_of: datetime) -> int:
    if not attribution.is_active(as_of):
        return 0
    return (attribution.expires_at - as_of).days


def create_attribution(
    db: Session, obj_in: CustomerAttributionCreate, *, settings: Optional[CommissionSettings] = None
) -> CustomerAttribution:
    """
    Credit a customer to a partner for the attribution window. The first
    attribution of a customer wins; later ones fail with AlreadyAttributed.
    """
    settings = settings or get_settings()
    existing = crud_attribution.get_attribution_by_customer(db, obj_in.customer_id)
    if existing:
        raise AlreadyAttributed(
            f"Customer {obj_in.customer_id} is already attributed to partner {existing.attributed_partner_id}",
            customer_id=obj_in.customer_id,
            attributed_partner_id=existing.attributed_partner_id,
        )

    attributed_at = utcnow()
    expires_at = attributed_at + relativedelta(years=settings.attribution_years)
    try:
        attribution = crud_attribution.create_attribution(
            db, obj_in=obj_in, attributed_at=attributed_at, expires_at=expires_at
        )
    except IntegrityError:
        db.rollback()
        raise AlreadyAttributed(
            f"Customer {obj_in.customer_id} is already attributed", customer_id=obj_in.customer_id
        )

    logger.info(
        f"Attributed customer {attribution.customer_id} to partner {attribution.attributed_partner_id} until {expires_at.date()}"
    )
    record_audit(
        db, action="CREATE", resource="customer_attribution", resource_id=attribution.customer_id,
        new_value=obj_in.model_dump(),
    )
    return attribution


def get_attribution_status(db: Session, customer_id: str, as_of: Optional[datetime] = None) -> AttributionStatus:
    as_of = as_of or utcnow()
    attribution = crud_attribution.get_attribution_by_customer(db, customer_id)
    if not attribution:
        return AttributionStatus(has_attribution=False)
    return AttributionStatus(
        has_attribution=True,
        is_active=attribution.is_active(as_of),
        days_remaining=days_remaining(attribution, as_of),
        data=attribution,
    )


def list_attributions(
    db: Session,
    *,
    partner_id: Optional[str] = None,
    active_only: bool = False,
    expired_only: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> List[CustomerAttribution]:
    return crud_attribution.get_attributions(
        db, partner_id=partner_id, active_only=active_only, expired_only=expired_only,
        as_of=utcnow(), skip=skip, limit=limit,
    )


def record_purchase(db: Session, customer_id: str, order_id: str, order_amount: Decimal):
    """Returns (is_first_purchase, attribution)."""
    attribution = crud_attribution.get_attribution_by_customer(db, customer_id)
    if not attribution:
        raise NotFound(f"No attribution found for customer {customer_id}", customer_id=customer_id)

    is_first = crud_attribution.record_purchase(
        db, db_obj=attribution, order_id=order_id, order_amount=round2(order_amount), purchased_at=utcnow()
    )
    db.commit()
    db.refresh(attribution)
    logger.info(f"Recorded purchase {order_id} for customer {customer_id} (first={is_first})")
    return is_first, attribution


def delete_attribution(db: Session, customer_id: str, reason: Optional[str] = None) -> None:
    attribution = crud_attribution.get_attribution_by_customer(db, customer_id)
    if not attribution:
        raise NotFound(f"No attribution found for customer {customer_id}", customer_id=customer_id)

    old_value = {
        "attributed_partner_id": attribution.attributed_partner_id,
        "source": attribution.source,
        "attributed_at": attribution.attributed_at,
        "expires_at": attribution.expires_at,
    }
    crud_attribution.delete_attribution(db, db_obj=attribution)
    logger.info(f"Deleted attribution of customer {customer_id}: {reason or 'no reason given'}")
    record_audit(
        db, action="DELETE", resource="customer_attribution", resource_id=customer_id,
        old_value=old_value, metadata={"reason": reason},
    )


def attribution_stats(db: Session, partner_id: Optional[str] = None) -> AttributionStats:
    stats = crud_attribution.get_attribution_stats(db, partner_id=partner_id, as_of=utcnow())
    total = stats["total"]
    conversion_rate = round2(Decimal(stats["with_purchase"]) * 100 / total) if total else Decimal("0.00")
    return AttributionStats(
        total_attributions=total,
        active_attributions=stats["active"],
        expired_attributions=total - stats["active"],
        attributions_with_purchase=stats["with_purchase"],
        conversion_rate=conversion_rate,
        total_purchases=stats["total_purchases"],
        total_revenue=round2(stats["total_revenue"]),
    )


def check_attribution(
    db: Session, customer_id: str, *, settings: Optional[CommissionSettings] = None
) -> AttributionCheckResult:
    """Which affiliate would earn on this customer's next order, and at which rate."""
    settings = settings or get_settings()
    attribution = crud_attribution.get_attribution_by_customer(db, customer_id)
    if not attribution:
        return AttributionCheckResult(has_attribution=False)
    if not attribution.is_active(utcnow()):
        return AttributionCheckResult(has_attribution=True, is_active=False)

    is_first = attribution.first_purchase_at is None
    return AttributionCheckResult(
        has_attribution=True,
        is_active=True,
        affiliate_partner_id=attribution.attributed_partner_id,
        affiliate_partner_name=attribution.attributed_partner_name,
        is_first_purchase=is_first,
        commission_percent=settings.affiliate_first_percent if is_first else settings.affiliate_recurring_percent,
    )
