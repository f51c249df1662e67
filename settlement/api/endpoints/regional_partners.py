from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import revenue_tracker
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db
from settlement.models.revenue import RevenueType, RevenuePayoutStatus
from settlement.schemas.revenue import PERIOD_PATTERN

router = APIRouter()


@router.get("/{partner_id}/dashboard", response_model=schemas.PartnerDashboard)
def read_partner_dashboard(partner_id: str, db: Session = Depends(get_db)):
    try:
        return revenue_tracker.partner_dashboard(db, partner_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.get("/{partner_id}/revenues", response_model=List[schemas.RevenueRecordSchema])
def read_partner_revenues(
    partner_id: str,
    db: Session = Depends(get_db),
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    type: Optional[RevenueType] = Query(None),
    status: Optional[RevenuePayoutStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    return revenue_tracker.list_partner_revenues(
        db, partner_id, period=period, revenue_type=type, payout_status=status, skip=skip, limit=limit
    )


@router.get("/{partner_id}/payouts", response_model=List[schemas.RegionalPayoutSchema])
def read_partner_payouts(
    partner_id: str,
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=200),
):
    """
    Payout history of a partner, latest period first.
    """
    return revenue_tracker.list_regional_payouts(db, partner_id=partner_id, skip=skip, limit=limit)
