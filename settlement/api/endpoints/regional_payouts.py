from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import revenue_tracker
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db
from settlement.models.revenue import RegionalPayoutStatus
from settlement.schemas.revenue import PERIOD_PATTERN

router = APIRouter()


@router.post("/create-monthly", response_model=schemas.MonthlyPayoutResult, status_code=201)
def create_monthly_payouts(request_in: schemas.MonthlyPayoutRequest, db: Session = Depends(get_db)):
    """
    Batch the pending revenue of every active regional partner for one month.
    """
    try:
        payout_ids = revenue_tracker.create_monthly_payouts(db, request_in.period)
    except SettlementError as e:
        raise to_http_exception(e)
    return {"period": request_in.period, "payout_ids": payout_ids, "count": len(payout_ids)}


@router.get("/", response_model=List[schemas.RegionalPayoutSchema])
def read_regional_payouts(
    db: Session = Depends(get_db),
    partner_id: Optional[str] = Query(None),
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    status: Optional[RegionalPayoutStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    return revenue_tracker.list_regional_payouts(
        db, partner_id=partner_id, period=period, status=status, skip=skip, limit=limit
    )


@router.get("/{payout_id}", response_model=schemas.RegionalPayoutWithRecords)
def read_regional_payout(payout_id: int, db: Session = Depends(get_db)):
    try:
        return revenue_tracker.get_regional_payout_or_404(db, payout_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{payout_id}/approve", response_model=schemas.RegionalPayoutSchema)
def approve_regional_payout(payout_id: int, approve_in: schemas.RegionalPayoutApprove, db: Session = Depends(get_db)):
    try:
        return revenue_tracker.approve_regional_payout(db, payout_id, approve_in.approved_by)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{payout_id}/mark-paid", response_model=schemas.RegionalPayoutSchema)
def mark_regional_payout_paid(payout_id: int, paid_in: schemas.RegionalPayoutMarkPaid, db: Session = Depends(get_db)):
    try:
        return revenue_tracker.mark_payout_as_paid(db, payout_id, paid_in.payment_reference, paid_in.paid_at)
    except SettlementError as e:
        raise to_http_exception(e)
