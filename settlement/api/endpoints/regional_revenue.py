from decimal import Decimal
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import revenue_tracker
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db

router = APIRouter()


@router.post("/membership", response_model=schemas.RevenueRecordSchema, status_code=201)
def track_membership(revenue_in: schemas.MembershipRevenueInput, db: Session = Depends(get_db)):
    """
    Record a membership payment and the provision of the regional partner covering the billing country.
    """
    try:
        return revenue_tracker.track_membership_revenue(db, revenue_in)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/transaction", response_model=schemas.RevenueRecordSchema, status_code=201)
def track_transaction(revenue_in: schemas.TransactionRevenueInput, db: Session = Depends(get_db)):
    return revenue_tracker.track_transaction_revenue(db, revenue_in)


@router.get("/fee", response_model=schemas.TransactionFee)
def read_transaction_fee(amount: Decimal = Query(..., gt=0)):
    return revenue_tracker.calculate_transaction_fee(amount)
