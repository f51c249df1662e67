from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import payouts
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db
from settlement.models.payout import PayoutStatus

router = APIRouter()


@router.post("/create", response_model=schemas.PayoutSchema, status_code=201)
def create_payout(payout_in: schemas.PayoutCreate, db: Session = Depends(get_db)):
    """
    Batch a recipient's approved commissions into a new payout.
    """
    try:
        return payouts.create_payout(db, payout_in.recipient_id, payout_in.destination_account)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{payout_id}/process", response_model=schemas.PayoutSchema)
def process_payout(payout_id: int, db: Session = Depends(get_db)):
    try:
        return payouts.process_payout(db, payout_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{payout_id}/complete", response_model=schemas.PayoutSchema)
def complete_payout(payout_id: int, complete_in: schemas.PayoutComplete, db: Session = Depends(get_db)):
    try:
        return payouts.complete_payout(db, payout_id, complete_in.external_payout_ref)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{payout_id}/fail", response_model=schemas.PayoutSchema)
def fail_payout(payout_id: int, fail_in: schemas.PayoutFail, db: Session = Depends(get_db)):
    try:
        return payouts.fail_payout(db, payout_id, fail_in.reason)
    except SettlementError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[schemas.PayoutSchema])
def read_payouts(
    db: Session = Depends(get_db),
    recipient_id: Optional[str] = Query(None),
    status: Optional[PayoutStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    return payouts.list_payouts(db, recipient_id=recipient_id, status=status, skip=skip, limit=limit)


@router.get("/stats", response_model=schemas.PayoutStats)
def read_payout_stats(recipient_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return payouts.payout_stats(db, recipient_id=recipient_id)


@router.get("/eligible", response_model=List[schemas.RecipientBalance])
def read_eligible_recipients(db: Session = Depends(get_db)):
    """
    Recipients whose approved balance has reached the payout minimum.
    """
    return payouts.eligible_recipients(db)


@router.get("/{payout_id}", response_model=schemas.PayoutWithCommissions)
def read_payout(payout_id: int, db: Session = Depends(get_db)):
    try:
        return payouts.get_payout_or_404(db, payout_id)
    except SettlementError as e:
        raise to_http_exception(e)
