from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import attributions
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db

router = APIRouter()


@router.post("/", response_model=schemas.CustomerAttributionSchema, status_code=201)
def create_attribution(attribution_in: schemas.CustomerAttributionCreate, db: Session = Depends(get_db)):
    """
    Credit a customer to a partner. The first attribution of a customer wins.
    """
    try:
        return attributions.create_attribution(db, attribution_in)
    except SettlementError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[schemas.CustomerAttributionSchema])
def read_attributions(
    db: Session = Depends(get_db),
    partner_id: Optional[str] = Query(None),
    active_only: bool = Query(False),
    expired_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    return attributions.list_attributions(
        db, partner_id=partner_id, active_only=active_only, expired_only=expired_only, skip=skip, limit=limit
    )


@router.get("/stats", response_model=schemas.AttributionStats)
def read_attribution_stats(partner_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return attributions.attribution_stats(db, partner_id=partner_id)


@router.post("/check", response_model=schemas.AttributionCheckResult)
def check_attribution(check_in: schemas.AttributionCheck, db: Session = Depends(get_db)):
    return attributions.check_attribution(db, check_in.customer_id)


@router.get("/{customer_id}", response_model=schemas.AttributionStatus)
def read_attribution(customer_id: str, db: Session = Depends(get_db)):
    return attributions.get_attribution_status(db, customer_id)


@router.post("/{customer_id}/record-purchase", response_model=schemas.PurchaseRecorded)
def record_purchase(customer_id: str, purchase_in: schemas.RecordPurchase, db: Session = Depends(get_db)):
    try:
        is_first, attribution = attributions.record_purchase(db, customer_id, purchase_in.order_id, purchase_in.order_amount)
    except SettlementError as e:
        raise to_http_exception(e)
    return {"is_first_purchase": is_first, "data": attribution}


@router.delete("/{customer_id}")
def delete_attribution(customer_id: str, reason: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        attributions.delete_attribution(db, customer_id, reason)
    except SettlementError as e:
        raise to_http_exception(e)
    return {"message": f"Attribution of customer {customer_id} deleted"}
