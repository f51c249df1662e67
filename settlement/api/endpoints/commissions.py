from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import ledger
from settlement.core.agreements import SqlAgreementRegistry
from settlement.core.attributions import SqlAttributionStore
from settlement.core.commissions_calculator import calculate_commissions, process_order, get_order_commissions
from settlement.core.config import get_settings
from settlement.core.exceptions import SettlementError
from settlement.core.money import utcnow, as_naive_utc
from settlement.crud import crud_commission
from settlement.db.session import get_db
from settlement.models.commission import CommissionStatus, CommissionType

router = APIRouter()


def _with_order_date(order_in: schemas.OrderRequest) -> schemas.OrderInput:
    data = order_in.model_dump()
    data["order_date"] = order_in.order_date or utcnow()
    return schemas.OrderInput(**data)


@router.post("/calculate", response_model=schemas.CommissionCalculation)
def calculate(order_in: schemas.OrderRequest, db: Session = Depends(get_db)):
    """
    Preview the commission split of an order without recording anything.
    """
    return calculate_commissions(
        _with_order_date(order_in),
        agreements=SqlAgreementRegistry(db),
        attributions=SqlAttributionStore(db),
        settings=get_settings(),
    )


@router.post("/process", response_model=schemas.ProcessedOrder, status_code=201)
async def process(order_in: schemas.OrderRequest, db: Session = Depends(get_db)):
    """
    Record the commissions of a completed order. Each order can only be processed once.
    """
    try:
        calculation = await process_order(db, _with_order_date(order_in))
    except SettlementError as e:
        raise to_http_exception(e)
    return {"calculation": calculation, "commissions": get_order_commissions(db, order_in.order_id)}


@router.post("/refund", response_model=schemas.CountResult)
def refund(refund_in: schemas.RefundRequest, db: Session = Depends(get_db)):
    count = ledger.refund_order(db, refund_in.order_id, refund_in.reason)
    return {"message": f"Refunded {count} commission(s) for order {refund_in.order_id}", "count": count}


@router.post("/approve-eligible", response_model=schemas.CountResult)
def approve_eligible(request_in: schemas.ApproveEligibleRequest, db: Session = Depends(get_db)):
    """
    Approve all commissions whose hold period has passed. Meant to be triggered by a daily job.
    """
    count = ledger.approve_eligible_commissions(db, request_in.now)
    return {"message": f"Approved {count} commission(s)", "count": count}


@router.get("/", response_model=List[schemas.CommissionSchema])
def read_commissions(
    db: Session = Depends(get_db),
    recipient_id: Optional[str] = Query(None),
    status: Optional[CommissionStatus] = Query(None),
    commission_type: Optional[CommissionType] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    return crud_commission.get_commissions(
        db,
        recipient_id=recipient_id,
        status=status,
        commission_type=commission_type,
        from_date=as_naive_utc(from_date) if from_date else None,
        to_date=as_naive_utc(to_date) if to_date else None,
        skip=skip,
        limit=limit,
    )


@router.get("/by-order/{order_id}", response_model=List[schemas.CommissionSchema])
def read_commissions_by_order(order_id: str, db: Session = Depends(get_db)):
    commissions = get_order_commissions(db, order_id)
    if not commissions:
        raise HTTPException(status_code=404, detail=f"No commissions found for order {order_id}")
    return commissions


@router.get("/stats", response_model=schemas.CommissionStats)
def read_commission_stats(recipient_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return ledger.commission_stats(db, recipient_id=recipient_id)


@router.get("/pending-payout", response_model=schemas.PendingPayoutSummary)
def read_pending_payout(recipient_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return ledger.pending_payout_summary(db, recipient_id=recipient_id)
