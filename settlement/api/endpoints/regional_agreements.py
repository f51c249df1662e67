from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement import schemas
from settlement.api.errors import to_http_exception
from settlement.core import agreements
from settlement.core.exceptions import SettlementError
from settlement.db.session import get_db
from settlement.models.agreement import AgreementStatus

router = APIRouter()


@router.post("/", response_model=schemas.RegionalAgreementSchema, status_code=201)
def create_agreement(agreement_in: schemas.RegionalAgreementCreate, db: Session = Depends(get_db)):
    """
    Create a regional exclusivity agreement. It stays PENDING until the contract is signed.
    """
    try:
        return agreements.create_agreement(db, agreement_in)
    except SettlementError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[schemas.RegionalAgreementSchema])
def read_agreements(
    db: Session = Depends(get_db),
    status: Optional[AgreementStatus] = Query(None),
    region: Optional[str] = Query(None, min_length=2, max_length=2),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
):
    return agreements.list_agreements(db, status=status, region=region, skip=skip, limit=limit)


@router.get("/by-region/{region_code}", response_model=schemas.RegionalAgreementSchema)
def read_agreement_by_region(region_code: str, db: Session = Depends(get_db)):
    try:
        return agreements.find_by_region(db, region_code)
    except SettlementError as e:
        raise to_http_exception(e)


@router.get("/{agreement_id}", response_model=schemas.RegionalAgreementSchema)
def read_agreement(agreement_id: int, db: Session = Depends(get_db)):
    try:
        return agreements.get_agreement_or_404(db, agreement_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.put("/{agreement_id}", response_model=schemas.RegionalAgreementSchema)
def update_agreement(agreement_id: int, agreement_in: schemas.RegionalAgreementUpdate, db: Session = Depends(get_db)):
    try:
        return agreements.update_agreement(db, agreement_id, agreement_in)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{agreement_id}/sign", response_model=schemas.RegionalAgreementSchema)
def sign_agreement(agreement_id: int, sign_in: schemas.SignContract, db: Session = Depends(get_db)):
    try:
        return agreements.sign_agreement(db, agreement_id, sign_in)
    except SettlementError as e:
        raise to_http_exception(e)


@router.delete("/{agreement_id}", response_model=schemas.RegionalAgreementSchema)
def terminate_agreement(agreement_id: int, db: Session = Depends(get_db)):
    """
    Terminate an agreement. The record is kept; its validity ends now.
    """
    try:
        return agreements.terminate_agreement(db, agreement_id)
    except SettlementError as e:
        raise to_http_exception(e)
