from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional, List, Iterable

from settlement.models.agreement import RegionalAgreement, AgreementStatus
from settlement.schemas.agreement import RegionalAgreementCreate

# Statuses that reserve a region against new agreements
RESERVING_STATUSES = (AgreementStatus.PENDING, AgreementStatus.ACTIVE)


def create_agreement(db: Session, *, obj_in: RegionalAgreementCreate, valid_from: datetime) -> RegionalAgreement:
    """
    Create a new agreement in PENDING status. It becomes ACTIVE once the
    partner signs the contract.
    """
    data = obj_in.model_dump(exclude={"valid_from"})
    db_obj = RegionalAgreement(**data, valid_from=valid_from, status=AgreementStatus.PENDING)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_agreement(db: Session, agreement_id: int) -> Optional[RegionalAgreement]:
    return db.query(RegionalAgreement).filter(RegionalAgreement.id == agreement_id).first()


def get_agreements(
    db: Session, *, status: Optional[AgreementStatus] = None, region: Optional[str] = None, skip: int = 0, limit: int = 100
) -> List[RegionalAgreement]:
    """
    List agreements, newest first. Region filtering happens after the query
    because region codes are stored as a JSON list.
    """
    query = db.query(RegionalAgreement)
    if status:
        query = query.filter(RegionalAgreement.status == status)
    agreements = query.order_by(RegionalAgreement.id.desc()).all()
    if region:
        agreements = [a for a in agreements if a.covers(region)]
    return agreements[skip:skip + limit]


def get_active_agreements(db: Session) -> List[RegionalAgreement]:
    return (
        db.query(RegionalAgreement)
        .filter(RegionalAgreement.status == AgreementStatus.ACTIVE)
        .order_by(RegionalAgreement.id.asc())
        .all()
    )


def get_agreements_by_partner(db: Session, *, partner_id: str) -> List[RegionalAgreement]:
    return (
        db.query(RegionalAgreement)
        .filter(RegionalAgreement.partner_id == partner_id)
        .order_by(RegionalAgreement.id.desc())
        .all()
    )


def find_conflicting_agreement(
    db: Session, *, region_codes: Iterable[str], exclude_id: Optional[int] = None
) -> Optional[RegionalAgreement]:
    """First PENDING or ACTIVE agreement, other than exclude_id, that already covers any of the given region codes."""
    codes = {code.upper() for code in region_codes}
    query = db.query(RegionalAgreement).filter(RegionalAgreement.status.in_(RESERVING_STATUSES))
    if exclude_id is not None:
        query = query.filter(RegionalAgreement.id != exclude_id)
    candidates = query.order_by(RegionalAgreement.id.asc()).all()
    for agreement in candidates:
        if codes.intersection(agreement.region_codes or []):
            return agreement
    return None


def find_active_for_region(db: Session, *, region_code: str, as_of: datetime) -> Optional[RegionalAgreement]:
    """ACTIVE agreement covering region_code with valid_from <= as_of <= valid_until (open-ended if unset)."""
    candidates = (
        db.query(RegionalAgreement)
        .filter(
            RegionalAgreement.status == AgreementStatus.ACTIVE,
            RegionalAgreement.valid_from <= as_of,
            or_(RegionalAgreement.valid_until.is_(None), RegionalAgreement.valid_until >= as_of),
        )
        .order_by(RegionalAgreement.id.asc())
        .all()
    )
    return next((a for a in candidates if a.covers(region_code)), None)


def update_agreement(db: Session, *, db_obj: RegionalAgreement, update_data: dict) -> RegionalAgreement:
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj
