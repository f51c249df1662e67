import logging
from datetime import datetime
from typing import Optional, List, Protocol

from sqlalchemy.orm import Session

from settlement.core.audit import record_audit
from settlement.core.exceptions import NotFound, RegionConflict, AlreadySigned, InvalidStatus
from settlement.core.money import utcnow, as_naive_utc
from settlement.crud import crud_agreement
from settlement.models.agreement import RegionalAgreement, AgreementStatus
from settlement.schemas.agreement import RegionalAgreementCreate, RegionalAgreementUpdate, SignContract

logger = logging.getLogger(__name__)


class AgreementRegistry(Protocol):
    def find_active(self, region_code: str, as_of: datetime) -> Optional[RegionalAgreement]:
        """ACTIVE agreement covering the region code on the given date, if any."""
        ...


class SqlAgreementRegistry:
    """Agreement lookups backed by the regional_agreement table."""

    def __init__(self, db: Session):
        self.db = db

    def find_active(self, region_code: str, as_of: datetime) -> Optional[RegionalAgreement]:
        if not region_code:
            return None
        return crud_agreement.find_active_for_region(self.db, region_code=region_code.upper(), as_of=as_of)


def _snapshot(agreement: RegionalAgreement) -> dict:
    return {
        "status": agreement.status,
        "commission_percent": agreement.commission_percent,
        "valid_until": agreement.valid_until,
        "notes": agreement.notes,
    }


def get_agreement_or_404(db: Session, agreement_id: int) -> RegionalAgreement:
    agreement = crud_agreement.get_agreement(db, agreement_id)
    if not agreement:
        raise NotFound(f"Regional agreement {agreement_id} not found", agreement_id=agreement_id)
    return agreement


def _ensure_regions_free(db: Session, region_codes, exclude_id: Optional[int] = None) -> None:
    conflict = crud_agreement.find_conflicting_agreement(db, region_codes=region_codes, exclude_id=exclude_id)
    if conflict:
        overlap = sorted({code.upper() for code in region_codes}.intersection(conflict.region_codes or []))
        raise RegionConflict(
            f"Region(s) {', '.join(overlap)} already covered by agreement {conflict.id} ({conflict.partner_name})",
            agreement_id=conflict.id,
            region_codes=overlap,
        )


def create_agreement(db: Session, obj_in: RegionalAgreementCreate) -> RegionalAgreement:
    """
    Create a PENDING agreement. Fails with RegionConflict if any of its regions
    is already reserved by another PENDING or ACTIVE agreement.
    """
    _ensure_regions_free(db, obj_in.region_codes)

    valid_from = as_naive_utc(obj_in.valid_from) if obj_in.valid_from else utcnow()
    agreement = crud_agreement.create_agreement(db, obj_in=obj_in, valid_from=valid_from)
    logger.info(f"Created regional agreement {agreement.id} for partner {agreement.partner_id}, regions {agreement.region_codes}")
    record_audit(
        db, action="CREATE", resource="regional_agreement", resource_id=agreement.id,
        new_value=obj_in.model_dump(),
    )
    return agreement


def list_agreements(
    db: Session, *, status: Optional[AgreementStatus] = None, region: Optional[str] = None, skip: int = 0, limit: int = 100
) -> List[RegionalAgreement]:
    return crud_agreement.get_agreements(db, status=status, region=region, skip=skip, limit=limit)


def find_by_region(db: Session, region_code: str, as_of: Optional[datetime] = None) -> RegionalAgreement:
    agreement = SqlAgreementRegistry(db).find_active(region_code, as_of or utcnow())
    if not agreement:
        raise NotFound(
            f"No active regional agreement found for country: {region_code.upper()}",
            region_code=region_code.upper(),
        )
    return agreement


def update_agreement(db: Session, agreement_id: int, obj_in: RegionalAgreementUpdate) -> RegionalAgreement:
    agreement = get_agreement_or_404(db, agreement_id)
    if agreement.status == AgreementStatus.TERMINATED:
        raise InvalidStatus("Regional agreement", agreement.status.value)

    update_data = obj_in.model_dump(exclude_unset=True)
    if update_data.get("status") in crud_agreement.RESERVING_STATUSES and agreement.status != update_data["status"]:
        _ensure_regions_free(db, agreement.region_codes or [], exclude_id=agreement.id)
    if update_data.get("valid_until") is not None:
        update_data["valid_until"] = as_naive_utc(update_data["valid_until"])
    old_value = _snapshot(agreement)
    agreement = crud_agreement.update_agreement(db, db_obj=agreement, update_data=update_data)
    logger.info(f"Updated regional agreement {agreement.id}: {sorted(update_data)}")
    record_audit(
        db, action="UPDATE", resource="regional_agreement", resource_id=agreement.id,
        old_value=old_value, new_value=update_data,
    )
    return agreement


def sign_agreement(db: Session, agreement_id: int, obj_in: SignContract) -> RegionalAgreement:
    """Record the contract signature and activate the agreement."""
    agreement = get_agreement_or_404(db, agreement_id)
    if agreement.contract_signed_at is not None:
        raise AlreadySigned(f"Regional agreement {agreement_id} is already signed", agreement_id=agreement_id)
    if agreement.status != AgreementStatus.PENDING:
        raise InvalidStatus("Regional agreement", agreement.status.value, AgreementStatus.PENDING.value)

    agreement = crud_agreement.update_agreement(
        db,
        db_obj=agreement,
        update_data={
            "contract_signed_at": utcnow(),
            "contract_signed_by": obj_in.signed_by,
            "contract_version": obj_in.contract_version,
            "status": AgreementStatus.ACTIVE,
        },
    )
    logger.info(f"Regional agreement {agreement.id} signed by {obj_in.signed_by}, now ACTIVE")
    record_audit(
        db, action="SIGN", resource="regional_agreement", resource_id=agreement.id,
        new_value=obj_in.model_dump(),
    )
    return agreement


def terminate_agreement(db: Session, agreement_id: int) -> RegionalAgreement:
    agreement = get_agreement_or_404(db, agreement_id)
    if agreement.status == AgreementStatus.TERMINATED:
        raise InvalidStatus("Regional agreement", agreement.status.value)

    old_value = _snapshot(agreement)
    agreement = crud_agreement.update_agreement(
        db,
        db_obj=agreement,
        update_data={"status": AgreementStatus.TERMINATED, "valid_until": utcnow()},
    )
    logger.info(f"Regional agreement {agreement.id} terminated")
    record_audit(
        db, action="TERMINATE", resource="regional_agreement", resource_id=agreement.id,
        old_value=old_value, new_value=_snapshot(agreement),
    )
    return agreement
