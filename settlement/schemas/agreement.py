from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from settlement.models.agreement import AgreementStatus, AppliesTo


class RegionalAgreementBase(BaseModel):
    partner_id: str = Field(..., min_length=1, max_length=64)
    partner_name: str = Field(..., min_length=1, max_length=255)
    region_codes: List[str] = Field(..., min_length=1)
    region_name: str = Field(..., min_length=1, max_length=100)
    commission_percent: Decimal = Field(..., ge=0, le=100)
    applies_to: AppliesTo = AppliesTo.PLATFORM_PRODUCTS
    notes: Optional[str] = None

    @field_validator("region_codes")
    @classmethod
    def normalize_region_codes(cls, v: List[str]) -> List[str]:
        codes = []
        for code in v:
            if len(code) != 2:
                raise ValueError(f"Region code must be ISO 3166-1 alpha-2: {code!r}")
            if code.upper() not in codes:
                codes.append(code.upper())
        return codes


class RegionalAgreementCreate(RegionalAgreementBase):
    valid_from: Optional[datetime] = None  # Defaults to now
    valid_until: Optional[datetime] = None


class RegionalAgreementUpdate(BaseModel):
    commission_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    valid_until: Optional[datetime] = None
    status: Optional[AgreementStatus] = None
    notes: Optional[str] = None


class SignContract(BaseModel):
    signed_by: str = Field(..., min_length=3)
    contract_version: str = "1.0"


class RegionalAgreement(RegionalAgreementBase):
    id: int
    valid_from: datetime
    valid_until: Optional[datetime] = None
    status: AgreementStatus
    contract_signed_at: Optional[datetime] = None
    contract_signed_by: Optional[str] = None
    contract_version: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
