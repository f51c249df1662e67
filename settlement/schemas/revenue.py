from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from decimal import Decimal

from settlement.models.revenue import RevenueType, RevenuePayoutStatus, RegionalPayoutStatus

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class MembershipRevenueInput(BaseModel):
    external_payment_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="EUR", max_length=3)
    payment_date: datetime
    customer_id: str
    membership_type: str = Field(..., max_length=50)
    billing_country: str = Field(..., min_length=2, max_length=2)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("billing_country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()


class TransactionRevenueInput(BaseModel):
    external_payment_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="EUR", max_length=3)
    payment_date: datetime
    tenant_id: str
    transaction_type: str = Field(..., max_length=50)  # e.g. EVENT_BOOKING, MENTORING, WORKSHOP
    region_id: str
    partner_id: str
    metadata: Optional[Dict[str, Any]] = None


class TransactionFee(BaseModel):
    amount: Decimal
    transaction_fee: Decimal
    partner_provision: Decimal
    platform_amount: Decimal


class RevenueRecord(BaseModel):
    id: int
    type: RevenueType
    amount: Decimal
    currency: str
    external_payment_id: str
    payment_date: datetime
    partner_id: str
    partner_provision: Decimal
    platform_amount: Decimal
    transaction_fee: Optional[Decimal] = None
    membership_type: Optional[str] = None
    transaction_type: Optional[str] = None
    payout_period: str
    payout_status: RevenuePayoutStatus
    payout_id: Optional[int] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None

    class Config:
        from_attributes = True


class MonthlyPayoutRequest(BaseModel):
    period: str = Field(..., pattern=PERIOD_PATTERN)


class MonthlyPayoutResult(BaseModel):
    period: str
    payout_ids: List[int]
    count: int


class RegionalPayoutApprove(BaseModel):
    approved_by: str = Field(..., min_length=1)


class RegionalPayoutMarkPaid(BaseModel):
    payment_reference: str = Field(..., min_length=1)
    paid_at: Optional[datetime] = None


class RegionalPayout(BaseModel):
    id: int
    partner_id: str
    partner_name: Optional[str] = None
    payout_period: str
    total_revenue: Decimal
    total_provision: Decimal
    revenue_count: int
    membership_provision: Decimal
    transaction_provision: Decimal
    membership_count: int
    transaction_count: int
    status: RegionalPayoutStatus
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RegionalPayoutWithRecords(RegionalPayout):
    revenue_records: List[RevenueRecord] = []


class PartnerDashboard(BaseModel):
    partner_id: str
    partner_name: Optional[str] = None
    region_name: Optional[str] = None
    current_period: str
    current_period_provision: Decimal
    current_period_count: int
    pending_provision: Decimal
    total_provision: Decimal
    total_paid: Decimal
    payout_count: int
