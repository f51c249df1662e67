from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from settlement.models.commission import CommissionType, CommissionStatus
from settlement.models.payout import PayoutStatus


class PayoutCreate(BaseModel):
    recipient_id: str = Field(..., min_length=1)
    destination_account: str = Field(..., min_length=1)


class PayoutComplete(BaseModel):
    external_payout_ref: Optional[str] = None


class PayoutFail(BaseModel):
    reason: str = Field(..., min_length=1)


class PayoutNestedCommission(BaseModel):
    """A simplified Commission schema for nesting within Payout."""
    id: int
    order_id: str
    commission_type: CommissionType
    amount: Decimal
    status: CommissionStatus

    class Config:
        from_attributes = True


class Payout(BaseModel):
    id: int
    recipient_id: str
    recipient_name: Optional[str] = None
    destination_account: str
    total_amount: Decimal
    commission_count: int
    currency: str
    period_start: datetime
    period_end: datetime
    status: PayoutStatus
    transfer_ref: Optional[str] = None
    external_payout_ref: Optional[str] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PayoutWithCommissions(Payout):
    commissions: List[PayoutNestedCommission] = []


class PayoutStatusBucket(BaseModel):
    status: PayoutStatus
    count: int
    amount: Decimal


class PayoutStats(BaseModel):
    total_paid_out: Decimal
    total_payouts: int
    by_status: List[PayoutStatusBucket]
