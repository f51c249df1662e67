from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from settlement.models.commission import CommissionType, CommissionStatus


class CommissionLineItem(BaseModel):
    """One computed share of an order, before it is persisted."""
    commission_type: CommissionType
    recipient_id: str
    recipient_name: Optional[str] = None
    percent: Decimal
    amount: Decimal
    is_first_purchase: Optional[bool] = None
    customer_region: Optional[str] = None


class CommissionCalculation(BaseModel):
    order_id: str
    line_items: List[CommissionLineItem] = []
    # Affiliate share withheld because the regional partner already earns on this order
    suppressed_items: List[CommissionLineItem] = []
    total_commissions: Decimal
    net_for_seller: Decimal

    def find(self, *types: CommissionType) -> Optional[CommissionLineItem]:
        return next((item for item in self.line_items if item.commission_type in types), None)


class CommissionBase(BaseModel):
    order_id: str = Field(..., max_length=64)
    order_date: datetime
    order_amount: Decimal
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    is_platform_product: bool = False
    seller_partner_id: Optional[str] = None
    seller_partner_name: Optional[str] = None
    customer_id: str
    customer_region: Optional[str] = None
    commission_type: CommissionType
    recipient_id: str
    recipient_name: Optional[str] = None
    commission_percent: Decimal
    amount: Decimal
    currency: str = Field(default="EUR", max_length=3)
    is_first_purchase: bool = False
    status: CommissionStatus = CommissionStatus.PENDING


class CommissionCreate(CommissionBase):
    """Schema for creating a commission record. Used internally by order processing."""
    pass


class Commission(CommissionBase):
    """Full schema for returning commission data to the client."""
    id: int
    payout_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RefundRequest(BaseModel):
    order_id: str
    reason: str = Field(..., min_length=1)


class ApproveEligibleRequest(BaseModel):
    now: Optional[datetime] = None


class CountResult(BaseModel):
    message: str
    count: int


class AmountBucket(BaseModel):
    key: str
    count: int
    amount: Decimal


class CommissionStats(BaseModel):
    total_count: int
    total_amount: Decimal
    by_status: List[AmountBucket]
    by_type: List[AmountBucket]


class RecipientBalance(BaseModel):
    recipient_id: str
    recipient_name: Optional[str] = None
    commission_count: int
    total_amount: Decimal
    is_eligible: bool
    missing_amount: Decimal = Decimal("0")


class PendingPayoutSummary(BaseModel):
    eligible: List[RecipientBalance]
    below_minimum: List[RecipientBalance]
    minimum_payout: Decimal


class ProcessedOrder(BaseModel):
    calculation: CommissionCalculation
    commissions: List[Commission]
