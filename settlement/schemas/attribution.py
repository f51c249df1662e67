from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from settlement.models.attribution import AttributionSource


class CustomerAttributionCreate(BaseModel):
    customer_id: str = Field(..., min_length=1, max_length=64)
    customer_email: Optional[EmailStr] = None
    attributed_partner_id: str = Field(..., min_length=1, max_length=64)
    attributed_partner_name: Optional[str] = Field(default=None, max_length=255)
    source: AttributionSource = AttributionSource.AFFILIATE_CODE
    source_ref: Optional[str] = Field(default=None, max_length=255)


class CustomerAttribution(BaseModel):
    id: int
    customer_id: str
    customer_email: Optional[str] = None
    attributed_partner_id: str
    attributed_partner_name: Optional[str] = None
    source: AttributionSource
    source_ref: Optional[str] = None
    attributed_at: datetime
    expires_at: datetime
    first_purchase_at: Optional[datetime] = None
    first_purchase_order_id: Optional[str] = None
    total_purchases: int
    total_revenue: Decimal

    class Config:
        from_attributes = True


class AttributionStatus(BaseModel):
    """Lookup result for a single customer."""
    has_attribution: bool
    is_active: bool = False
    days_remaining: int = 0
    data: Optional[CustomerAttribution] = None


class RecordPurchase(BaseModel):
    order_id: str
    order_amount: Decimal = Field(..., gt=0)


class PurchaseRecorded(BaseModel):
    is_first_purchase: bool
    data: CustomerAttribution


class AttributionCheck(BaseModel):
    customer_id: str


class AttributionCheckResult(BaseModel):
    has_attribution: bool
    is_active: bool = False
    affiliate_partner_id: Optional[str] = None
    affiliate_partner_name: Optional[str] = None
    is_first_purchase: bool = True
    commission_percent: Optional[Decimal] = None


class AttributionStats(BaseModel):
    total_attributions: int
    active_attributions: int
    expired_attributions: int
    attributions_with_purchase: int
    conversion_rate: Decimal
    total_purchases: int
    total_revenue: Decimal
