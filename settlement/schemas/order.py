from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal


class OrderInput(BaseModel):
    """
    A completed sale handed to the engine. Orders are owned by the selling
    system; the engine never persists them, only the commissions they produce.
    """
    order_id: str = Field(..., min_length=1, max_length=64)
    order_date: datetime
    net_amount: Decimal = Field(..., gt=0)
    is_platform_product: bool = False
    seller_partner_id: Optional[str] = Field(default=None, max_length=64)
    seller_partner_name: Optional[str] = Field(default=None, max_length=255)
    product_id: Optional[str] = Field(default=None, max_length=64)
    product_name: Optional[str] = Field(default=None, max_length=255)
    customer_id: str = Field(..., min_length=1, max_length=64)
    customer_billing_country: str = Field(..., min_length=2, max_length=2)

    @field_validator("customer_billing_country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()


class OrderRequest(OrderInput):
    """Order as received over HTTP; order_date defaults to the time of the request."""
    order_date: Optional[datetime] = None
