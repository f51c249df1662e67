import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Enum
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class AttributionSource(str, enum.Enum):
    AFFILIATE_CODE = "AFFILIATE_CODE"
    REFERRAL_LINK = "REFERRAL_LINK"
    MANUAL = "MANUAL"
    MIGRATION = "MIGRATION"


class CustomerAttribution(Base):
    __tablename__ = "customer_attribution"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(String(64), unique=True, nullable=False, index=True)  # First click wins
    customer_email = Column(String(255), nullable=True)

    attributed_partner_id = Column(String(64), nullable=False, index=True)
    attributed_partner_name = Column(String(255), nullable=True)
    source = Column(Enum(AttributionSource, native_enum=False, length=30), nullable=False, default=AttributionSource.AFFILIATE_CODE)
    source_ref = Column(String(255), nullable=True)

    attributed_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    # Purchase tracking, the only mutable part of an attribution
    first_purchase_at = Column(DateTime, nullable=True)
    first_purchase_order_id = Column(String(64), nullable=True)
    total_purchases = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def is_active(self, as_of) -> bool:
        # Inclusive: an attribution expiring exactly at the order date still counts
        return self.expires_at >= as_of

    def __repr__(self):
        return f"<CustomerAttribution(customer_id='{self.customer_id}', partner_id='{self.attributed_partner_id}', expires_at={self.expires_at})>"
