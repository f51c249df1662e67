import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class CommissionType(str, enum.Enum):
    REGIONAL_EXCLUSIVE = "REGIONAL_EXCLUSIVE"
    AFFILIATE_FIRST = "AFFILIATE_FIRST"
    AFFILIATE_RECURRING = "AFFILIATE_RECURRING"
    PLATFORM_FEE = "PLATFORM_FEE"


AFFILIATE_TYPES = (CommissionType.AFFILIATE_FIRST, CommissionType.AFFILIATE_RECURRING)


class CommissionStatus(str, enum.Enum):
    PENDING = "PENDING"      # Inside the hold period
    APPROVED = "APPROVED"    # Payable, may be linked to a payout
    REFUNDED = "REFUNDED"    # Underlying order refunded before payment
    PAID = "PAID"            # Settled through a completed payout


class Commission(Base):
    __tablename__ = "commission"
    # One line item per type and order; also backs the duplicate-order guard
    __table_args__ = (UniqueConstraint("order_id", "commission_type", name="uq_commission_order_type"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(64), nullable=False, index=True)
    order_date = Column(DateTime, nullable=False, index=True)
    order_amount = Column(Numeric(12, 2), nullable=False)  # Net order amount the percent was applied to

    product_id = Column(String(64), nullable=True)
    product_name = Column(String(255), nullable=True)
    is_platform_product = Column(Boolean, nullable=False, default=False)
    seller_partner_id = Column(String(64), nullable=True, index=True)
    seller_partner_name = Column(String(255), nullable=True)
    customer_id = Column(String(64), nullable=False, index=True)
    customer_region = Column(String(100), nullable=True)

    commission_type = Column(Enum(CommissionType, native_enum=False, length=30), nullable=False, index=True)
    recipient_id = Column(String(64), nullable=False, index=True)  # Partner who earned this commission
    recipient_name = Column(String(255), nullable=True)
    commission_percent = Column(Numeric(5, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    is_first_purchase = Column(Boolean, nullable=False, default=False)

    status = Column(Enum(CommissionStatus, native_enum=False, length=20), nullable=False, default=CommissionStatus.PENDING, index=True)
    approved_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_reason = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    payout_id = Column(Integer, ForeignKey("payout.id"), nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    payout = relationship("Payout", back_populates="commissions")

    def __repr__(self):
        return f"<Commission(id={self.id}, order_id='{self.order_id}', recipient_id='{self.recipient_id}', type='{self.commission_type}', amount={self.amount})>"
