import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class RevenueType(str, enum.Enum):
    MEMBERSHIP = "MEMBERSHIP"
    TRANSACTION = "TRANSACTION"


class RevenuePayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"


class RegionalPayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"


class RevenueRecord(Base):
    __tablename__ = "revenue_record"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    type = Column(Enum(RevenueType, native_enum=False, length=20), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Gross payment amount
    currency = Column(String(3), nullable=False, default="EUR")
    external_payment_id = Column(String(255), nullable=False, index=True)
    payment_date = Column(DateTime, nullable=False)

    partner_id = Column(String(64), nullable=False, index=True)  # Regional partner receiving the provision
    partner_provision = Column(Numeric(12, 2), nullable=False)
    platform_amount = Column(Numeric(12, 2), nullable=False)
    transaction_fee = Column(Numeric(12, 2), nullable=True)  # TRANSACTION only

    agreement_id = Column(Integer, ForeignKey("regional_agreement.id"), nullable=True)  # MEMBERSHIP only
    region_id = Column(String(64), nullable=True)  # billing country for MEMBERSHIP, caller-supplied region for TRANSACTION
    customer_id = Column(String(64), nullable=True)
    membership_type = Column(String(50), nullable=True)
    tenant_id = Column(String(64), nullable=True)
    transaction_type = Column(String(50), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    payout_period = Column(String(7), nullable=False, index=True)  # YYYY-MM
    payout_status = Column(Enum(RevenuePayoutStatus, native_enum=False, length=20), nullable=False, default=RevenuePayoutStatus.PENDING, index=True)
    payout_id = Column(Integer, ForeignKey("regional_payout.id"), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    payout = relationship("RegionalPayout", back_populates="revenue_records")

    def __repr__(self):
        return f"<RevenueRecord(id={self.id}, type='{self.type}', partner_id='{self.partner_id}', provision={self.partner_provision})>"


class RegionalPayout(Base):
    __tablename__ = "regional_payout"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    partner_id = Column(String(64), nullable=False, index=True)
    partner_name = Column(String(255), nullable=True)
    payout_period = Column(String(7), nullable=False, index=True)

    total_revenue = Column(Numeric(12, 2), nullable=False)
    total_provision = Column(Numeric(12, 2), nullable=False)
    revenue_count = Column(Integer, nullable=False)
    membership_provision = Column(Numeric(12, 2), nullable=False, default=0)
    transaction_provision = Column(Numeric(12, 2), nullable=False, default=0)
    membership_count = Column(Integer, nullable=False, default=0)
    transaction_count = Column(Integer, nullable=False, default=0)

    status = Column(Enum(RegionalPayoutStatus, native_enum=False, length=20), nullable=False, default=RegionalPayoutStatus.PENDING, index=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    revenue_records = relationship("RevenueRecord", back_populates="payout", order_by="RevenueRecord.payment_date.desc()")

    def __repr__(self):
        return f"<RegionalPayout(id={self.id}, partner_id='{self.partner_id}', period='{self.payout_period}', status='{self.status}')>"
