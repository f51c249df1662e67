import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Payout(Base):
    __tablename__ = "payout"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=True)
    destination_account = Column(String(255), nullable=False)  # e.g. Stripe Connect account id

    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_count = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    status = Column(Enum(PayoutStatus, native_enum=False, length=20), nullable=False, default=PayoutStatus.PENDING, index=True)
    transfer_ref = Column(String(255), nullable=True)
    external_payout_ref = Column(String(255), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    commissions = relationship("Commission", back_populates="payout")

    def __repr__(self):
        return f"<Payout(id={self.id}, recipient_id='{self.recipient_id}', total={self.total_amount}, status='{self.status}')>"
