import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, JSON, Enum
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class AgreementStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class AppliesTo(str, enum.Enum):
    PLATFORM_PRODUCTS = "PLATFORM_PRODUCTS"
    ALL_PRODUCTS = "ALL_PRODUCTS"


class RegionalAgreement(Base):
    __tablename__ = "regional_agreement"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    partner_id = Column(String(64), nullable=False, index=True)  # Exclusive distributor
    partner_name = Column(String(255), nullable=False)

    region_codes = Column(JSON, nullable=False)  # Upper-case ISO 3166-1 alpha-2 codes, e.g. ["DE", "AT", "CH"]
    region_name = Column(String(100), nullable=False)  # e.g. "DACH"

    commission_percent = Column(Numeric(5, 2), nullable=False)
    applies_to = Column(Enum(AppliesTo, native_enum=False, length=30), nullable=False, default=AppliesTo.PLATFORM_PRODUCTS)

    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=True)  # None means open-ended
    status = Column(Enum(AgreementStatus, native_enum=False, length=20), nullable=False, default=AgreementStatus.PENDING, index=True)

    contract_signed_at = Column(DateTime, nullable=True)
    contract_signed_by = Column(String(255), nullable=True)
    contract_version = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def covers(self, region_code: str) -> bool:
        return region_code.upper() in (self.region_codes or [])

    def is_valid_at(self, as_of) -> bool:
        if self.valid_from > as_of:
            return False
        return self.valid_until is None or self.valid_until >= as_of

    def __repr__(self):
        return f"<RegionalAgreement(id={self.id}, partner_id='{self.partner_id}', region='{self.region_name}', status='{self.status}')>"
