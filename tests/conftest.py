import os
import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Use a separate SQLite database for testing; must be set before the app reads its config
TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_SQLALCHEMY_DATABASE_URL
os.environ["ENABLE_STRIPE_PAYOUTS"] = "false"

from settlement.main import app
from settlement.db.base_class import Base
from settlement.db.session import get_db
from settlement.core.config import CommissionSettings
from settlement.crud import crud_agreement, crud_attribution, crud_commission
from settlement.models.agreement import RegionalAgreement, AgreementStatus
from settlement.models.attribution import CustomerAttribution
from settlement.models.commission import Commission, CommissionType, CommissionStatus
from settlement.schemas.agreement import RegionalAgreementCreate
from settlement.schemas.attribution import CustomerAttributionCreate
from settlement.schemas.commission import CommissionCreate
from settlement.schemas.order import OrderInput

engine = create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.create_all(bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="session")
def test_engine():
    Base.metadata.create_all(bind=engine)
    yield engine


@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Provides a database session for each test function on freshly
    recreated tables, so every test starts from an empty database.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def settings() -> CommissionSettings:
    return CommissionSettings()


# Factory helpers

ORDER_DATE = datetime(2024, 3, 15, 12, 0, 0)


def make_order(**overrides) -> OrderInput:
    data = {
        "order_id": f"ORD-{uuid.uuid4().hex[:8]}",
        "order_date": ORDER_DATE,
        "net_amount": Decimal("100.00"),
        "is_platform_product": True,
        "customer_id": f"cust_{uuid.uuid4().hex[:6]}",
        "customer_billing_country": "DE",
    }
    data.update(overrides)
    return OrderInput(**data)


def create_active_agreement(
    db: Session,
    *,
    partner_id: str = "partner_dach",
    partner_name: str = "DACH Distribution GmbH",
    region_codes=("DE", "AT", "CH"),
    region_name: str = "DACH",
    commission_percent: Decimal = Decimal("30"),
    valid_from: datetime = datetime(2020, 1, 1),
    valid_until=None,
) -> RegionalAgreement:
    obj_in = RegionalAgreementCreate(
        partner_id=partner_id,
        partner_name=partner_name,
        region_codes=list(region_codes),
        region_name=region_name,
        commission_percent=commission_percent,
        valid_until=valid_until,
    )
    agreement = crud_agreement.create_agreement(db, obj_in=obj_in, valid_from=valid_from)
    return crud_agreement.update_agreement(
        db,
        db_obj=agreement,
        update_data={
            "status": AgreementStatus.ACTIVE,
            "contract_signed_at": valid_from,
            "contract_signed_by": "Test Signer",
            "contract_version": "1.0",
        },
    )


def create_attribution(
    db: Session,
    *,
    customer_id: str,
    partner_id: str = "affiliate_anna",
    partner_name: str = "Anna Affiliate",
    attributed_at: datetime = datetime(2023, 1, 1),
    expires_at: datetime = None,
    first_purchase_at: datetime = None,
) -> CustomerAttribution:
    attribution = crud_attribution.create_attribution(
        db,
        obj_in=CustomerAttributionCreate(
            customer_id=customer_id,
            attributed_partner_id=partner_id,
            attributed_partner_name=partner_name,
        ),
        attributed_at=attributed_at,
        expires_at=expires_at or attributed_at + relativedelta(years=3),
    )
    if first_purchase_at:
        attribution.first_purchase_at = first_purchase_at
        attribution.first_purchase_order_id = "ORD-EARLIER"
        attribution.total_purchases = 1
        db.commit()
        db.refresh(attribution)
    return attribution


def create_commission(
    db: Session,
    *,
    recipient_id: str = "affiliate_anna",
    amount: Decimal = Decimal("20.00"),
    status: CommissionStatus = CommissionStatus.APPROVED,
    order_id: str = None,
    order_date: datetime = ORDER_DATE,
    commission_type: CommissionType = CommissionType.AFFILIATE_RECURRING,
) -> Commission:
    return crud_commission.create_commission(
        db,
        obj_in=CommissionCreate(
            order_id=order_id or f"ORD-{uuid.uuid4().hex[:8]}",
            order_date=order_date,
            order_amount=Decimal("100.00"),
            customer_id=f"cust_{uuid.uuid4().hex[:6]}",
            commission_type=commission_type,
            recipient_id=recipient_id,
            recipient_name=recipient_id.replace("_", " ").title(),
            commission_percent=Decimal("10"),
            amount=amount,
            status=status,
        ),
    )
