import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Session

from settlement.crud import crud_agreement, crud_attribution
from settlement.models.agreement import AgreementStatus
from settlement.schemas.agreement import RegionalAgreementCreate
from tests.conftest import create_active_agreement, create_attribution

pytestmark = pytest.mark.crud


def test_create_agreement_is_pending(db_session: Session):
    obj_in = RegionalAgreementCreate(
        partner_id="partner_iberia", partner_name="Iberia SL", region_codes=["es", "PT", "ES"],
        region_name="Iberia", commission_percent=Decimal("20"),
    )
    agreement = crud_agreement.create_agreement(db_session, obj_in=obj_in, valid_from=datetime(2024, 1, 1))
    assert agreement.id is not None
    assert agreement.status == AgreementStatus.PENDING
    assert agreement.region_codes == ["ES", "PT"]
    assert agreement.commission_percent == Decimal("20.00")


def test_find_active_for_region(db_session: Session):
    agreement = create_active_agreement(db_session, valid_until=datetime(2025, 1, 1))
    assert crud_agreement.find_active_for_region(db_session, region_code="AT", as_of=datetime(2024, 6, 1)).id == agreement.id
    assert crud_agreement.find_active_for_region(db_session, region_code="AT", as_of=datetime(2025, 1, 1)) is not None
    assert crud_agreement.find_active_for_region(db_session, region_code="AT", as_of=datetime(2025, 1, 2)) is None
    assert crud_agreement.find_active_for_region(db_session, region_code="FR", as_of=datetime(2024, 6, 1)) is None


def test_find_conflicting_agreement(db_session: Session):
    create_active_agreement(db_session)
    assert crud_agreement.find_conflicting_agreement(db_session, region_codes=["ch", "LI"]) is not None
    assert crud_agreement.find_conflicting_agreement(db_session, region_codes=["FR"]) is None


def test_get_agreements_filters_by_region(db_session: Session):
    create_active_agreement(db_session)
    create_active_agreement(
        db_session, partner_id="partner_nordics", partner_name="Nordics AB", region_codes=("SE",), region_name="Nordics"
    )
    assert [a.partner_id for a in crud_agreement.get_agreements(db_session, region="se")] == ["partner_nordics"]
    assert len(crud_agreement.get_agreements(db_session, status=AgreementStatus.ACTIVE)) == 2
    assert crud_agreement.get_agreements(db_session, status=AgreementStatus.PENDING) == []


def test_record_purchase_counters(db_session: Session):
    attribution = create_attribution(db_session, customer_id="cust_42")

    first = crud_attribution.record_purchase(
        db_session, db_obj=attribution, order_id="ORD-1", order_amount=Decimal("40.00"), purchased_at=datetime(2024, 2, 1)
    )
    second = crud_attribution.record_purchase(
        db_session, db_obj=attribution, order_id="ORD-2", order_amount=Decimal("60.00"), purchased_at=datetime(2024, 3, 1)
    )
    db_session.commit()
    db_session.refresh(attribution)

    assert (first, second) == (True, False)
    assert attribution.first_purchase_order_id == "ORD-1"
    assert attribution.first_purchase_at == datetime(2024, 2, 1)
    assert attribution.total_purchases == 2
    assert attribution.total_revenue == Decimal("100.00")


def test_attribution_listing_and_stats(db_session: Session):
    as_of = datetime(2024, 6, 1)
    create_attribution(db_session, customer_id="cust_active", first_purchase_at=datetime(2023, 5, 1))
    create_attribution(db_session, customer_id="cust_expired", attributed_at=datetime(2020, 1, 1))
    create_attribution(db_session, customer_id="cust_other", partner_id="affiliate_ben")

    active = crud_attribution.get_attributions(db_session, active_only=True, as_of=as_of)
    assert {a.customer_id for a in active} == {"cust_active", "cust_other"}
    expired = crud_attribution.get_attributions(db_session, expired_only=True, as_of=as_of)
    assert [a.customer_id for a in expired] == ["cust_expired"]

    stats = crud_attribution.get_attribution_stats(db_session, partner_id="affiliate_anna", as_of=as_of)
    assert stats["total"] == 2
    assert stats["active"] == 1
    assert stats["with_purchase"] == 1
    assert stats["total_purchases"] == 1


def test_delete_attribution(db_session: Session):
    attribution = create_attribution(db_session, customer_id="cust_gone")
    crud_attribution.delete_attribution(db_session, db_obj=attribution)
    assert crud_attribution.get_attribution_by_customer(db_session, "cust_gone") is None
