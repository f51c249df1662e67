"""Regional revenue share: membership and transaction-fee provisions for
regional partners, batched into one payout per partner and month."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.orm import Session

from settlement.core.agreements import AgreementRegistry, SqlAgreementRegistry
from settlement.core.audit import record_audit
from settlement.core.config import CommissionSettings, get_settings
from settlement.core.exceptions import NotFound, NoActiveAgreement, InvalidStatus, PayoutConflict
from settlement.core.money import utcnow, as_naive_utc, round2, percent_of
from settlement.core.settlement_batch import PeriodPolicy, summarize
from settlement.crud import crud_agreement, crud_revenue
from settlement.models.revenue import (
    RevenueRecord,
    RegionalPayout,
    RevenueType,
    RevenuePayoutStatus,
    RegionalPayoutStatus,
)
from settlement.schemas.revenue import (
    MembershipRevenueInput,
    TransactionRevenueInput,
    TransactionFee,
    PartnerDashboard,
)

logger = logging.getLogger(__name__)


def format_payout_period(moment: datetime) -> str:
    return PeriodPolicy.period_of(moment)


def _split(base: Decimal, partner_share: Decimal):
    # Platform gets the remainder so the two parts always add up to the base
    provision = round2(base * partner_share)
    return provision, round2(base - provision)


def calculate_transaction_fee(amount, *, settings: Optional[CommissionSettings] = None) -> TransactionFee:
    """Platform fee on a transaction (percent plus fixed part) and its partner/platform split."""
    settings = settings or get_settings()
    amount = round2(amount)
    fee = round2(percent_of(amount, settings.transaction_fee_percent) + settings.transaction_fee_fixed)
    provision, platform = _split(fee, settings.transaction_partner_share)
    return TransactionFee(amount=amount, transaction_fee=fee, partner_provision=provision, platform_amount=platform)


def track_membership_revenue(
    db: Session,
    obj_in: MembershipRevenueInput,
    *,
    settings: Optional[CommissionSettings] = None,
    agreements: Optional[AgreementRegistry] = None,
) -> RevenueRecord:
    settings = settings or get_settings()
    agreements = agreements or SqlAgreementRegistry(db)
    payment_date = as_naive_utc(obj_in.payment_date)

    agreement = agreements.find_active(obj_in.billing_country, payment_date)
    if not agreement:
        logger.warning(f"Membership payment {obj_in.external_payment_id}: no active agreement for {obj_in.billing_country}")
        raise NoActiveAgreement(obj_in.billing_country)

    amount = round2(obj_in.amount)
    provision, platform = _split(amount, settings.membership_partner_share)
    record = crud_revenue.create_revenue_record(
        db,
        data={
            "type": RevenueType.MEMBERSHIP,
            "amount": amount,
            "currency": obj_in.currency,
            "external_payment_id": obj_in.external_payment_id,
            "payment_date": payment_date,
            "partner_id": agreement.partner_id,
            "partner_provision": provision,
            "platform_amount": platform,
            "agreement_id": agreement.id,
            "region_id": obj_in.billing_country,
            "customer_id": obj_in.customer_id,
            "membership_type": obj_in.membership_type,
            "metadata_json": obj_in.metadata,
            "payout_period": format_payout_period(payment_date),
            "payout_status": RevenuePayoutStatus.PENDING,
        },
    )
    logger.info(
        f"Tracked membership revenue {record.external_payment_id}: {amount} {record.currency}, "
        f"provision {provision} to partner {record.partner_id}"
    )
    return record


def track_transaction_revenue(
    db: Session, obj_in: TransactionRevenueInput, *, settings: Optional[CommissionSettings] = None
) -> RevenueRecord:
    settings = settings or get_settings()
    payment_date = as_naive_utc(obj_in.payment_date)
    fee = calculate_transaction_fee(obj_in.amount, settings=settings)

    record = crud_revenue.create_revenue_record(
        db,
        data={
            "type": RevenueType.TRANSACTION,
            "amount": fee.amount,
            "currency": obj_in.currency,
            "external_payment_id": obj_in.external_payment_id,
            "payment_date": payment_date,
            "partner_id": obj_in.partner_id,
            "partner_provision": fee.partner_provision,
            "platform_amount": fee.platform_amount,
            "transaction_fee": fee.transaction_fee,
            "region_id": obj_in.region_id,
            "tenant_id": obj_in.tenant_id,
            "transaction_type": obj_in.transaction_type,
            "metadata_json": obj_in.metadata,
            "payout_period": format_payout_period(payment_date),
            "payout_status": RevenuePayoutStatus.PENDING,
        },
    )
    logger.info(
        f"Tracked transaction revenue {record.external_payment_id}: fee {fee.transaction_fee}, "
        f"provision {fee.partner_provision} to partner {record.partner_id}"
    )
    return record


def create_monthly_payouts(db: Session, period: str) -> List[int]:
    """
    Aggregate each active partner's PENDING revenue records of the period into
    a RegionalPayout. Partners without records are skipped. Re-running for the
    same period only picks up records that arrived since the last run.
    """
    policy = PeriodPolicy(period)
    payout_ids: List[int] = []
    seen_partners = set()

    for agreement in crud_agreement.get_active_agreements(db):
        if agreement.partner_id in seen_partners:
            continue
        seen_partners.add(agreement.partner_id)

        records = crud_revenue.get_pending_records(db, partner_id=agreement.partner_id, period=policy.period)
        if not records:
            logger.debug(f"No pending revenue for partner {agreement.partner_id} in {policy.period}")
            continue

        memberships = [r for r in records if r.type == RevenueType.MEMBERSHIP]
        transactions = [r for r in records if r.type == RevenueType.TRANSACTION]
        revenue = summarize(records, amount_of=lambda r: r.amount)
        provision = summarize(records, amount_of=lambda r: r.partner_provision)

        try:
            payout = crud_revenue.create_regional_payout(
                db,
                data={
                    "partner_id": agreement.partner_id,
                    "partner_name": agreement.partner_name,
                    "payout_period": policy.period,
                    "total_revenue": revenue.total,
                    "total_provision": provision.total,
                    "revenue_count": revenue.count,
                    "membership_provision": summarize(memberships, amount_of=lambda r: r.partner_provision).total,
                    "transaction_provision": summarize(transactions, amount_of=lambda r: r.partner_provision).total,
                    "membership_count": len(memberships),
                    "transaction_count": len(transactions),
                },
            )
            claimed = crud_revenue.link_records_to_payout(db, record_ids=[r.id for r in records], payout_id=payout.id)
            if claimed != revenue.count:
                raise PayoutConflict(
                    f"Only {claimed} of {revenue.count} revenue records could be claimed for partner "
                    f"{agreement.partner_id} in {policy.period}",
                    partner_id=agreement.partner_id,
                    period=policy.period,
                    claimed=claimed,
                    expected=revenue.count,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

        payout_ids.append(payout.id)
        logger.info(
            f"Created regional payout {payout.id} for partner {agreement.partner_id}, period {policy.period}: "
            f"{revenue.count} record(s), provision {provision.total}"
        )
        record_audit(
            db, action="CREATE", resource="regional_payout", resource_id=payout.id,
            new_value={"partner_id": agreement.partner_id, "period": policy.period, "total_provision": provision.total},
        )

    logger.info(f"Monthly payout run for {policy.period} created {len(payout_ids)} payout(s)")
    return payout_ids


def get_regional_payout_or_404(db: Session, payout_id: int) -> RegionalPayout:
    payout = crud_revenue.get_regional_payout(db, payout_id)
    if not payout:
        raise NotFound(f"Regional payout {payout_id} not found", payout_id=payout_id)
    return payout


def list_regional_payouts(
    db: Session,
    *,
    partner_id: Optional[str] = None,
    period: Optional[str] = None,
    status: Optional[RegionalPayoutStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[RegionalPayout]:
    return crud_revenue.get_regional_payouts(db, partner_id=partner_id, period=period, status=status, skip=skip, limit=limit)


def list_partner_revenues(
    db: Session,
    partner_id: str,
    *,
    period: Optional[str] = None,
    revenue_type: Optional[RevenueType] = None,
    payout_status: Optional[RevenuePayoutStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[RevenueRecord]:
    """Revenue records credited to a partner, latest payment first."""
    return crud_revenue.get_revenue_records(
        db, partner_id=partner_id, period=period, revenue_type=revenue_type,
        payout_status=payout_status, skip=skip, limit=limit,
    )


def approve_regional_payout(db: Session, payout_id: int, approved_by: str) -> RegionalPayout:
    payout = get_regional_payout_or_404(db, payout_id)
    if payout.status != RegionalPayoutStatus.PENDING:
        raise InvalidStatus(f"Regional payout {payout.id}", payout.status.value, RegionalPayoutStatus.PENDING.value)

    try:
        crud_revenue.update_regional_payout(
            db,
            db_obj=payout,
            update_data={"status": RegionalPayoutStatus.PROCESSING, "approved_at": utcnow(), "approved_by": approved_by},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Regional payout {payout.id} approved by {approved_by}")
    record_audit(db, action="APPROVE", resource="regional_payout", resource_id=payout.id, new_value={"approved_by": approved_by})
    return payout


def mark_payout_as_paid(
    db: Session, payout_id: int, payment_reference: str, paid_at: Optional[datetime] = None
) -> RegionalPayout:
    """Mark a regional payout and all of its revenue records PAID."""
    payout = get_regional_payout_or_404(db, payout_id)
    if payout.status == RegionalPayoutStatus.PAID:
        raise InvalidStatus(f"Regional payout {payout.id}", payout.status.value)

    paid_at = as_naive_utc(paid_at) if paid_at else utcnow()
    try:
        count = crud_revenue.mark_records_paid(db, payout_id=payout.id, paid_at=paid_at, payment_reference=payment_reference)
        crud_revenue.update_regional_payout(
            db,
            db_obj=payout,
            update_data={"status": RegionalPayoutStatus.PAID, "paid_at": paid_at, "payment_reference": payment_reference},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Regional payout {payout.id} PAID with reference {payment_reference}, {count} record(s) settled")
    record_audit(
        db, action="MARK_PAID", resource="regional_payout", resource_id=payout.id,
        new_value={"payment_reference": payment_reference, "paid_at": paid_at},
    )
    return payout


def partner_dashboard(db: Session, partner_id: str, as_of: Optional[datetime] = None) -> PartnerDashboard:
    agreements = crud_agreement.get_agreements_by_partner(db, partner_id=partner_id)
    if not agreements:
        raise NotFound(f"No regional agreement found for partner {partner_id}", partner_id=partner_id)
    agreement = agreements[0]

    current_period = format_payout_period(as_naive_utc(as_of) if as_of else utcnow())
    current_count, current_provision = crud_revenue.sum_partner_provision(db, partner_id=partner_id, period=current_period)
    _, pending = crud_revenue.sum_partner_provision(db, partner_id=partner_id, payout_status=RevenuePayoutStatus.PENDING)
    _, approved = crud_revenue.sum_partner_provision(db, partner_id=partner_id, payout_status=RevenuePayoutStatus.APPROVED)
    _, paid = crud_revenue.sum_partner_provision(db, partner_id=partner_id, payout_status=RevenuePayoutStatus.PAID)
    _, total = crud_revenue.sum_partner_provision(db, partner_id=partner_id)

    return PartnerDashboard(
        partner_id=partner_id,
        partner_name=agreement.partner_name,
        region_name=agreement.region_name,
        current_period=current_period,
        current_period_provision=round2(current_provision),
        current_period_count=current_count,
        pending_provision=round2(pending + approved),
        total_provision=round2(total),
        total_paid=round2(paid),
        payout_count=crud_revenue.count_regional_payouts(db, partner_id=partner_id),
    )
