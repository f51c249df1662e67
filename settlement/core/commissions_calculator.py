import logging
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.agreements import AgreementRegistry, SqlAgreementRegistry
from settlement.core.attributions import AttributionStore, SqlAttributionStore
from settlement.core.audit import record_audit
from settlement.core.config import CommissionSettings, get_settings
from settlement.core.exceptions import DuplicateOrder
from settlement.core.money import percent_of, round2, as_naive_utc
from settlement.crud import crud_commission
from settlement.models.commission import Commission, CommissionType, CommissionStatus
from settlement.schemas.commission import CommissionLineItem, CommissionCalculation, CommissionCreate
from settlement.schemas.order import OrderInput

logger = logging.getLogger(__name__)


def calculate_commissions(
    order: OrderInput,
    *,
    agreements: AgreementRegistry,
    attributions: AttributionStore,
    settings: CommissionSettings,
) -> CommissionCalculation:
    """
    Split one order into its commission line items. Evaluation order is fixed:
    regional exclusivity, then affiliate, then platform fee. Nothing is written.
    """
    order_date = as_naive_utc(order.order_date)
    net_amount = round2(order.net_amount)
    line_items: List[CommissionLineItem] = []
    suppressed_items: List[CommissionLineItem] = []

    # 1. Regional exclusivity
    regional_item = None
    if order.is_platform_product:
        agreement = agreements.find_active(order.customer_billing_country, order_date)
        if not agreement:
            logger.debug(f"Order {order.order_id}: no active regional agreement for {order.customer_billing_country}")
        elif agreement.partner_id == order.customer_id:
            logger.info(f"Order {order.order_id}: buyer {order.customer_id} is the regional partner, no regional commission")
        else:
            regional_item = CommissionLineItem(
                commission_type=CommissionType.REGIONAL_EXCLUSIVE,
                recipient_id=agreement.partner_id,
                recipient_name=agreement.partner_name,
                percent=Decimal(agreement.commission_percent),
                amount=percent_of(net_amount, agreement.commission_percent),
                customer_region=agreement.region_name,
            )
            line_items.append(regional_item)

    # 2. Affiliate
    attribution = attributions.get(order.customer_id)
    if not attribution:
        logger.debug(f"Order {order.order_id}: customer {order.customer_id} has no attribution")
    elif not attribution.is_active(order_date):
        logger.info(f"Order {order.order_id}: attribution of customer {order.customer_id} expired at {attribution.expires_at}")
    else:
        is_first = attribution.first_purchase_at is None
        percent = settings.affiliate_first_percent if is_first else settings.affiliate_recurring_percent
        affiliate_item = CommissionLineItem(
            commission_type=CommissionType.AFFILIATE_FIRST if is_first else CommissionType.AFFILIATE_RECURRING,
            recipient_id=attribution.attributed_partner_id,
            recipient_name=attribution.attributed_partner_name,
            percent=percent,
            amount=percent_of(net_amount, percent),
            is_first_purchase=is_first,
        )
        # A regional partner never earns twice on the same platform order
        if regional_item and regional_item.recipient_id == affiliate_item.recipient_id:
            logger.info(
                f"Order {order.order_id}: affiliate commission suppressed, {affiliate_item.recipient_id} already earns the regional share"
            )
            suppressed_items.append(affiliate_item)
        else:
            line_items.append(affiliate_item)

    # 3. Platform fee
    if order.seller_partner_id:
        line_items.append(
            CommissionLineItem(
                commission_type=CommissionType.PLATFORM_FEE,
                recipient_id=settings.platform_partner_id,
                recipient_name=settings.platform_partner_name,
                percent=settings.platform_fee_percent,
                amount=percent_of(net_amount, settings.platform_fee_percent),
            )
        )

    total = sum((item.amount for item in line_items), Decimal("0"))
    return CommissionCalculation(
        order_id=order.order_id,
        line_items=line_items,
        suppressed_items=suppressed_items,
        total_commissions=round2(total),
        net_for_seller=round2(net_amount - total),
    )


async def process_order(
    db: Session,
    order: OrderInput,
    *,
    settings: Optional[CommissionSettings] = None,
    agreements: Optional[AgreementRegistry] = None,
    attributions: Optional[AttributionStore] = None,
) -> CommissionCalculation:
    """
    Calculate and persist the commissions of an order as PENDING, and update
    the buyer's attribution purchase counters. An order is processed at most once.
    """
    settings = settings or get_settings()
    agreements = agreements or SqlAgreementRegistry(db)
    attributions = attributions or SqlAttributionStore(db)
    logger.info(f"Starting commission processing for order ID: {order.order_id}")

    if crud_commission.order_has_commissions(db, order_id=order.order_id):
        logger.warning(f"Order ID: {order.order_id} already has commissions, rejecting duplicate")
        raise DuplicateOrder(order.order_id)

    calculation = calculate_commissions(order, agreements=agreements, attributions=attributions, settings=settings)
    order_date = as_naive_utc(order.order_date)

    objs_in = [
        CommissionCreate(
            order_id=order.order_id,
            order_date=order_date,
            order_amount=round2(order.net_amount),
            product_id=order.product_id,
            product_name=order.product_name,
            is_platform_product=order.is_platform_product,
            seller_partner_id=order.seller_partner_id,
            seller_partner_name=order.seller_partner_name,
            customer_id=order.customer_id,
            customer_region=item.customer_region,
            commission_type=item.commission_type,
            recipient_id=item.recipient_id,
            recipient_name=item.recipient_name,
            commission_percent=item.percent,
            amount=item.amount,
            currency=settings.currency,
            is_first_purchase=bool(item.is_first_purchase),
            status=CommissionStatus.PENDING,
        )
        for item in calculation.line_items
    ]

    try:
        crud_commission.add_commissions(db, objs_in=objs_in)
        # Purchase counters move whenever the buyer had an active affiliate, paid or suppressed
        if calculation.find(CommissionType.AFFILIATE_FIRST, CommissionType.AFFILIATE_RECURRING) or calculation.suppressed_items:
            attribution = attributions.get(order.customer_id)
            attributions.record_purchase(attribution, order.order_id, round2(order.net_amount), order_date)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Order ID: {order.order_id} was processed concurrently, rejecting duplicate")
        raise DuplicateOrder(order.order_id)
    except Exception:
        db.rollback()
        raise

    for item in calculation.line_items:
        logger.info(
            f"Created {item.commission_type.value} commission for order ID: {order.order_id}, recipient ID: {item.recipient_id}, amount: {item.amount}"
        )
    logger.info(
        f"Commission processing finished for order ID: {order.order_id}: {len(calculation.line_items)} item(s), "
        f"total {calculation.total_commissions}, net for seller {calculation.net_for_seller}"
    )
    record_audit(
        db, action="PROCESS_ORDER", resource="commission", resource_id=order.order_id,
        new_value=calculation.model_dump(),
    )
    return calculation


def get_order_commissions(db: Session, order_id: str) -> List[Commission]:
    return crud_commission.get_commissions_by_order_id(db, order_id=order_id)
