import os
import logging
from decimal import Decimal

import stripe
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./settlement.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Single-currency deployment
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "EUR")

# Recipient used for platform fee line items
PLATFORM_PARTNER_ID: str = os.getenv("PLATFORM_PARTNER_ID", "PLATFORM")
PLATFORM_PARTNER_NAME: str = os.getenv("PLATFORM_PARTNER_NAME", "Platform Operator")

# Stripe Connect transfers for commission payouts
STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "sk_test_YOUR_STRIPE_SECRET_KEY")
ENABLE_STRIPE_PAYOUTS: bool = os.getenv("ENABLE_STRIPE_PAYOUTS", "false").lower() == "true"

if STRIPE_SECRET_KEY and "YOUR_STRIPE_SECRET_KEY" not in STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
elif ENABLE_STRIPE_PAYOUTS:
    logger.warning("Stripe payouts are enabled but the Stripe secret key is not configured.")


class CommissionSettings(BaseModel):
    """Rates, windows and thresholds used by the settlement engine.

    Percent values are whole percentages (20 means 20%), shares are
    fractions (0.30 means 30%).
    """
    affiliate_first_percent: Decimal = Decimal("20")
    affiliate_recurring_percent: Decimal = Decimal("10")
    platform_fee_percent: Decimal = Decimal("2")
    hold_period_days: int = Field(default=30, ge=0)
    minimum_payout: Decimal = Decimal("50")
    attribution_years: int = Field(default=3, ge=1)

    membership_partner_share: Decimal = Decimal("0.30")
    transaction_fee_percent: Decimal = Decimal("3.9")
    transaction_fee_fixed: Decimal = Decimal("0.50")
    transaction_partner_share: Decimal = Decimal("0.30")

    currency: str = Field(default="EUR", max_length=3)
    platform_partner_id: str = "PLATFORM"
    platform_partner_name: str = "Platform Operator"

    @property
    def membership_platform_share(self) -> Decimal:
        return Decimal("1") - self.membership_partner_share

    @property
    def transaction_platform_share(self) -> Decimal:
        return Decimal("1") - self.transaction_partner_share


def get_settings() -> CommissionSettings:
    """Build the settings from the environment, falling back to the defaults."""
    return CommissionSettings(
        hold_period_days=int(os.getenv("COMMISSION_HOLD_DAYS", 30)),
        minimum_payout=Decimal(os.getenv("MINIMUM_PAYOUT", "50")),
        currency=DEFAULT_CURRENCY,
        platform_partner_id=PLATFORM_PARTNER_ID,
        platform_partner_name=PLATFORM_PARTNER_NAME,
    )
