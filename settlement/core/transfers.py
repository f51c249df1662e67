import logging
import time
from decimal import Decimal
from typing import Dict, Optional, Protocol

import stripe

from settlement.core import config
from settlement.core.exceptions import TransferError
from settlement.core.money import round2

logger = logging.getLogger(__name__)


class TransferProcessor(Protocol):
    def initiate_transfer(
        self,
        amount: Decimal,
        currency: str,
        destination_account: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Start a transfer and return the processor's reference for it."""
        ...


class StripeTransferProcessor:
    """Stripe Connect transfers to a connected account."""

    def initiate_transfer(self, amount, currency, destination_account, metadata=None) -> str:
        if not stripe.api_key:
            logger.error("Stripe API key is not configured. Cannot create transfer.")
            raise TransferError("Payment system configuration error.")

        metadata = metadata or {}
        amount_in_cents = int(round2(amount) * 100)
        payout_id = metadata.get("payout_id", "")
        options = {}
        if payout_id:
            # A retry of the same payout and amount returns the original transfer
            options["idempotency_key"] = f"payout_{payout_id}_{amount_in_cents}"
        try:
            transfer = stripe.Transfer.create(
                amount=amount_in_cents,
                currency=currency.lower(),
                destination=destination_account,
                metadata=metadata,
                transfer_group=f"payout_{payout_id}",
                **options,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe transfer to {destination_account} failed: {e}")
            user_message = getattr(e, "user_message", None) or str(e)
            raise TransferError(f"Payment gateway error: {user_message}") from e

        logger.info(f"Created Stripe transfer {transfer.id} to {destination_account}, amount={amount_in_cents} cents")
        return transfer.id


class SimulatedTransferProcessor:
    """Used while Stripe payouts are disabled; completion is reported later by an operator."""

    def initiate_transfer(self, amount, currency, destination_account, metadata=None) -> str:
        reference = f"tr_mock_{int(time.time() * 1000)}"
        logger.info(f"Simulated transfer {reference} of {amount} {currency} to {destination_account}")
        return reference


def get_transfer_processor() -> TransferProcessor:
    if config.ENABLE_STRIPE_PAYOUTS:
        return StripeTransferProcessor()
    return SimulatedTransferProcessor()
