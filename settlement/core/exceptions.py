"""Domain errors raised by the settlement engine.

Core functions raise these; the API layer maps them to HTTP responses.
"""
from decimal import Decimal
from typing import Optional


class SettlementError(Exception):
    """Base class for every structured failure of the engine."""
    code = "SETTLEMENT_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(SettlementError):
    code = "NOT_FOUND"


class DuplicateOrder(SettlementError):
    code = "DUPLICATE_ORDER"

    def __init__(self, order_id: str):
        super().__init__(f"Commissions for order {order_id} already exist", order_id=order_id)
        self.order_id = order_id


class NoEligibleCommissions(SettlementError):
    code = "NO_COMMISSIONS"

    def __init__(self, recipient_id: str):
        super().__init__(
            f"No approved commissions to pay out for recipient {recipient_id}",
            recipient_id=recipient_id,
        )


class BelowMinimum(SettlementError):
    code = "BELOW_MINIMUM"

    def __init__(self, total_amount: Decimal, minimum_payout: Decimal):
        super().__init__(
            f"Total amount {total_amount} is below minimum {minimum_payout}",
            total_amount=str(total_amount),
            minimum_payout=str(minimum_payout),
        )
        self.total_amount = total_amount
        self.minimum_payout = minimum_payout


class InvalidStatus(SettlementError):
    code = "INVALID_STATUS"

    def __init__(self, resource: str, current: str, expected: Optional[str] = None):
        message = f"{resource} is {current}"
        if expected:
            message += f", expected {expected}"
        super().__init__(message, current=current, expected=expected)
        self.current = current
        self.expected = expected


class PayoutConflict(SettlementError):
    """Another payout claimed one of the commissions while this one was being created."""
    code = "PAYOUT_CONFLICT"


class NoActiveAgreement(SettlementError):
    code = "NO_ACTIVE_AGREEMENT"

    def __init__(self, region_code: str):
        super().__init__(
            f"No active regional agreement found for country: {region_code}",
            region_code=region_code,
        )


class RegionConflict(SettlementError):
    code = "REGION_CONFLICT"


class AlreadyAttributed(SettlementError):
    code = "ALREADY_ATTRIBUTED"


class AlreadySigned(SettlementError):
    code = "ALREADY_SIGNED"


class TransferError(SettlementError):
    """The transfer processor rejected or could not initiate a transfer."""
    code = "TRANSFER_FAILED"
