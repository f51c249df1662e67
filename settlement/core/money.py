from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round2(value) -> Decimal:
    """Round to cents, half away from zero (ROUND_HALF_UP on Decimal)."""
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def percent_of(amount, percent) -> Decimal:
    return round2(to_decimal(amount) * to_decimal(percent) / HUNDRED)


def utcnow() -> datetime:
    # Timestamps are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
