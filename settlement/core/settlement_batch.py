"""Batching policies shared by the two payout subsystems.

Commission payouts are cut per recipient once the approved balance reaches a
minimum (ThresholdPolicy). Regional revenue payouts are cut per partner for a
calendar month (PeriodPolicy). Both summarize their batch the same way.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Tuple, TypeVar

from dateutil.relativedelta import relativedelta

from settlement.core.exceptions import BelowMinimum
from settlement.core.money import round2, to_decimal

T = TypeVar("T")

_PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


@dataclass(frozen=True)
class BatchSummary:
    count: int
    total: Decimal
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


def summarize(
    items: Iterable[T],
    amount_of: Callable[[T], Decimal],
    date_of: Optional[Callable[[T], datetime]] = None,
) -> BatchSummary:
    """Count, total and date span of a batch. The total sums already-rounded amounts."""
    items = list(items)
    total = sum((to_decimal(amount_of(item)) for item in items), Decimal("0"))
    start = end = None
    if date_of and items:
        dates = [date_of(item) for item in items]
        start, end = min(dates), max(dates)
    return BatchSummary(count=len(items), total=round2(total), period_start=start, period_end=end)


class ThresholdPolicy:
    """A recipient's batch is payable once its total reaches the minimum."""

    def __init__(self, minimum: Decimal):
        self.minimum = to_decimal(minimum)

    def admits(self, total: Decimal) -> bool:
        return to_decimal(total) >= self.minimum

    def missing(self, total: Decimal) -> Decimal:
        return max(self.minimum - to_decimal(total), Decimal("0"))

    def check(self, total: Decimal) -> None:
        if not self.admits(total):
            raise BelowMinimum(to_decimal(total), self.minimum)


class PeriodPolicy:
    """A partner's batch covers every record of one calendar month ("YYYY-MM")."""

    def __init__(self, period: str):
        match = _PERIOD_RE.match(period or "")
        if not match:
            raise ValueError(f"Invalid payout period {period!r}, expected YYYY-MM")
        self.period = period
        self.start = datetime(int(match.group(1)), int(match.group(2)), 1)
        self.end = self.start + relativedelta(months=1)

    @staticmethod
    def period_of(moment: datetime) -> str:
        return f"{moment.year:04d}-{moment.month:02d}"

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def bounds(self) -> Tuple[datetime, datetime]:
        return self.start, self.end
