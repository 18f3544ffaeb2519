"""
Group-by and reduce building blocks shared by the aggregation queries.

Each query is expressed as filter -> extract -> group-by -> reduce. The
reducers here apply the null policy: absent values never reach a sum,
count or average.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, TypeVar

from ..event_models import Event
from ..extraction import CanonicalField, extract_raw, parse_strict_decimal

T = TypeVar("T")


def hour_bucket(ts: datetime) -> datetime:
    """Truncate a timestamp to the start of its UTC hour."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def rank(
    rows: Iterable[T],
    metric: Callable[[T], Any],
    tiebreak: Callable[[T], Any],
    limit: int | None = None,
) -> list[T]:
    """Order rows by metric descending, then tiebreak ascending, and truncate."""
    ordered = sorted(rows, key=lambda row: (-metric(row), tiebreak(row)))
    return ordered if limit is None else ordered[:limit]


def percentage(numerator: int, denominator: int) -> float:
    """numerator/denominator as a percentage; 0 when denominator is 0."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100


def to_number(value: Decimal) -> float:
    return float(value)


@dataclass
class PurchaseTotals:
    """
    Running purchase figures for one group.

    ``purchases`` counts events carrying a non-null purchaseAmount, valid or
    not; ``revenue`` and the average only see values that pass strict
    decimal validation.
    """
    purchases: int = 0
    valid: int = 0
    total: Decimal = field(default_factory=Decimal)

    def add(self, event: Event):
        raw = extract_raw(event.source, event.funnel_stage, event.payload, CanonicalField.PURCHASE_AMOUNT)
        if raw is None:
            return
        self.purchases += 1
        amount = parse_strict_decimal(raw)
        if amount is not None:
            self.valid += 1
            self.total += amount

    @property
    def revenue(self) -> float:
        return to_number(self.total)

    @property
    def average(self) -> float:
        if not self.valid:
            return 0.0
        return to_number(self.total / self.valid)


@dataclass
class CountryGroup:
    event_count: int = 0
    users: set[str] = field(default_factory=set)
    purchases: PurchaseTotals = field(default_factory=PurchaseTotals)


@dataclass
class EntityGroup:
    """Events attributed to one campaign or user."""
    count: int = 0
    revenue: PurchaseTotals = field(default_factory=PurchaseTotals)
    max_followers: int | None = None

    def observe_followers(self, followers: int | None):
        if followers is None:
            return
        if self.max_followers is None or followers > self.max_followers:
            self.max_followers = followers
