"""Client-side aggregation behind the admin and user dashboards."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence, TypeVar

from soccerzone.domain import Booking, User

logger = logging.getLogger(__name__)

CURRENCY = "₦"


class _HasCreatedAt(Protocol):
    created_at: str


T = TypeVar("T", bound=_HasCreatedAt)


@dataclass(frozen=True)
class DashboardStats:
    total_bookings: int
    total_revenue: float
    confirmed_revenue: float
    pending_revenue: float
    total_users: int


def parse_created_at(value: str) -> dt.datetime | None:
    if not value:
        return None
    try:
        # Backend timestamps look like 2025-06-01T09:12:44.123Z
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def filter_by_created(items: Sequence[T], start: dt.date | None, end: dt.date | None) -> list[T]:
    """Items created between start and end, both days included.

    Without both bounds the filter is off and everything is returned.
    """
    if start is None or end is None:
        return list(items)

    lower = dt.datetime.combine(start, dt.time.min)
    upper = dt.datetime.combine(end, dt.time.max)

    result: list[T] = []
    for item in items:
        created = parse_created_at(item.created_at)
        if created is not None and lower <= created <= upper:
            result.append(item)
    return result


def revenue_summary(bookings: Iterable[Booking], users: Iterable[User]) -> DashboardStats:
    bookings = list(bookings)
    confirmed = sum(b.total_amount for b in bookings if b.status == "confirmed")
    pending = sum(b.total_amount for b in bookings if b.status != "confirmed")
    return DashboardStats(
        total_bookings=len(bookings),
        total_revenue=confirmed + pending,
        confirmed_revenue=confirmed,
        pending_revenue=pending,
        total_users=len(list(users)),
    )


def monthly_spending(bookings: Iterable[Booking]) -> list[tuple[str, float]]:
    """Total amount per calendar month, oldest first, labelled like 'Jun 2025'."""
    totals: dict[tuple[int, int], float] = {}
    for b in bookings:
        created = parse_created_at(b.created_at)
        if created is None:
            logger.warning("Skipping booking %s with invalid date %r", b.booking_id, b.created_at)
            continue
        key = (created.year, created.month)
        totals[key] = totals.get(key, 0.0) + b.total_amount

    return [(dt.date(year, month, 1).strftime("%b %Y"), totals[(year, month)]) for year, month in sorted(totals)]


def average_spending(bookings: Sequence[Booking], total_amount: float) -> float:
    if not bookings:
        return 0.0
    return total_amount / len(bookings)


def format_currency(amount: float, *, compact: bool = True) -> str:
    if compact:
        for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
            if amount >= threshold:
                return f"{CURRENCY}{amount / threshold:.1f}{suffix}"
    if float(amount).is_integer():
        return f"{CURRENCY}{int(amount):,}"
    return f"{CURRENCY}{amount:,.2f}"


def search_users(users: Iterable[User], query: str) -> list[User]:
    q = query.strip().lower()
    if not q:
        return list(users)
    return [u for u in users if q in u.name.lower() or q in u.email.lower()]
