"""
Derived per-row metrics: values shown next to a listing or booking that are
computed from stored data on every read and never persisted.
"""

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from . import models
from .aggregates import gather_all
from .crud import Collection
from .kinds import ListingKind

SECONDS_PER_DAY = 86400


class DisplayStatus(str, Enum):
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ListingStats:
    booking_count: int = 0
    total_revenue: float = 0.0
    last_booking_at: Optional[datetime.datetime] = None
    review_count: int = 0


EMPTY_STATS = ListingStats()


@dataclass(frozen=True)
class ListingMetrics:
    booking_count: int
    review_count: int
    total_revenue: float
    last_booking_at: Optional[datetime.datetime]
    days_active: int
    utilization_rate: float
    display_status: DisplayStatus


def days_since(created_at: Optional[datetime.datetime], now: datetime.datetime) -> int:
    """Whole days elapsed, never negative (clock skew yields 0)."""
    if created_at is None:
        return 0
    return max(int((now - created_at).total_seconds() // SECONDS_PER_DAY), 0)


def utilization_rate(booking_count: int, created_at: Optional[datetime.datetime], now: datetime.datetime) -> float:
    """
    Bookings per day of listing age as a percentage, clamped to [0, 100].
    A listing younger than one day has no measurable utilization yet and
    reports 0.
    """
    days = days_since(created_at, now)
    if days == 0 or booking_count <= 0:
        return 0.0
    return round(min(booking_count / days * 100, 100.0), 2)


def display_status(approval_status, available: bool) -> DisplayStatus:
    if approval_status == models.ApprovalStatus.PENDING:
        return DisplayStatus.PENDING
    if approval_status == models.ApprovalStatus.REJECTED:
        return DisplayStatus.REJECTED
    if approval_status == models.ApprovalStatus.APPROVED:
        return DisplayStatus.ACTIVE if available else DisplayStatus.INACTIVE
    return DisplayStatus.UNKNOWN


def provider_status(user: models.User) -> str:
    """One of ``pending``, ``verified``, ``rejected``, ``suspended``."""
    if not user.active:
        return "suspended"
    if user.verified:
        return "verified"
    if user.rejection_reason:
        return "rejected"
    return "pending"


def booking_nights(booking) -> int:
    if booking.start_date is None or booking.end_date is None:
        return 0
    return max((booking.end_date - booking.start_date).days, 0)


async def load_listing_stats(
    kind: ListingKind, ids: Iterable[int], session_factory: async_sessionmaker
) -> dict[int, ListingStats]:
    """
    Booking and review aggregates for a page of listings: one grouped query
    per table, run concurrently, instead of one query per row.
    """
    ids = list(ids)
    if not ids:
        return {}

    booking = models.Booking
    completed_revenue = func.coalesce(
        func.sum(case((booking.status == models.BookingStatus.COMPLETED, booking.total_price), else_=0.0)),
        0.0,
    )
    booking_rows, review_rows = await gather_all(
        Collection(booking, session_factory).grouped(
            kind.booking_fk,
            {
                "booking_count": func.count(booking.id),
                "total_revenue": completed_revenue,
                "last_booking_at": func.max(booking.created_at),
            },
            predicate=kind.booking_fk.in_(ids),
        ),
        Collection(models.Review, session_factory).grouped(
            kind.review_fk,
            {"review_count": func.count(models.Review.id)},
            predicate=kind.review_fk.in_(ids),
        ),
    )

    stats = {}
    for listing_id in ids:
        bookings = booking_rows.get(listing_id, {})
        reviews = review_rows.get(listing_id, {})
        stats[listing_id] = ListingStats(
            booking_count=int(bookings.get("booking_count") or 0),
            total_revenue=float(bookings.get("total_revenue") or 0.0),
            last_booking_at=bookings.get("last_booking_at"),
            review_count=int(reviews.get("review_count") or 0),
        )
    return stats


def enrich_listing(listing, stats: Optional[ListingStats], now: datetime.datetime) -> ListingMetrics:
    """Pure: the same listing, stats and clock always give the same metrics."""
    stats = stats or EMPTY_STATS
    return ListingMetrics(
        booking_count=stats.booking_count,
        review_count=stats.review_count,
        total_revenue=round(stats.total_revenue, 2),
        last_booking_at=stats.last_booking_at,
        days_active=days_since(listing.created_at, now),
        utilization_rate=utilization_rate(stats.booking_count, listing.created_at, now),
        display_status=display_status(listing.approval_status, listing.available),
    )
