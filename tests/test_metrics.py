import datetime

import pytest

from tripdesk import models
from tripdesk.kinds import PROPERTIES, TOURS
from tripdesk.metrics import (
    DisplayStatus,
    ListingStats,
    booking_nights,
    days_since,
    display_status,
    enrich_listing,
    load_listing_stats,
    provider_status,
    utilization_rate,
)

pytestmark = pytest.mark.anyio

NOW = datetime.datetime(2026, 6, 1, 12, 0, 0)


def days_ago(days):
    return NOW - datetime.timedelta(days=days)


# --- Pure metrics ---
@pytest.mark.parametrize(
    "booking_count, age_days, expected",
    [
        (0, 100, 0.0),
        (10, 100, 10.0),
        (1, 3, 33.33),
        (500, 10, 100.0),  # clamped
        (5, 0, 0.0),  # listed today
    ],
)
def test_utilization_rate(booking_count, age_days, expected):
    assert utilization_rate(booking_count, days_ago(age_days), NOW) == expected


def test_utilization_rate_is_always_a_percentage():
    for count in range(0, 60, 7):
        for age in range(0, 40, 3):
            rate = utilization_rate(count, days_ago(age), NOW)
            assert 0.0 <= rate <= 100.0


def test_days_since_is_never_negative():
    assert days_since(NOW + datetime.timedelta(hours=5), NOW) == 0
    assert days_since(days_ago(2) - datetime.timedelta(hours=1), NOW) == 2
    assert days_since(None, NOW) == 0


@pytest.mark.parametrize(
    "approval, available, expected",
    [
        (models.ApprovalStatus.PENDING, True, DisplayStatus.PENDING),
        (models.ApprovalStatus.REJECTED, True, DisplayStatus.REJECTED),
        (models.ApprovalStatus.APPROVED, True, DisplayStatus.ACTIVE),
        (models.ApprovalStatus.APPROVED, False, DisplayStatus.INACTIVE),
        (models.ApprovalStatus.REQUIRES_CHANGES, True, DisplayStatus.UNKNOWN),
        (models.ApprovalStatus.UNDER_REVIEW, False, DisplayStatus.UNKNOWN),
    ],
)
def test_display_status(approval, available, expected):
    assert display_status(approval, available) == expected


def test_provider_status():
    assert provider_status(models.User(active=False, verified=True)) == "suspended"
    assert provider_status(models.User(active=True, verified=True)) == "verified"
    assert provider_status(models.User(active=True, verified=False, rejection_reason="Blurry ID")) == "rejected"
    assert provider_status(models.User(active=True, verified=False)) == "pending"


def test_booking_nights():
    booking = models.PropertyBooking(start_date=datetime.date(2026, 3, 1), end_date=datetime.date(2026, 3, 4))
    assert booking_nights(booking) == 3
    backwards = models.PropertyBooking(start_date=datetime.date(2026, 3, 4), end_date=datetime.date(2026, 3, 1))
    assert booking_nights(backwards) == 0


def test_enrich_listing_is_deterministic():
    listing = models.Property(
        approval_status=models.ApprovalStatus.APPROVED, available=True, created_at=days_ago(20)
    )
    stats = ListingStats(booking_count=4, total_revenue=1234.5, review_count=2)

    first = enrich_listing(listing, stats, NOW)
    second = enrich_listing(listing, stats, NOW)

    assert first == second
    assert first.utilization_rate == 20.0
    assert first.total_revenue == 1234.5
    assert first.days_active == 20
    assert first.display_status == DisplayStatus.ACTIVE


def test_enrich_listing_without_stats():
    listing = models.Tour(approval_status=models.ApprovalStatus.PENDING, available=True, created_at=days_ago(3))
    metrics = enrich_listing(listing, None, NOW)
    assert metrics.booking_count == 0
    assert metrics.total_revenue == 0.0
    assert metrics.utilization_rate == 0.0
    assert metrics.display_status == DisplayStatus.PENDING


# --- Batched stats ---
async def test_load_listing_stats_counts_completed_revenue_only(seed, session_factory):
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    busy = await seed.property(owner, name="Busy Flat")
    quiet = await seed.property(owner, name="Quiet Flat")

    await seed.booking(customer, busy, status=models.BookingStatus.COMPLETED, total_price=1000.0)
    await seed.booking(customer, busy, status=models.BookingStatus.COMPLETED, total_price=500.0)
    await seed.booking(customer, busy, status=models.BookingStatus.CONFIRMED, total_price=9999.0)
    await seed.booking(customer, busy, status=models.BookingStatus.CANCELLED, total_price=9999.0)
    await seed.review(customer, busy)

    stats = await load_listing_stats(PROPERTIES, [busy.id, quiet.id], session_factory)

    assert stats[busy.id].booking_count == 4
    assert stats[busy.id].total_revenue == 1500.0
    assert stats[busy.id].review_count == 1
    assert stats[busy.id].last_booking_at is not None
    assert stats[quiet.id] == ListingStats()


async def test_load_listing_stats_keeps_kinds_apart(seed, session_factory):
    """A tour and a property may share an id; their bookings must not mix."""
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    listing = await seed.property(owner)
    tour = await seed.tour(guide)
    assert listing.id == tour.id

    await seed.booking(customer, listing, status=models.BookingStatus.COMPLETED)

    tour_stats = await load_listing_stats(TOURS, [tour.id], session_factory)
    assert tour_stats[tour.id].booking_count == 0


async def test_load_listing_stats_with_no_ids(session_factory):
    assert await load_listing_stats(PROPERTIES, [], session_factory) == {}
