import asyncio

import pytest

from tripdesk import models
from tripdesk.aggregates import Avg, Count, Sum, collect, gather_all, status_counts, within
from tripdesk.crud import Collection
from tripdesk.exceptions import ErrorCode, RequestTimeoutError, StoreError

pytestmark = pytest.mark.anyio


class SlowSpec:
    """Stands in for a query that never comes back in time."""

    empty = 0

    def __init__(self):
        self.cancelled = False

    async def run(self):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return 1

    def coerce(self, value):
        return value


class FailingSpec:
    empty = 0

    async def run(self):
        await asyncio.sleep(0)
        raise StoreError("disk I/O error")

    def coerce(self, value):
        return value


async def test_empty_store_reports_zero(session_factory):
    bookings = Collection(models.Booking, session_factory)
    result = await collect({
        "count": Count(bookings),
        "revenue": Sum(bookings, models.Booking.total_price),
        "average": Avg(bookings, models.Booking.total_price),
    })
    assert result == {"count": 0, "revenue": 0.0, "average": 0.0}


async def test_status_counts_include_every_status_and_total(seed, session_factory):
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner)
    await seed.booking(customer, listing, status=models.BookingStatus.CONFIRMED)
    await seed.booking(customer, listing, status=models.BookingStatus.CONFIRMED)
    await seed.booking(customer, listing, status=models.BookingStatus.CANCELLED)

    counts = await status_counts(
        Collection(models.Booking, session_factory), models.Booking.status, models.BookingStatus
    )
    assert counts == {"pending": 0, "confirmed": 2, "completed": 0, "cancelled": 1, "total": 3}


async def test_sum_and_average(seed, session_factory):
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner)
    for price in (100.0, 200.0, 600.0):
        await seed.booking(customer, listing, total_price=price)

    bookings = Collection(models.Booking, session_factory)
    result = await collect({
        "revenue": Sum(bookings, models.Booking.total_price),
        "average": Avg(bookings, models.Booking.total_price),
    })
    assert result == {"revenue": 900.0, "average": 300.0}


async def test_collect_times_out_and_cancels_outstanding_work(session_factory):
    slow = SlowSpec()
    specs = {"fast": Count(Collection(models.User, session_factory)), "slow": slow}

    with pytest.raises(RequestTimeoutError) as exc_info:
        await collect(specs, timeout=0.05)

    assert exc_info.value.code == ErrorCode.TIMEOUT
    assert exc_info.value.status_code == 504
    assert slow.cancelled is True


async def test_within_passes_results_through():
    async def answer():
        return 42

    assert await within(answer(), None) == 42
    assert await within(answer(), 1.0) == 42


async def test_failure_cancels_sibling_aggregates():
    slow = SlowSpec()

    with pytest.raises(StoreError):
        await collect({"broken": FailingSpec(), "slow": slow}, timeout=5.0)

    # The failure surfaced without waiting out the slow query
    assert slow.cancelled is True


async def test_gather_all_returns_results_in_order():
    async def value(number):
        await asyncio.sleep(0)
        return number

    assert await gather_all(value(1), value(2), value(3)) == [1, 2, 3]
