import datetime

import pytest

from tripdesk import models
from tripdesk.config import settings
from tripdesk.crud import Collection
from tripdesk.pagination import Page, PageRequest, booking_sort, paginate

pytestmark = pytest.mark.anyio


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, settings.DEFAULT_PAGE_SIZE)),
        (0, 10, (1, 10)),
        (-4, 10, (1, 10)),
        (3, 0, (3, 1)),
        (2, 10_000, (2, settings.MAX_PAGE_SIZE)),
        ("3", "15", (3, 15)),
        ("abc", "xyz", (1, settings.DEFAULT_PAGE_SIZE)),
        ("2.5", "", (1, settings.DEFAULT_PAGE_SIZE)),
    ],
)
def test_page_request_is_clamped(page, limit, expected):
    request = PageRequest.of(page, limit)
    assert (request.page, request.limit) == expected


def test_page_metadata():
    page = Page(items=[], total_count=23, page=2, limit=5)
    assert page.meta() == {
        "page": 2,
        "limit": 5,
        "total_count": 23,
        "total_pages": 5,
        "has_next": True,
        "has_prev": True,
    }

    empty = Page(items=[], total_count=0, page=1, limit=5)
    assert empty.total_pages == 0
    assert empty.has_next is False
    assert empty.has_prev is False


def test_unknown_sort_falls_back_to_default():
    table = booking_sort()
    assert [str(c) for c in table.resolve("sideways")] == [str(c) for c in table.resolve(None)]
    assert [str(c) for c in table.resolve("NEWEST")] == [str(c) for c in table.resolve("newest")]


async def test_pages_partition_rows_with_identical_sort_keys(seed, session_factory):
    """
    23 bookings created at the same instant: walking every page must visit
    each one exactly once.
    """
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.VEHICLE_OWNER)
    vehicle = await seed.vehicle(owner)
    created = datetime.datetime(2026, 1, 15, 12, 0, 0)
    await seed.add(*(seed.booking_for(customer, vehicle, created_at=created) for _ in range(23)))

    bookings = Collection(models.Booking, session_factory)
    order_by = booking_sort().resolve("newest")

    seen = []
    for number in range(1, 6):
        page = await paginate(bookings, None, order_by, PageRequest.of(number, 5))
        assert page.total_count == 23
        assert len(page.items) == min(5, 23 - (number - 1) * 5)
        seen.extend(booking.id for booking in page.items)

    assert len(seen) == 23
    assert len(set(seen)) == 23
    # Ties are broken by id, newest id first
    assert seen == sorted(seen, reverse=True)

    beyond = await paginate(bookings, None, order_by, PageRequest.of(6, 5))
    assert beyond.items == []
    assert beyond.total_count == 23
