import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Avg, Sum, collect, gather_all, status_counts
from ..crud import Collection
from ..exceptions import NotFoundError
from ..filters import booking_predicate
from ..metrics import booking_nights
from ..pagination import PageRequest, booking_sort, paginate
from .views import echo, enum_value, listing_ref, page_meta, user_summary

logger = logging.getLogger("tripdesk.bookings")

Booking = models.Booking
BookingStatus = models.BookingStatus


def booking_row(booking) -> schemas.BookingRow:
    return schemas.BookingRow(
        id=booking.id,
        booking_type=booking.booking_type,
        status=enum_value(booking.status),
        total_price=booking.total_price,
        start_date=booking.start_date,
        end_date=booking.end_date,
        nights=booking_nights(booking),
        guests=booking.guests,
        cancellation_reason=booking.cancellation_reason,
        created_at=booking.created_at,
        confirmed_at=booking.confirmed_at,
        cancelled_at=booking.cancelled_at,
        completed_at=booking.completed_at,
        customer=user_summary(booking.customer),
        listing=listing_ref(booking.listing),
    )


def revenue_specs(bookings: Collection) -> dict:
    return {
        "total_revenue": Sum(bookings, Booking.total_price, Booking.status == BookingStatus.COMPLETED),
        "average_booking_value": Avg(bookings, Booking.total_price, Booking.status != BookingStatus.CANCELLED),
    }


async def load_bookings(filters: schemas.BookingFilters, session_factory: async_sessionmaker) -> schemas.BookingPage:
    """All three booking kinds live in one table, so one page covers them all."""
    bookings = Collection(Booking, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)

    page, counts, revenue = await gather_all(
        paginate(bookings, booking_predicate(filters), booking_sort().resolve(filters.sort), page_request),
        status_counts(bookings, Booking.status, BookingStatus),
        collect(revenue_specs(bookings)),
    )
    logger.debug(f"Loaded {len(page.items)} of {page.total_count} bookings")

    return schemas.BookingPage(
        items=[booking_row(booking) for booking in page.items],
        pagination=page_meta(page),
        counts=counts,
        revenue={label: round(value, 2) for label, value in revenue.items()},
        filters=echo(filters),
    )


async def load_booking(booking_id: int, session_factory: async_sessionmaker) -> schemas.BookingRow:
    booking = await Collection(Booking, session_factory).get(booking_id)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking_row(booking)
