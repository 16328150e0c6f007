import datetime
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Count, collect, gather_all
from ..crud import Collection
from ..filters import listing_predicate, listing_status_clause
from ..kinds import ListingKind
from ..metrics import ListingMetrics, enrich_listing, load_listing_stats
from ..pagination import PageRequest, listing_sort, paginate
from .views import echo, enum_value, page_meta, user_summary

logger = logging.getLogger("tripdesk.listings")

LISTING_STATUSES = ("active", "inactive", "pending", "rejected")
TOP_PERFORMERS = 5


def listing_row(kind: ListingKind, listing, metrics: ListingMetrics) -> schemas.ListingRow:
    return schemas.ListingRow(
        id=listing.id,
        kind=kind.name,
        title=listing.title,
        type=getattr(listing, kind.type_attr),
        city=listing.city,
        price=getattr(listing, kind.price_attr),
        approval_status=enum_value(listing.approval_status),
        display_status=metrics.display_status.value,
        available=listing.available,
        is_featured=listing.is_featured,
        average_rating=listing.average_rating or 0.0,
        rejection_reason=listing.rejection_reason,
        owner=user_summary(getattr(listing, kind.owner_attr)),
        created_at=listing.created_at,
        booking_count=metrics.booking_count,
        review_count=metrics.review_count,
        total_revenue=metrics.total_revenue,
        last_booking_at=metrics.last_booking_at,
        days_active=metrics.days_active,
        utilization_rate=metrics.utilization_rate,
    )


def listing_count_specs(kind: ListingKind, listings: Collection) -> dict[str, Count]:
    """Platform-wide counts per display status, independent of the filters."""
    specs = {status: Count(listings, listing_status_clause(kind, status)) for status in LISTING_STATUSES}
    specs["total"] = Count(listings)
    return specs


async def top_performers(kind: ListingKind, listings: Collection) -> list:
    approved = kind.model.approval_status == models.ApprovalStatus.APPROVED
    return await listings.find(approved, order_by=listing_sort(kind).resolve("bookings"), take=TOP_PERFORMERS)


async def load_listings(
    kind: ListingKind,
    filters: schemas.ListingFilters,
    session_factory: async_sessionmaker,
    now: Optional[datetime.datetime] = None,
) -> schemas.ListingPage:
    now = now or models.utcnow()
    listings = Collection(kind.model, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)

    page, counts, top, cities = await gather_all(
        paginate(
            listings,
            listing_predicate(kind, filters),
            listing_sort(kind).resolve(filters.sort),
            page_request,
        ),
        collect(listing_count_specs(kind, listings)),
        top_performers(kind, listings),
        listings.distinct(kind.model.city),
    )

    # Enrichment needs the page, so it runs after the fetch, once for both lists
    stats = await load_listing_stats(kind, {row.id for row in [*page.items, *top]}, session_factory)
    logger.debug(f"Loaded {len(page.items)} of {page.total_count} {kind.name}")

    def rows(items):
        return [listing_row(kind, item, enrich_listing(item, stats.get(item.id), now)) for item in items]

    return schemas.ListingPage(
        items=rows(page.items),
        pagination=page_meta(page),
        counts=counts,
        top_performers=rows(top),
        cities=[city for city in cities if city],
        filters=echo(filters),
    )
