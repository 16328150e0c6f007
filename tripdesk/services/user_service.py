from sqlalchemy import func
from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Count, collect, gather_all, prefixed, status_count_specs, unprefixed
from ..crud import Collection
from ..filters import account_status_clause, user_predicate
from ..pagination import PageRequest, paginate, user_sort
from .views import echo, enum_value, page_meta

User = models.User

ACCOUNT_STATUSES = ("verified", "unverified", "active", "inactive")


def user_row(user, activity: dict) -> schemas.UserRow:
    return schemas.UserRow(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        role=enum_value(user.role),
        business_name=user.business_name,
        verified=user.verified,
        active=user.active,
        created_at=user.created_at,
        last_active_at=user.last_active_at,
        booking_count=activity.get("booking_count", 0),
        review_count=activity.get("review_count", 0),
    )


async def load_activity(ids: list[int], session_factory: async_sessionmaker) -> dict[int, dict]:
    """Booking and review totals for a page of users, one grouped query each."""
    if not ids:
        return {}
    booking, review = models.Booking, models.Review
    bookings, reviews = await gather_all(
        Collection(booking, session_factory).grouped(
            booking.customer_id, {"booking_count": func.count(booking.id)}, predicate=booking.customer_id.in_(ids)
        ),
        Collection(review, session_factory).grouped(
            review.user_id, {"review_count": func.count(review.id)}, predicate=review.user_id.in_(ids)
        ),
    )
    return {
        user_id: {
            "booking_count": int(bookings.get(user_id, {}).get("booking_count") or 0),
            "review_count": int(reviews.get(user_id, {}).get("review_count") or 0),
        }
        for user_id in ids
    }


async def load_users(filters: schemas.UserFilters, session_factory: async_sessionmaker) -> schemas.UserPage:
    """
    Every account on the platform, filtered and paginated. Role and status
    counts cover the whole directory, not the filtered page.
    """
    users = Collection(User, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)

    summary_specs = prefixed("role:", status_count_specs(users, User.role, models.UserRole))
    summary_specs.update(prefixed("status:", {
        status: Count(users, account_status_clause(status)) for status in ACCOUNT_STATUSES
    }))

    page, summary = await gather_all(
        paginate(users, user_predicate(filters), user_sort().resolve(filters.sort), page_request),
        collect(summary_specs),
    )
    activity = await load_activity([user.id for user in page.items], session_factory)

    return schemas.UserPage(
        items=[user_row(user, activity[user.id]) for user in page.items],
        pagination=page_meta(page),
        role_counts=unprefixed("role:", summary),
        status_counts=unprefixed("status:", summary),
        filters=echo(filters),
    )
