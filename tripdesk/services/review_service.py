
from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Avg, Count, collect, gather_all, prefixed, unprefixed
from ..crud import Collection
from ..filters import review_predicate
from ..pagination import PageRequest, paginate, review_sort
from .views import echo, enum_value, listing_ref, page_meta, user_summary

Review = models.Review


def review_row(review) -> schemas.ReviewRow:
    return schemas.ReviewRow(
        id=review.id,
        service_type=enum_value(review.service_type),
        rating=review.rating,
        content=review.content,
        response=review.response,
        is_hidden=review.is_hidden,
        is_flagged=review.is_flagged,
        is_featured=review.is_featured,
        hidden_reason=review.hidden_reason,
        created_at=review.created_at,
        user=user_summary(review.user),
        listing=listing_ref(review.listing),
    )


def review_stat_specs(reviews: Collection) -> dict:
    published = Review.is_hidden.is_(False)
    specs = {
        "total": Count(reviews),
        "published": Count(reviews, published),
        "hidden": Count(reviews, Review.is_hidden.is_(True)),
        "flagged": Count(reviews, Review.is_flagged.is_(True)),
        "featured": Count(reviews, Review.is_featured.is_(True)),
        "average_rating": Avg(reviews, Review.rating, published),
    }
    specs.update(prefixed("rating:", {str(stars): Count(reviews, Review.rating == stars) for stars in range(1, 6)}))
    specs.update(prefixed("type:", {
        service_type.value.lower(): Count(reviews, Review.service_type == service_type)
        for service_type in models.ServiceType
    }))
    return specs


async def load_reviews(filters: schemas.ReviewFilters, session_factory: async_sessionmaker) -> schemas.ReviewPage:
    reviews = Collection(Review, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)

    page, summary = await gather_all(
        paginate(reviews, review_predicate(filters), review_sort().resolve(filters.sort), page_request),
        collect(review_stat_specs(reviews)),
    )

    stats = {label: value for label, value in summary.items() if ":" not in label}
    stats["average_rating"] = round(stats["average_rating"], 2)
    return schemas.ReviewPage(
        items=[review_row(review) for review in page.items],
        pagination=page_meta(page),
        stats=stats,
        rating_distribution=unprefixed("rating:", summary),
        service_types=unprefixed("type:", summary),
        filters=echo(filters),
    )
