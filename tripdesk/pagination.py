import math
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import case, func, select

from . import models
from .aggregates import gather_all
from .config import settings
from .crud import Collection
from .filters import parse_int
from .kinds import ListingKind

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_SIZE

    @classmethod
    def of(cls, page, limit) -> "PageRequest":
        """
        Clamp user input: page >= 1, limit within [1, MAX_PAGE_SIZE]. Values
        that are not whole numbers fall back to the defaults.
        """
        page = parse_int(page)
        limit = parse_int(limit)
        page = 1 if page is None else max(page, 1)
        limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
        return cls(page=page, limit=min(max(limit, 1), settings.MAX_PAGE_SIZE))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    items: list[T]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.total_count else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def meta(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


async def paginate(
    collection: Collection,
    predicate,
    order_by: Sequence,
    page_request: PageRequest,
    options: Iterable = (),
) -> Page:
    """
    Fetch one page and the un-paginated count of the same predicate. The two
    reads are independent and run concurrently.
    """
    items, total = await gather_all(
        collection.find(
            predicate,
            order_by=order_by,
            skip=page_request.offset,
            take=page_request.limit,
            options=options,
        ),
        collection.count(predicate),
    )
    return Page(items=items, total_count=total, page=page_request.page, limit=page_request.limit)


# --- Sort tables ---
@dataclass(frozen=True)
class SortTable:
    """Named orderings for one route; unknown keys resolve to ``default``."""

    orderings: dict[str, tuple]
    default: str
    tie_breaker: Any = field(default=None)

    def resolve(self, key: Optional[str]) -> list:
        name = key.strip().lower() if key else self.default
        ordering = self.orderings.get(name, self.orderings[self.default])
        # Ties on the sort column are broken by primary key so pages partition exactly
        return [*ordering, self.tie_breaker]


def listing_sort(kind: ListingKind) -> SortTable:
    model = kind.model
    booking_count = (
        select(func.count())
        .select_from(models.Booking)
        .where(kind.booking_fk == model.id)
        .correlate(model)
        .scalar_subquery()
    )
    return SortTable(
        orderings={
            "newest": (model.created_at.desc(),),
            "oldest": (model.created_at.asc(),),
            "price_low": (kind.price.asc(),),
            "price_high": (kind.price.desc(),),
            "rating": (model.average_rating.desc(),),
            "bookings": (booking_count.desc(),),
        },
        default="newest",
        tie_breaker=model.id.desc(),
    )


def booking_sort() -> SortTable:
    booking = models.Booking
    return SortTable(
        orderings={
            "newest": (booking.created_at.desc(),),
            "oldest": (booking.created_at.asc(),),
            "price_high": (booking.total_price.desc(),),
            "price_low": (booking.total_price.asc(),),
            "check_in": (booking.start_date.asc(),),
        },
        default="newest",
        tie_breaker=booking.id.desc(),
    )


def review_sort() -> SortTable:
    review = models.Review
    return SortTable(
        orderings={
            "newest": (review.created_at.desc(),),
            "oldest": (review.created_at.asc(),),
            "rating": (review.rating.desc(),),
            "rating_low": (review.rating.asc(),),
        },
        default="newest",
        tie_breaker=review.id.desc(),
    )


PRIORITY_RANK = {
    models.TicketPriority.HIGH: 0,
    models.TicketPriority.MEDIUM: 1,
    models.TicketPriority.LOW: 2,
}

STATUS_RANK = {status: rank for rank, status in enumerate(models.TicketStatus)}


def ticket_sort() -> SortTable:
    ticket = models.SupportTicket
    priority_rank = case(
        *((ticket.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()),
        else_=len(PRIORITY_RANK),
    )
    status_rank = case(
        *((ticket.status == status, rank) for status, rank in STATUS_RANK.items()),
        else_=len(STATUS_RANK),
    )
    return SortTable(
        orderings={
            "newest": (ticket.created_at.desc(),),
            "oldest": (ticket.created_at.asc(),),
            "priority": (priority_rank.asc(), ticket.created_at.desc()),
            "status": (status_rank.asc(), ticket.created_at.desc()),
        },
        default="newest",
        tie_breaker=ticket.id.desc(),
    )


def user_sort() -> SortTable:
    """Shared by the provider queue and the user directory."""
    user = models.User
    return SortTable(
        orderings={
            "newest": (user.created_at.desc(),),
            "oldest": (user.created_at.asc(),),
            "name": (user.name.asc(),),
            "last_active": (user.last_active_at.desc(),),
        },
        default="newest",
        tie_breaker=user.id.desc(),
    )


def audit_sort() -> SortTable:
    entry = models.AuditLog
    return SortTable(
        orderings={
            "newest": (entry.created_at.desc(),),
            "oldest": (entry.created_at.asc(),),
            "action": (entry.action.asc(), entry.created_at.desc()),
        },
        default="newest",
        tie_breaker=entry.id.desc(),
    )
