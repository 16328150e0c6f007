"""
Query predicate builders.

Each builder turns one route's raw query-string filters into a single
SQLAlchemy boolean clause. Builders never raise: an absent, empty or
``"all"`` value adds no constraint, a malformed range side adds no bound,
and an enum value that names nothing yields a clause that matches no rows.
"""

import datetime
import math
from enum import Enum
from typing import Iterable, Optional, Type

from sqlalchemy import String, and_, cast, false, func, or_, select, true

from . import models, schemas
from .kinds import LISTING_KINDS, ListingKind, resolve_kind

ALL = "all"

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


# --- Value parsing ---
def is_unset(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped.lower() == ALL
    return False


def parse_number(text) -> Optional[float]:
    if text is None:
        return None
    try:
        number = float(str(text).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int(text) -> Optional[int]:
    number = parse_number(text)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_range(text) -> tuple[Optional[float], Optional[float]]:
    """``"1000-3000"`` -> ``(1000.0, 3000.0)``; either side may be missing."""
    if is_unset(text):
        return None, None
    low, _, high = text.partition("-")
    return parse_number(low), parse_number(high)


def parse_date(text) -> Optional[datetime.date]:
    if is_unset(text):
        return None
    try:
        return datetime.date.fromisoformat(text.strip()[:10])
    except ValueError:
        return None


def parse_bool(text) -> Optional[bool]:
    if is_unset(text):
        return None
    lowered = text.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def parse_enum(enum_cls: Type[Enum], text) -> Optional[Enum]:
    """Case-insensitive lookup by name; ``None`` when nothing matches."""
    key = text.strip().upper().replace("-", "_").replace(" ", "_")
    return enum_cls.__members__.get(key)


# --- Clause helpers ---
def combine(conditions: Iterable) -> object:
    return and_(true(), *conditions)


def text_search(term, columns) -> Optional[object]:
    """Case-insensitive substring match; `%` and `_` in the term are literal."""
    if is_unset(term):
        return None
    needle = term.strip()
    return or_(*(column.icontains(needle, autoescape=True) for column in columns))


def user_match(relationship, term) -> Optional[object]:
    """Name or email substring match across a many-to-one user relationship."""
    if is_unset(term):
        return None
    return relationship.has(text_search(term, [models.User.name, models.User.email]))


def enum_equals(column, enum_cls: Type[Enum], text) -> Optional[object]:
    if is_unset(text):
        return None
    member = parse_enum(enum_cls, text)
    if member is None:
        return false()
    return column == member


def range_clause(column, text) -> list:
    low, high = parse_range(text)
    conditions = []
    if low is not None:
        conditions.append(column >= low)
    if high is not None:
        conditions.append(column <= high)
    return conditions


def timestamp_range(column, date_from, date_to) -> list:
    """Inclusive on both days: ``dateTo`` covers the whole of that day."""
    conditions = []
    start = parse_date(date_from)
    end = parse_date(date_to)
    if start is not None:
        conditions.append(column >= datetime.datetime.combine(start, datetime.time.min))
    if end is not None:
        conditions.append(
            column < datetime.datetime.combine(end + datetime.timedelta(days=1), datetime.time.min)
        )
    return conditions


def _keep(*conditions) -> list:
    return [c for c in conditions if c is not None]


def _or_present(*clauses) -> Optional[object]:
    present = [c for c in clauses if c is not None]
    if not present:
        return None
    return or_(*present)


# --- Listings ---
def listing_status_clause(kind: ListingKind, status) -> Optional[object]:
    if is_unset(status):
        return None
    model = kind.model
    mapping = {
        "active": and_(model.approval_status == models.ApprovalStatus.APPROVED, model.available.is_(True)),
        "inactive": and_(model.approval_status == models.ApprovalStatus.APPROVED, model.available.is_(False)),
        "pending": model.approval_status == models.ApprovalStatus.PENDING,
        "rejected": model.approval_status == models.ApprovalStatus.REJECTED,
    }
    clause = mapping.get(status.strip().lower())
    if clause is not None:
        return clause
    # Fall back to the raw approval status (under_review, requires_changes, ...)
    return enum_equals(model.approval_status, models.ApprovalStatus, status)


def listing_predicate(kind: ListingKind, filters: schemas.ListingFilters):
    model = kind.model
    listing_type = filters.category if is_unset(filters.type) else filters.type
    conditions = _keep(
        _or_present(text_search(filters.search, kind.search_columns), user_match(kind.owner, filters.search)),
        listing_status_clause(kind, filters.status),
        None if is_unset(listing_type) else func.lower(kind.type_column) == listing_type.strip().lower(),
        text_search(filters.location, [model.city]),
        user_match(kind.owner, filters.owner),
        user_match(kind.owner, filters.guide),
    )
    conditions += range_clause(kind.price, filters.price_range)

    min_rating = None if is_unset(filters.rating) else parse_number(filters.rating)
    if min_rating is not None:
        conditions.append(model.average_rating >= min_rating)
    return combine(conditions)


# --- Bookings ---
def _booking_listing_search(term) -> Optional[object]:
    """Title/city match against whichever listing the booking points at."""
    if is_unset(term):
        return None
    return or_(*(
        select(kind.model.id)
        .where(kind.model.id == kind.booking_fk, text_search(term, kind.search_columns))
        .exists()
        for kind in LISTING_KINDS.values()
    ))


def booking_predicate(filters: schemas.BookingFilters):
    booking = models.Booking
    conditions = _keep(
        _or_present(
            text_search(filters.search, [cast(booking.id, String)]),
            user_match(booking.customer, filters.search),
            _booking_listing_search(filters.search),
        ),
        enum_equals(booking.status, models.BookingStatus, filters.status),
    )
    if not is_unset(filters.type):
        kind = resolve_kind(filters.type)
        conditions.append(false() if kind is None else booking.booking_type == kind.booking_type)

    conditions += range_clause(booking.total_price, filters.price_range)

    # Booking date filters apply to the check-in day
    start = parse_date(filters.date_from)
    end = parse_date(filters.date_to)
    if start is not None:
        conditions.append(booking.start_date >= start)
    if end is not None:
        conditions.append(booking.start_date <= end)
    return combine(conditions)


# --- Reviews ---
def review_status_clause(status) -> Optional[object]:
    if is_unset(status):
        return None
    review = models.Review
    mapping = {
        "published": review.is_hidden.is_(False),
        "hidden": review.is_hidden.is_(True),
        "flagged": review.is_flagged.is_(True),
        "featured": review.is_featured.is_(True),
    }
    return mapping.get(status.strip().lower(), false())


def review_predicate(filters: schemas.ReviewFilters):
    review = models.Review
    conditions = _keep(
        _or_present(
            text_search(filters.search, [review.content, review.response]),
            user_match(review.user, filters.search),
        ),
        review_status_clause(filters.status),
        enum_equals(review.service_type, models.ServiceType, filters.service_type),
    )

    if not is_unset(filters.rating):
        rating = parse_int(filters.rating)
        if rating is not None:
            conditions.append(review.rating == rating)

    has_response = parse_bool(filters.has_response)
    if has_response is True:
        conditions.append(and_(review.response.is_not(None), review.response != ""))
    elif has_response is False:
        conditions.append(or_(review.response.is_(None), review.response == ""))

    conditions += timestamp_range(review.created_at, filters.date_from, filters.date_to)
    return combine(conditions)


# --- Support tickets ---
def assignee_clause(value) -> Optional[object]:
    if is_unset(value):
        return None
    ticket = models.SupportTicket
    if value.strip().lower() == "unassigned":
        return ticket.assigned_to_id.is_(None)
    assignee_id = parse_int(value)
    if assignee_id is None:
        return false()
    return ticket.assigned_to_id == assignee_id


def user_type_clause(value) -> Optional[object]:
    if is_unset(value):
        return None
    ticket = models.SupportTicket
    if value.strip().lower() == "provider":
        return ticket.user.has(models.User.role.in_(models.PROVIDER_ROLES))
    role = parse_enum(models.UserRole, value)
    if role is None:
        return false()
    return ticket.user.has(models.User.role == role)


def ticket_predicate(filters: schemas.TicketFilters):
    ticket = models.SupportTicket
    conditions = _keep(
        _or_present(
            text_search(filters.search, [ticket.subject, ticket.description, cast(ticket.id, String)]),
            user_match(ticket.user, filters.search),
        ),
        enum_equals(ticket.status, models.TicketStatus, filters.status),
        enum_equals(ticket.priority, models.TicketPriority, filters.priority),
        enum_equals(ticket.category, models.TicketCategory, filters.category),
        assignee_clause(filters.assigned_to),
        user_type_clause(filters.user_type),
    )

    escalated = parse_bool(filters.escalated)
    if escalated is not None:
        conditions.append(ticket.is_escalated.is_(escalated))

    conditions += timestamp_range(ticket.created_at, filters.date_from, filters.date_to)
    return combine(conditions)


# --- Approval queue ---
def approval_predicate(kind: ListingKind, filters: schemas.ApprovalFilters):
    conditions = _keep(
        _or_present(text_search(filters.search, kind.search_columns), user_match(kind.owner, filters.search)),
        enum_equals(kind.model.approval_status, models.ApprovalStatus, filters.status),
    )
    return combine(conditions)


PROVIDER_STATUSES = ("pending", "verified", "rejected", "suspended")


def provider_status_clause(status) -> Optional[object]:
    if is_unset(status):
        return None
    user = models.User
    mapping = {
        "pending": and_(user.active.is_(True), user.verified.is_(False), user.rejection_reason.is_(None)),
        "verified": and_(user.active.is_(True), user.verified.is_(True)),
        "rejected": and_(user.active.is_(True), user.verified.is_(False), user.rejection_reason.is_not(None)),
        "suspended": user.active.is_(False),
    }
    return mapping.get(status.strip().lower(), false())


def provider_predicate(filters: schemas.ProviderFilters):
    user = models.User
    conditions = [user.role.in_(models.PROVIDER_ROLES)]
    conditions += _keep(
        text_search(filters.search, [user.name, user.email, user.business_name]),
        provider_status_clause(filters.status),
        enum_equals(user.role, models.UserRole, filters.type),
    )
    return combine(conditions)


# --- User directory ---
def account_status_clause(status) -> Optional[object]:
    if is_unset(status):
        return None
    user = models.User
    mapping = {
        "verified": user.verified.is_(True),
        "unverified": user.verified.is_(False),
        "active": user.active.is_(True),
        "inactive": user.active.is_(False),
    }
    return mapping.get(status.strip().lower(), false())


def user_predicate(filters: schemas.UserFilters):
    """Every account except super admins, who are managed elsewhere."""
    user = models.User
    conditions = [user.role != models.UserRole.SUPER_ADMIN]
    conditions += _keep(
        text_search(filters.search, [user.name, user.email, user.phone]),
        enum_equals(user.role, models.UserRole, filters.role),
        account_status_clause(filters.status),
    )
    conditions += timestamp_range(user.created_at, filters.date_from, filters.date_to)
    return combine(conditions)


# --- Audit log ---
def actor_clause(value) -> Optional[object]:
    if is_unset(value):
        return None
    entry = models.AuditLog
    actor_id = parse_int(value)
    if actor_id is not None:
        return entry.actor_id == actor_id
    return user_match(entry.actor, value)


def audit_predicate(filters: schemas.AuditFilters):
    entry = models.AuditLog
    conditions = _keep(
        text_search(filters.search, [entry.action, entry.description, entry.ip_address, entry.user_agent]),
        None if is_unset(filters.action) else func.upper(entry.action) == filters.action.strip().upper(),
        None if is_unset(filters.resource) else func.lower(entry.resource_type) == filters.resource.strip().lower(),
        actor_clause(filters.user),
    )
    conditions += timestamp_range(entry.created_at, filters.date_from, filters.date_to)
    return combine(conditions)
