import datetime
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Avg, Count, Sum, collect, gather_all, prefixed, status_count_specs, unprefixed
from ..crud import Collection
from ..kinds import LISTING_KINDS

logger = logging.getLogger("tripdesk.analytics")

BUCKET_DAYS = 30
FORECAST_MONTHS = 3

Booking = models.Booking
User = models.User
completed = Booking.status == models.BookingStatus.COMPLETED


async def load_dashboard(session_factory: async_sessionmaker) -> schemas.Dashboard:
    """Platform overview: every counter is one query, all issued at once."""
    users = Collection(User, session_factory)
    bookings = Collection(Booking, session_factory)
    tickets = Collection(models.SupportTicket, session_factory)

    specs = {
        "users:total": Count(users),
        "users:customers": Count(users, User.role == models.UserRole.CUSTOMER),
        "users:providers": Count(users, User.role.in_(models.PROVIDER_ROLES)),
        "users:admins": Count(users, User.role.in_(models.ADMIN_ROLES)),
        "pending:providers": Count(
            users,
            User.role.in_(models.PROVIDER_ROLES)
            & User.active.is_(True)
            & User.verified.is_(False)
            & User.rejection_reason.is_(None),
        ),
        "open_tickets": Count(tickets, models.SupportTicket.status.in_(models.OPEN_TICKET_STATUSES)),
        "total_revenue": Sum(bookings, Booking.total_price, completed),
    }
    for kind in LISTING_KINDS.values():
        listings = Collection(kind.model, session_factory)
        specs[f"listings:{kind.name}"] = Count(listings)
        specs[f"pending:{kind.name}"] = Count(listings, kind.model.approval_status == models.ApprovalStatus.PENDING)
    specs.update(prefixed("bookings:", status_count_specs(bookings, Booking.status, models.BookingStatus)))

    summary = await collect(specs)
    return schemas.Dashboard(
        users=unprefixed("users:", summary),
        listings=unprefixed("listings:", summary),
        pending_approvals=unprefixed("pending:", summary),
        bookings=unprefixed("bookings:", summary),
        open_tickets=summary["open_tickets"],
        total_revenue=round(summary["total_revenue"], 2),
    )


def growth_rate(current: float, previous: float) -> float:
    """Percent change; 0 when there is nothing to compare against."""
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def bucket_bounds(months: int, now: datetime.datetime) -> list[tuple[datetime.datetime, datetime.datetime]]:
    """``months`` consecutive 30-day windows ending at ``now``, oldest first."""
    span = datetime.timedelta(days=BUCKET_DAYS)
    start = now - span * months
    return [(start + span * i, start + span * (i + 1)) for i in range(months)]


def forecast(current: dict[str, float], rates: dict[str, float]) -> list[dict[str, float]]:
    """Compound the latest month-over-month rates forward."""
    projected = []
    for step in range(1, FORECAST_MONTHS + 1):
        projected.append({
            "month": float(step),
            "users": float(round(current["users"] * (1 + rates["users"] / 100) ** step)),
            "bookings": float(round(current["bookings"] * (1 + rates["bookings"] / 100) ** step)),
            "revenue": round(current["revenue"] * (1 + rates["revenue"] / 100) ** step, 2),
        })
    return projected


async def load_growth(
    months: int,
    session_factory: async_sessionmaker,
    now: Optional[datetime.datetime] = None,
) -> schemas.GrowthReport:
    now = now or models.utcnow()
    months = max(months, 1)
    users = Collection(User, session_factory)
    bookings = Collection(Booking, session_factory)
    bounds = bucket_bounds(months, now)
    period_start = bounds[0][0]
    inactive_since = now - datetime.timedelta(days=BUCKET_DAYS)

    specs = {
        "users_total": Count(users),
        "churned": Count(users, User.last_active_at < inactive_since),
        "retained": Count(users, User.last_active_at >= inactive_since),
        "lifetime_value": Avg(bookings, Booking.total_price, completed & (Booking.created_at >= period_start)),
    }
    for index, (start, end) in enumerate(bounds):
        in_window = (Booking.created_at >= start) & (Booking.created_at < end)
        specs[f"{index}:users"] = Count(users, (User.created_at >= start) & (User.created_at < end))
        specs[f"{index}:bookings"] = Count(bookings, in_window)
        specs[f"{index}:revenue"] = Sum(bookings, Booking.total_price, in_window & completed)

    summary, by_type = await gather_all(
        collect(specs),
        bookings.grouped(
            Booking.booking_type,
            {
                "bookings": func.count(Booking.id),
                "revenue": func.coalesce(func.sum(Booking.total_price), 0.0),
            },
            predicate=Booking.created_at >= period_start,
        ),
    )

    buckets = [
        schemas.GrowthBucket(
            start=start,
            end=end,
            new_users=summary[f"{index}:users"],
            bookings=summary[f"{index}:bookings"],
            revenue=round(summary[f"{index}:revenue"], 2),
        )
        for index, (start, end) in enumerate(bounds)
    ]

    current = buckets[-1]
    previous = buckets[-2] if len(buckets) > 1 else None
    rates = {
        "users": growth_rate(current.new_users, previous.new_users if previous else 0),
        "bookings": growth_rate(current.bookings, previous.bookings if previous else 0),
        "revenue": growth_rate(current.revenue, previous.revenue if previous else 0),
    }

    total_users = summary["users_total"]
    retention = {
        "churn_rate": round(summary["churned"] / total_users * 100, 2) if total_users else 0.0,
        "retention_rate": round(summary["retained"] / total_users * 100, 2) if total_users else 0.0,
        "customer_lifetime_value": round(summary["lifetime_value"], 2),
    }

    logger.debug(f"Growth report over {months} buckets")
    return schemas.GrowthReport(
        period=months,
        buckets=buckets,
        growth_rates=rates,
        retention=retention,
        forecast=forecast(
            {"users": current.new_users, "bookings": current.bookings, "revenue": current.revenue}, rates
        ),
        by_service_type={
            booking_type: {"bookings": float(row["bookings"]), "revenue": round(float(row["revenue"]), 2)}
            for booking_type, row in by_type.items()
        },
    )
