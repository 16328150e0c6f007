"""
Approval queue across the three listing kinds, plus provider verification.

The queue interleaves properties, vehicles and tours newest first. Each kind
lives in its own table, so a page is built by taking the first
``offset + limit`` rows of every kind in the same order and merging them.
"""

import heapq

from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import Count, collect, gather_all, prefixed, status_count_specs, unprefixed
from ..crud import Collection
from ..filters import PROVIDER_STATUSES, approval_predicate, is_unset, provider_predicate, provider_status_clause
from ..kinds import LISTING_KINDS, ListingKind, resolve_kind
from ..metrics import provider_status
from ..pagination import Page, PageRequest, paginate, user_sort
from .views import echo, enum_value, page_meta, user_summary


def approval_item(kind: ListingKind, listing) -> schemas.ApprovalItem:
    return schemas.ApprovalItem(
        id=listing.id,
        kind=kind.name,
        title=listing.title,
        type=getattr(listing, kind.type_attr),
        city=listing.city,
        price=getattr(listing, kind.price_attr),
        approval_status=enum_value(listing.approval_status),
        rejection_reason=listing.rejection_reason,
        owner=user_summary(getattr(listing, kind.owner_attr)),
        created_at=listing.created_at,
    )


def queue_kinds(type_filter) -> list[ListingKind]:
    if is_unset(type_filter):
        return list(LISTING_KINDS.values())
    kind = resolve_kind(type_filter)
    return [kind] if kind is not None else []


async def _newest_first(kind: ListingKind, filters, take: int, session_factory) -> list[tuple]:
    model = kind.model
    rows = await Collection(model, session_factory).find(
        approval_predicate(kind, filters),
        order_by=[model.created_at.desc(), model.id.desc()],
        take=take,
    )
    return [(row.created_at, kind.name, row.id, kind, row) for row in rows]


async def load_queue(filters: schemas.ApprovalFilters, session_factory: async_sessionmaker) -> schemas.ApprovalQueue:
    page_request = PageRequest.of(filters.page, filters.limit)
    kinds = queue_kinds(filters.type)
    window = page_request.offset + page_request.limit

    summary_specs = {}
    for kind in LISTING_KINDS.values():
        listings = Collection(kind.model, session_factory)
        summary_specs[f"kind:{kind.name}"] = Count(listings, approval_predicate(kind, filters))
        summary_specs.update(prefixed(
            f"{kind.name}:",
            status_count_specs(listings, kind.model.approval_status, models.ApprovalStatus),
        ))

    fetched, summary = await gather_all(
        gather_all(*(_newest_first(kind, filters, window, session_factory) for kind in kinds)),
        collect(summary_specs),
    )

    # Each list is already sorted newest first; ties fall back to kind then id
    merged = heapq.merge(*fetched, key=lambda entry: (entry[0], entry[1], entry[2]), reverse=True)
    window_rows = list(merged)[page_request.offset:window]

    kind_counts = unprefixed("kind:", summary)
    total = sum(kind_counts[kind.name] for kind in kinds)
    page = Page(items=window_rows, total_count=total, page=page_request.page, limit=page_request.limit)

    status_counts = {}
    for kind in LISTING_KINDS.values():
        for label, value in unprefixed(f"{kind.name}:", summary).items():
            status_counts[label] = status_counts.get(label, 0) + value

    return schemas.ApprovalQueue(
        items=[approval_item(kind, listing) for _, _, _, kind, listing in window_rows],
        pagination=page_meta(page),
        kind_counts=kind_counts,
        status_counts=status_counts,
        filters=echo(filters),
    )


def provider_row(user) -> schemas.ProviderRow:
    return schemas.ProviderRow(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        role=enum_value(user.role),
        business_name=user.business_name,
        business_email=user.business_email,
        status=provider_status(user),
        verified=user.verified,
        active=user.active,
        rejection_reason=user.rejection_reason,
        created_at=user.created_at,
    )


async def load_providers(filters: schemas.ProviderFilters, session_factory: async_sessionmaker) -> schemas.ProviderPage:
    users = Collection(models.User, session_factory)
    is_provider = models.User.role.in_(models.PROVIDER_ROLES)
    page_request = PageRequest.of(filters.page, filters.limit)

    counts_specs = {
        status: Count(users, is_provider & provider_status_clause(status)) for status in PROVIDER_STATUSES
    }
    counts_specs["total"] = Count(users, is_provider)

    page, counts = await gather_all(
        paginate(users, provider_predicate(filters), user_sort().resolve(filters.sort), page_request),
        collect(counts_specs),
    )
    return schemas.ProviderPage(
        items=[provider_row(user) for user in page.items],
        pagination=page_meta(page),
        counts=counts,
        filters=echo(filters),
    )
