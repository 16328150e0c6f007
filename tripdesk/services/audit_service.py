"""
Read side of the audit trail.

Every admin command leaves one ``AuditLog`` row. The viewer pages through
them with the usual filters and summarizes activity per action and per actor
across the whole log.
"""

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import async_sessionmaker

from .. import models, schemas
from ..aggregates import gather_all
from ..crud import Collection
from ..filters import audit_predicate
from ..pagination import PageRequest, audit_sort, paginate
from .views import echo, page_meta, user_summary

logger = logging.getLogger("tripdesk.audit")

AuditLog = models.AuditLog


def audit_row(entry) -> schemas.AuditRow:
    return schemas.AuditRow(
        id=entry.id,
        action=entry.action,
        description=entry.description,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        created_at=entry.created_at,
        actor=user_summary(entry.actor),
    )


async def load_audit_log(filters: schemas.AuditFilters, session_factory: async_sessionmaker) -> schemas.AuditPage:
    entries = Collection(AuditLog, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)
    per_entry = {"count": func.count(AuditLog.id)}

    page, by_action, by_actor = await gather_all(
        paginate(entries, audit_predicate(filters), audit_sort().resolve(filters.sort), page_request),
        entries.grouped(AuditLog.action, per_entry),
        entries.grouped(AuditLog.actor_id, per_entry),
    )

    actors = await Collection(models.User, session_factory).find(models.User.id.in_(list(by_actor)))
    actors_by_id = {actor.id: actor for actor in actors}
    actor_counts = sorted(
        (
            schemas.ActorActivity(
                actor_id=actor_id,
                actor=user_summary(actors_by_id.get(actor_id)),
                count=row["count"],
            )
            for actor_id, row in by_actor.items()
        ),
        key=lambda activity: (-activity.count, activity.actor_id),
    )
    logger.debug(f"Loaded {len(page.items)} of {page.total_count} audit entries")

    return schemas.AuditPage(
        items=[audit_row(entry) for entry in page.items],
        pagination=page_meta(page),
        action_counts={action: row["count"] for action, row in sorted(by_action.items())},
        actor_counts=actor_counts,
        filters=echo(filters),
    )
