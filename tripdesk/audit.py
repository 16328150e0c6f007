import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from . import models

logger = logging.getLogger("tripdesk.audit")

UNKNOWN = "unknown"


@dataclass(frozen=True)
class RequestContext:
    """Who sent the admin request, as far as the proxy headers tell us."""

    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # First hop is the original client
            ip_address = forwarded.split(",")[0].strip()
        else:
            ip_address = request.headers.get("x-real-ip") or (
                request.client.host if request.client else UNKNOWN
            )
        return cls(
            ip_address=ip_address or UNKNOWN,
            user_agent=request.headers.get("user-agent") or UNKNOWN,
        )


def log_action(
    db: AsyncSession,
    actor_id: int,
    action: str,
    description: str,
    context: RequestContext,
    resource_type: str,
    resource_id: Optional[int] = None,
) -> models.AuditLog:
    """
    Adds one audit row to the caller's session. It is written by the
    caller's commit, together with whatever change it describes.
    """
    entry = models.AuditLog(
        actor_id=actor_id,
        action=action,
        description=description,
        resource_type=resource_type,
        resource_id=resource_id,
        ip_address=context.ip_address[:64],
        user_agent=context.user_agent[:255],
    )
    db.add(entry)
    logger.info(f"Admin {actor_id} {action} on {resource_type} {resource_id} from {context.ip_address}")
    return entry
