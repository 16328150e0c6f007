from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from .. import commands, schemas
from ..aggregates import within
from ..audit import RequestContext
from ..auth import AdminUser, SessionFactory, action_rate_limiter
from ..config import settings
from ..kinds import LISTING_KINDS, ListingKind
from ..services import listing_service

router = APIRouter(prefix="/admin/listings", tags=["Listings"])


def get_kind(kind: str) -> ListingKind:
    listing_kind = LISTING_KINDS.get(kind.lower())
    if listing_kind is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown listing kind '{kind}'. Use one of: {', '.join(LISTING_KINDS)}",
        )
    return listing_kind


Kind = Annotated[ListingKind, Depends(get_kind)]


@router.get("/{kind}", response_model=schemas.ListingPage)
async def list_listings(
        listing_kind: Kind,
        filters: Annotated[schemas.ListingFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    """
    Properties, vehicles or tours with derived metrics (revenue, utilization,
    display status), status counts, top performers and known cities.
    """
    return await within(
        listing_service.load_listings(listing_kind, filters, session_factory),
        settings.REQUEST_TIMEOUT_SECONDS,
    )


@router.post("/{kind}/{listing_id}/actions", response_model=schemas.ActionResult)
async def apply_listing_action(
        listing_kind: Kind,
        listing_id: int,
        body: schemas.ListingActionRequest,
        request: Request,
        admin: AdminUser,
        session_factory: SessionFactory,
        limit: None = Depends(action_rate_limiter),
):
    message = await commands.run_listing_action(
        session_factory, listing_kind, listing_id, body, admin, RequestContext.from_request(request)
    )
    return {"success": True, "message": message}
