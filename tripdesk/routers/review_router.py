from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from .. import commands, schemas
from ..aggregates import within
from ..audit import RequestContext
from ..auth import AdminUser, SessionFactory, action_rate_limiter
from ..config import settings
from ..services import review_service

router = APIRouter(prefix="/admin/reviews", tags=["Reviews"])


@router.get("", response_model=schemas.ReviewPage)
@router.get("/", response_model=schemas.ReviewPage, include_in_schema=False)
async def list_reviews(
        filters: Annotated[schemas.ReviewFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    return await within(review_service.load_reviews(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.post("/{review_id}/actions", response_model=schemas.ActionResult)
async def moderate_review(
        review_id: int,
        body: schemas.ReviewActionRequest,
        request: Request,
        admin: AdminUser,
        session_factory: SessionFactory,
        limit: None = Depends(action_rate_limiter),
):
    """Hide, unhide, edit, feature, unfeature, dismiss a flag on, or remove a review."""
    message = await commands.run_review_action(
        session_factory, review_id, body, admin, RequestContext.from_request(request)
    )
    return {"success": True, "message": message}
