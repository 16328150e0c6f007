from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from .. import commands, schemas
from ..aggregates import within
from ..audit import RequestContext
from ..auth import AdminUser, SessionFactory, action_rate_limiter
from ..config import settings
from ..services import approval_service

router = APIRouter(prefix="/admin/approvals", tags=["Approvals"])


@router.get("", response_model=schemas.ApprovalQueue)
@router.get("/", response_model=schemas.ApprovalQueue, include_in_schema=False)
async def approval_queue(
        filters: Annotated[schemas.ApprovalFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    """Listings of every kind awaiting a decision, newest first."""
    return await within(approval_service.load_queue(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.get("/providers", response_model=schemas.ProviderPage)
async def list_providers(
        filters: Annotated[schemas.ProviderFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    return await within(approval_service.load_providers(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.post("/providers/{provider_id}/actions", response_model=schemas.ActionResult)
async def apply_provider_action(
        provider_id: int,
        body: schemas.ProviderActionRequest,
        request: Request,
        admin: AdminUser,
        session_factory: SessionFactory,
        limit: None = Depends(action_rate_limiter),
):
    """Verify, reject, suspend or reactivate an owner or guide account."""
    message = await commands.run_provider_action(
        session_factory, provider_id, body, admin, RequestContext.from_request(request)
    )
    return {"success": True, "message": message}
