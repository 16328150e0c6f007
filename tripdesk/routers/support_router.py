from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from .. import commands, schemas
from ..aggregates import within
from ..audit import RequestContext
from ..auth import AdminUser, SessionFactory, action_rate_limiter
from ..config import settings
from ..services import ticket_service

router = APIRouter(prefix="/admin/support/tickets", tags=["Support"])


@router.get("", response_model=schemas.TicketPage)
@router.get("/", response_model=schemas.TicketPage, include_in_schema=False)
async def list_tickets(
        filters: Annotated[schemas.TicketFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    return await within(ticket_service.load_tickets(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.get("/{ticket_id}", response_model=schemas.TicketDetail)
async def read_ticket(ticket_id: int, admin: AdminUser, session_factory: SessionFactory):
    """A ticket with its full message log, internal notes included."""
    return await within(ticket_service.load_ticket(ticket_id, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.post("/{ticket_id}/actions", response_model=schemas.ActionResult)
async def apply_ticket_action(
        ticket_id: int,
        body: schemas.TicketActionRequest,
        request: Request,
        admin: AdminUser,
        session_factory: SessionFactory,
        limit: None = Depends(action_rate_limiter),
):
    message = await commands.run_ticket_action(
        session_factory, ticket_id, body, admin, RequestContext.from_request(request)
    )
    return {"success": True, "message": message}
