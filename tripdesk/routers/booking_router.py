from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from .. import commands, schemas
from ..aggregates import within
from ..audit import RequestContext
from ..auth import AdminUser, SessionFactory, action_rate_limiter
from ..config import settings
from ..services import booking_service

router = APIRouter(prefix="/admin/bookings", tags=["Bookings"])


@router.get("", response_model=schemas.BookingPage)
@router.get("/", response_model=schemas.BookingPage, include_in_schema=False)
async def list_bookings(
        filters: Annotated[schemas.BookingFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    """
    Bookings of every kind, filtered and paginated, with platform-wide
    status counts and revenue.
    """
    return await within(booking_service.load_bookings(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.get("/{booking_id}", response_model=schemas.BookingRow)
async def read_booking(booking_id: int, admin: AdminUser, session_factory: SessionFactory):
    return await within(booking_service.load_booking(booking_id, session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.post("/{booking_id}/actions", response_model=schemas.ActionResult)
async def apply_booking_action(
        booking_id: int,
        body: schemas.BookingActionRequest,
        request: Request,
        admin: AdminUser,
        session_factory: SessionFactory,
        limit: None = Depends(action_rate_limiter),
):
    """Confirm, cancel or complete a booking."""
    message = await commands.run_booking_action(
        session_factory, booking_id, body, admin, RequestContext.from_request(request)
    )
    return {"success": True, "message": message}
