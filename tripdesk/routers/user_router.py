from typing import Annotated

from fastapi import APIRouter, Query

from .. import schemas
from ..aggregates import within
from ..auth import AdminUser, SessionFactory
from ..config import settings
from ..services import user_service

router = APIRouter(prefix="/admin/users", tags=["Users"])


@router.get("", response_model=schemas.UserPage)
@router.get("/", response_model=schemas.UserPage, include_in_schema=False)
async def list_users(
        filters: Annotated[schemas.UserFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    """
    The user directory: customers, providers and admins, with role and
    account status counts.
    """
    return await within(user_service.load_users(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)
