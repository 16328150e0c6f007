from typing import Annotated

from fastapi import APIRouter, Query

from .. import schemas
from ..aggregates import within
from ..auth import AdminUser, SessionFactory
from ..config import settings
from ..services import audit_service

router = APIRouter(prefix="/admin/audit", tags=["Audit"])


@router.get("", response_model=schemas.AuditPage)
@router.get("/", response_model=schemas.AuditPage, include_in_schema=False)
async def audit_log(
        filters: Annotated[schemas.AuditFilters, Query()],
        admin: AdminUser,
        session_factory: SessionFactory,
):
    """Every recorded admin action, newest first."""
    return await within(audit_service.load_audit_log(filters, session_factory), settings.REQUEST_TIMEOUT_SECONDS)
