from fastapi import APIRouter, Query

from .. import schemas
from ..aggregates import within
from ..auth import AdminUser, SessionFactory
from ..config import settings
from ..services import analytics_service

router = APIRouter(prefix="/admin/analytics", tags=["Analytics"])


@router.get("/dashboard", response_model=schemas.Dashboard)
async def dashboard(admin: AdminUser, session_factory: SessionFactory):
    return await within(analytics_service.load_dashboard(session_factory), settings.REQUEST_TIMEOUT_SECONDS)


@router.get("/growth", response_model=schemas.GrowthReport)
async def growth(
        admin: AdminUser,
        session_factory: SessionFactory,
        period: int = Query(12, ge=1, le=36),
):
    """Month-by-month (30-day) growth with a three-month forecast."""
    return await within(analytics_service.load_growth(period, session_factory), settings.REQUEST_TIMEOUT_SECONDS)
