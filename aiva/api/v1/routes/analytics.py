from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.auth import CurrentUser, get_current_user
from aiva.db.sessions import get_db
from aiva.services.analytics_service import AnalyticsService
from aiva.utils.dto.analytics import (
    AnalyticsEventCreate,
    AnalyticsEventResponse,
    AnalyticsOverview,
    DashboardStats,
)

router = APIRouter()


@router.post("/events", response_model=AnalyticsEventResponse, status_code=201)
async def record_event(
    payload: AnalyticsEventCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await AnalyticsService(db).record_event(user.tenant_id, payload.event_type, payload.asset_id)
    return AnalyticsEventResponse(id=event.id, event_type=event.event_type.value, asset_id=event.asset_id)


@router.get("/overview", response_model=AnalyticsOverview)
async def overview(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Totals, trend against the previous week, top assets and the last 7 days."""
    return await AnalyticsService(db).overview(user.tenant_id)


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AnalyticsService(db).dashboard(user.tenant_id)
