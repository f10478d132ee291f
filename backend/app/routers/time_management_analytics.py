from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.auth import require_roles
from app.config import DASHBOARD_DEFAULT_DAYS
from app.constants.roles import DASHBOARD_ROLES
from app.routers.analytics_deps import get_time_dashboard_service
from app.schemas_dashboards import TimeManagementDashboard
from app.services.analytics.time_management_dashboard import TimeManagementDashboardService

router = APIRouter(prefix="/api/time-management-analytics", tags=["time_management_analytics"])


@router.get(
    "/dashboard",
    response_model=TimeManagementDashboard,
    dependencies=[Depends(require_roles(DASHBOARD_ROLES))],
)
async def time_management_dashboard(
    days: int = Query(DASHBOARD_DEFAULT_DAYS, ge=1, le=365),
    service: TimeManagementDashboardService = Depends(get_time_dashboard_service),
) -> TimeManagementDashboard:
    return await service.get_dashboard(days)
