from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.auth import require_roles
from app.config import DASHBOARD_DEFAULT_DAYS
from app.constants.roles import DASHBOARD_ROLES
from app.routers.analytics_deps import get_leaves_dashboard_service
from app.schemas_dashboards import LeavesDashboard
from app.services.analytics.leaves_dashboard import LeavesDashboardService

router = APIRouter(prefix="/api/leaves-analytics", tags=["leaves_analytics"])


@router.get("/dashboard", response_model=LeavesDashboard, dependencies=[Depends(require_roles(DASHBOARD_ROLES))])
async def leaves_dashboard(
    days: int = Query(DASHBOARD_DEFAULT_DAYS, ge=1, le=365),
    service: LeavesDashboardService = Depends(get_leaves_dashboard_service),
) -> LeavesDashboard:
    return await service.get_dashboard(days)
