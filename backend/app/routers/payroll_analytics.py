from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.auth import require_roles
from app.constants.roles import PAYROLL_FORECAST_ROLES, PAYROLL_INSIGHT_ROLES
from app.routers.analytics_deps import get_payroll_service
from app.schemas_payroll import PayrollAnomaly, PayrollForecast, PayrollStory, PayrollTrendPoint
from app.services.analytics.payroll_analytics import PayrollAnalyticsService

router = APIRouter(prefix="/api/payroll-analytics", tags=["payroll_analytics"])

InsightDep = Depends(require_roles(PAYROLL_INSIGHT_ROLES))
ForecastDep = Depends(require_roles(PAYROLL_FORECAST_ROLES))


@router.get("/story", response_model=PayrollStory, dependencies=[InsightDep])
async def payroll_story(
    entity_id: Optional[str] = Query(None),
    service: PayrollAnalyticsService = Depends(get_payroll_service),
) -> PayrollStory:
    """Net pay movement between the two latest approved runs."""
    return await service.get_payroll_story(entity_id)


@router.get("/anomalies", response_model=List[PayrollAnomaly], dependencies=[InsightDep])
async def payroll_anomalies(service: PayrollAnalyticsService = Depends(get_payroll_service)) -> List[PayrollAnomaly]:
    return await service.get_anomalies()


@router.get("/anomalies/ghosts/{run_id}", response_model=List[PayrollAnomaly], dependencies=[InsightDep])
async def ghost_employees(
    run_id: str,
    service: PayrollAnalyticsService = Depends(get_payroll_service),
) -> List[PayrollAnomaly]:
    return await service.detect_ghost_employees(run_id)


@router.get("/forecast", response_model=PayrollForecast, dependencies=[ForecastDep])
async def payroll_forecast(service: PayrollAnalyticsService = Depends(get_payroll_service)) -> PayrollForecast:
    return await service.get_forecast()


@router.get("/trends", response_model=List[PayrollTrendPoint], dependencies=[ForecastDep])
async def payroll_trends(
    months: int = Query(6, ge=1, le=36),
    service: PayrollAnalyticsService = Depends(get_payroll_service),
) -> List[PayrollTrendPoint]:
    return await service.get_trends(months)
