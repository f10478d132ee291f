from __future__ import annotations

from fastapi import APIRouter, Depends

from app.auth import require_roles
from app.constants.roles import PROFILE_ANALYTICS_ROLES
from app.routers.analytics_deps import get_profile_service
from app.schemas_profile import ChangeRiskRequest, ImpactAnalysis, ProfileHealth, RiskAnalysis
from app.services.analytics.profile_analytics import ProfileAnalyticsService

router = APIRouter(
    prefix="/api/employee/analytics",
    tags=["profile_analytics"],
    dependencies=[Depends(require_roles(PROFILE_ANALYTICS_ROLES))],
)


@router.post("/change-risk", response_model=RiskAnalysis)
async def change_request_risk(
    payload: ChangeRiskRequest,
    service: ProfileAnalyticsService = Depends(get_profile_service),
) -> RiskAnalysis:
    return service.analyze_change_request_risk(payload.changes, payload.context)


@router.get("/{employee_id}/retention-risk", response_model=RiskAnalysis)
async def retention_risk(employee_id: str, service: ProfileAnalyticsService = Depends(get_profile_service)):
    return await service.calculate_retention_risk(employee_id)


@router.get("/{employee_id}/impact", response_model=ImpactAnalysis)
async def deactivation_impact(employee_id: str, service: ProfileAnalyticsService = Depends(get_profile_service)):
    return await service.analyze_deactivation_impact(employee_id)


@router.get("/{employee_id}/health", response_model=ProfileHealth)
async def profile_health(employee_id: str, service: ProfileAnalyticsService = Depends(get_profile_service)):
    return await service.get_profile_health(employee_id)
