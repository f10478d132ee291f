from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from app.auth import require_roles
from app.constants.roles import ORG_ANALYTICS_ROLES, TEAM_ANALYTICS_ROLES
from app.repositories.employee_repository import EmployeeRepository
from app.routers.analytics_deps import get_employee_repository, get_org_service, resolve_user_department
from app.schemas_org import (
    ChangeImpactAnalysis,
    CostCenterSummary,
    DepartmentAnalytics,
    OrgChartNode,
    OrgSummaryStats,
    PositionRiskAssessment,
    SimulateChangeRequest,
    SpanOfControlMetric,
    StructuralHealthScore,
    TeamStructureMetrics,
    VacancyForecast,
)
from app.services.analytics.org_structure_analytics import OrgStructureAnalyticsService

router = APIRouter(prefix="/api/org-structure-analytics", tags=["org_structure_analytics"])

OrgDep = Depends(require_roles(ORG_ANALYTICS_ROLES))
team_member = require_roles(TEAM_ANALYTICS_ROLES)


async def _team_department(
    user: Dict[str, Any] = Depends(team_member),
    employees: EmployeeRepository = Depends(get_employee_repository),
) -> str:
    return await resolve_user_department(user, employees)


@router.get("/health", response_model=StructuralHealthScore, dependencies=[OrgDep])
async def structural_health(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_structural_health()


@router.get("/summary", response_model=OrgSummaryStats, dependencies=[OrgDep])
async def org_summary(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_org_summary_stats()


@router.get("/departments", response_model=List[DepartmentAnalytics], dependencies=[OrgDep])
async def department_analytics(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_department_analytics()


@router.get("/position-risks", response_model=List[PositionRiskAssessment], dependencies=[OrgDep])
async def position_risks(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_position_risk_assessment()


@router.get("/cost-centers", response_model=List[CostCenterSummary], dependencies=[OrgDep])
async def cost_centers(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_cost_center_analysis()


@router.get("/span-of-control", response_model=List[SpanOfControlMetric], dependencies=[OrgDep])
async def span_of_control(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_span_of_control_metrics()


@router.get("/vacancy-forecasts", response_model=List[VacancyForecast], dependencies=[OrgDep])
async def vacancy_forecasts(service: OrgStructureAnalyticsService = Depends(get_org_service)):
    return await service.get_vacancy_forecasts()


@router.post("/simulate", response_model=ChangeImpactAnalysis, dependencies=[OrgDep])
async def simulate_change(
    payload: SimulateChangeRequest,
    service: OrgStructureAnalyticsService = Depends(get_org_service),
):
    """What-if impact of removing a position or department."""
    return await service.simulate_change_impact(payload.action_type, payload.target_id)


# ── Department head views ───────────────────────────────
@router.get("/team/structure", response_model=TeamStructureMetrics)
async def team_structure(
    department_id: str = Depends(_team_department),
    service: OrgStructureAnalyticsService = Depends(get_org_service),
):
    return await service.get_team_structure_metrics(department_id)


@router.get("/team/org-chart", response_model=List[OrgChartNode])
async def team_org_chart(
    department_id: str = Depends(_team_department),
    service: OrgStructureAnalyticsService = Depends(get_org_service),
):
    return await service.get_team_org_chart(department_id)


@router.get("/team/vacancy-forecasts", response_model=List[VacancyForecast])
async def team_vacancy_forecasts(
    department_id: str = Depends(_team_department),
    service: OrgStructureAnalyticsService = Depends(get_org_service),
):
    return await service.get_team_vacancy_forecasts(department_id)
