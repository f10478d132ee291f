from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from app.auth import require_roles
from app.constants.roles import SKILL_MATRIX_ROLES, WORKFORCE_ANALYTICS_ROLES
from app.repositories.employee_repository import EmployeeRepository
from app.routers.analytics_deps import (
    get_employee_repository,
    get_talent_service,
    get_workforce_service,
    resolve_user_department,
)
from app.schemas_talent import (
    AttritionRisk,
    ManagerBiasMetric,
    OrgPulse,
    PerformanceTrajectory,
    SkillMatrixEntry,
    TalentGridNode,
)
from app.schemas_workforce import (
    AttritionForecast,
    DemographicsBreakdown,
    HeadcountTrend,
    HighRiskEmployee,
    RangeCount,
    TurnoverMetrics,
    TypeCount,
)
from app.services.analytics.talent_analytics import TalentAnalyticsService
from app.services.analytics.workforce_analytics import WorkforceAnalyticsService

router = APIRouter(prefix="/api/analytics", tags=["workforce_analytics"])

HrDep = Depends(require_roles(WORKFORCE_ANALYTICS_ROLES))
skill_viewer = require_roles(SKILL_MATRIX_ROLES)

# Path value that resolves to the caller's own department.
CURRENT_DEPARTMENT = "current"


@router.get("/headcount-trends", response_model=List[HeadcountTrend], dependencies=[HrDep])
async def headcount_trends(
    months: int = Query(12, ge=1, le=60),
    service: WorkforceAnalyticsService = Depends(get_workforce_service),
):
    return await service.get_headcount_trends(months)


@router.get("/turnover-metrics", response_model=TurnoverMetrics, dependencies=[HrDep])
async def turnover_metrics(
    period_months: int = Query(12, ge=1, le=60),
    service: WorkforceAnalyticsService = Depends(get_workforce_service),
):
    return await service.get_turnover_metrics(period_months)


@router.get("/demographics", response_model=DemographicsBreakdown, dependencies=[HrDep])
async def demographics(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_demographics_breakdown()


@router.get("/attrition-forecast", response_model=AttritionForecast, dependencies=[HrDep])
async def attrition_forecast(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_attrition_forecast()


@router.get("/tenure-distribution", response_model=List[RangeCount], dependencies=[HrDep])
async def tenure_distribution(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_tenure_distribution()


@router.get("/age-demographics", response_model=List[RangeCount], dependencies=[HrDep])
async def age_demographics(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_age_demographics()


@router.get("/employment-types", response_model=List[TypeCount], dependencies=[HrDep])
async def employment_types(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_employment_types()


@router.get("/high-risk-employees", response_model=List[HighRiskEmployee], dependencies=[HrDep])
async def high_risk_employees(service: WorkforceAnalyticsService = Depends(get_workforce_service)):
    return await service.get_high_risk_employees()


# ── Talent & performance ────────────────────────────────
@router.get("/org-pulse", response_model=OrgPulse, dependencies=[HrDep])
async def org_pulse(service: TalentAnalyticsService = Depends(get_talent_service)):
    return await service.get_org_pulse()


@router.get("/attrition/{employee_id}", response_model=AttritionRisk, dependencies=[HrDep])
async def attrition_risk(employee_id: str, service: TalentAnalyticsService = Depends(get_talent_service)):
    return await service.predict_attrition_risk(employee_id)


@router.get("/department/{department_id}/skills", response_model=List[SkillMatrixEntry])
async def department_skills(
    department_id: str,
    user: Dict[str, Any] = Depends(skill_viewer),
    employees: EmployeeRepository = Depends(get_employee_repository),
    service: TalentAnalyticsService = Depends(get_talent_service),
):
    """Skill matrix of a department; `current` means the caller's own department."""
    if department_id == CURRENT_DEPARTMENT:
        department_id = await resolve_user_department(user, employees)
    return await service.get_department_skill_matrix(department_id)


@router.get("/performance/rater-bias", response_model=List[ManagerBiasMetric], dependencies=[HrDep])
async def rater_bias(service: TalentAnalyticsService = Depends(get_talent_service)):
    return await service.get_rater_bias()


@router.get("/performance/trajectories", response_model=List[PerformanceTrajectory], dependencies=[HrDep])
async def performance_trajectories(service: TalentAnalyticsService = Depends(get_talent_service)):
    return await service.get_performance_trajectories()


@router.get("/performance/talent-grid", response_model=List[TalentGridNode], dependencies=[HrDep])
async def talent_grid(service: TalentAnalyticsService = Depends(get_talent_service)):
    return await service.get_talent_grid()
