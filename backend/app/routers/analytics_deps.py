"""Service providers for the analytics routers.

Each provider builds its service over the Mongo-backed repositories; tests
swap them through `app.dependency_overrides`.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import Depends

from app.db import get_db
from app.errors import AppError
from app.repositories.appraisal_repository import AppraisalRepository
from app.repositories.attendance_repository import AttendanceRepository
from app.repositories.employee_repository import AuditLogRepository, EmployeeRepository
from app.repositories.leave_repository import LeaveRepository
from app.repositories.org_repository import OrgRepository
from app.repositories.payroll_repository import PayrollRepository
from app.services.analytics.leaves_dashboard import LeavesDashboardService
from app.services.analytics.org_structure_analytics import OrgStructureAnalyticsService
from app.services.analytics.payroll_analytics import PayrollAnalyticsService
from app.services.analytics.profile_analytics import ProfileAnalyticsService
from app.services.analytics.talent_analytics import TalentAnalyticsService
from app.services.analytics.time_management_dashboard import TimeManagementDashboardService
from app.services.analytics.workforce_analytics import WorkforceAnalyticsService
from app.utils import id_str


async def get_employee_repository(db=Depends(get_db)) -> EmployeeRepository:
    return EmployeeRepository(db)


async def get_payroll_service(db=Depends(get_db)) -> PayrollAnalyticsService:
    return PayrollAnalyticsService(PayrollRepository(db), AttendanceRepository(db), EmployeeRepository(db))


async def get_org_service(db=Depends(get_db)) -> OrgStructureAnalyticsService:
    return OrgStructureAnalyticsService(OrgRepository(db), EmployeeRepository(db))


async def get_workforce_service(db=Depends(get_db)) -> WorkforceAnalyticsService:
    return WorkforceAnalyticsService(
        EmployeeRepository(db),
        AuditLogRepository(db),
        OrgRepository(db),
        AppraisalRepository(db),
    )


async def get_talent_service(db=Depends(get_db)) -> TalentAnalyticsService:
    return TalentAnalyticsService(EmployeeRepository(db), AppraisalRepository(db), OrgRepository(db))


async def get_profile_service(db=Depends(get_db)) -> ProfileAnalyticsService:
    return ProfileAnalyticsService(EmployeeRepository(db), OrgRepository(db))


async def get_leaves_dashboard_service(db=Depends(get_db)) -> LeavesDashboardService:
    return LeavesDashboardService(LeaveRepository(db), EmployeeRepository(db), OrgRepository(db))


async def get_time_dashboard_service(db=Depends(get_db)) -> TimeManagementDashboardService:
    return TimeManagementDashboardService(AttendanceRepository(db), EmployeeRepository(db), OrgRepository(db))


async def resolve_user_department(user: Dict[str, Any], employees: EmployeeRepository) -> str:
    """Department of the caller: the token claim, else the caller's employee profile."""

    if user.get("department_id"):
        return str(user["department_id"])

    employee = await employees.get_by_id(user["employee_id"])
    department_id = id_str((employee or {}).get("primary_department_id"))
    if not department_id:
        raise AppError(
            404,
            "department_not_found",
            "No department is linked to the current user",
            {"employee_id": user["employee_id"]},
        )
    return department_id
