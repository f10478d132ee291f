"""System roles and the per-module route allow-lists.

Role values match the `roles` claim carried by access tokens issued by the
employee/auth module.
"""
from __future__ import annotations

from enum import Enum
from typing import List


class SystemRole(str, Enum):
    DEPARTMENT_EMPLOYEE = "department employee"
    DEPARTMENT_HEAD = "department head"
    HR_MANAGER = "HR Manager"
    HR_EMPLOYEE = "HR Employee"
    HR_ADMIN = "HR Admin"
    PAYROLL_SPECIALIST = "Payroll Specialist"
    PAYROLL_MANAGER = "Payroll Manager"
    FINANCE_STAFF = "Finance Staff"
    SYSTEM_ADMIN = "System Admin"
    LEGAL_POLICY_ADMIN = "Legal & Policy Admin"
    RECRUITER = "Recruiter"
    JOB_CANDIDATE = "Job Candidate"


def role_values(*roles: SystemRole) -> List[str]:
    return [r.value for r in roles]


# ── Route allow-lists ───────────────────────────────────
PAYROLL_INSIGHT_ROLES = role_values(SystemRole.PAYROLL_MANAGER, SystemRole.HR_MANAGER, SystemRole.SYSTEM_ADMIN)
PAYROLL_FORECAST_ROLES = role_values(SystemRole.PAYROLL_MANAGER, SystemRole.HR_MANAGER, SystemRole.FINANCE_STAFF)

ORG_ANALYTICS_ROLES = role_values(SystemRole.SYSTEM_ADMIN, SystemRole.HR_ADMIN, SystemRole.HR_MANAGER)
TEAM_ANALYTICS_ROLES = role_values(SystemRole.DEPARTMENT_HEAD)

WORKFORCE_ANALYTICS_ROLES = role_values(SystemRole.HR_ADMIN, SystemRole.HR_MANAGER, SystemRole.SYSTEM_ADMIN)
SKILL_MATRIX_ROLES = WORKFORCE_ANALYTICS_ROLES + role_values(SystemRole.DEPARTMENT_HEAD)

PROFILE_ANALYTICS_ROLES = role_values(SystemRole.HR_ADMIN, SystemRole.HR_MANAGER, SystemRole.SYSTEM_ADMIN)

DASHBOARD_ROLES = role_values(SystemRole.HR_MANAGER, SystemRole.HR_ADMIN, SystemRole.SYSTEM_ADMIN)
