from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.errors import not_found
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_profile import ImpactAnalysis, ProfileHealth, RiskAnalysis
from app.utils import id_str, now_utc, to_utc

logger = logging.getLogger(__name__)

HIGH_SENSITIVITY_FIELDS = ("bankAccountNumber", "bankName", "nationalId", "workEmail", "contractType")
MEDIUM_SENSITIVITY_FIELDS = ("address.streetAddress", "mobilePhone", "fullName")
SUSPICIOUS_KEYWORDS = ("urgent", "mistake", "quick", "password", "access", "immediately")
BULK_CHANGE_THRESHOLD = 3

CRITICAL_PROFILE_FIELDS = ("work_email", "mobile_phone", "address.street_address", "emergency_contact")
MIN_BIOGRAPHY_LENGTH = 50

# Placeholder until completeness is derived from the field checks.
PROFILE_COMPLETENESS_SCORE = 85


def _risk_level(score: int, critical: int, high: int, medium: int) -> str:
    if score > critical:
        return "CRITICAL"
    if score > high:
        return "HIGH"
    if score > medium:
        return "MEDIUM"
    return "LOW"


def analyze_change_request_risk(changes: Dict[str, Any], context: str) -> RiskAnalysis:
    """Score a pending profile change request by field sensitivity and wording."""

    score = 0
    flags: List[str] = []

    for field in changes:
        if field in HIGH_SENSITIVITY_FIELDS:
            score += 40
            flags.append(f"High Sensitivity Field: {field}")
        elif field in MEDIUM_SENSITIVITY_FIELDS:
            score += 15
            flags.append(f"Medium Sensitivity Field: {field}")

    if len(changes) > BULK_CHANGE_THRESHOLD:
        score += 20
        flags.append(f"Bulk modification detected (>{BULK_CHANGE_THRESHOLD} fields)")

    lowered = (context or "").lower()
    for word in SUSPICIOUS_KEYWORDS:
        if word in lowered:
            score += 10
            flags.append(f'Keyword Alert: "{word}" in justification')

    score = min(score, 100)
    return RiskAnalysis(score=score, level=_risk_level(score, 75, 50, 25), flags=flags)


def _nested(doc: Dict[str, Any], dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def retention_risk(employee: Dict[str, Any], now: datetime) -> RiskAnalysis:
    score = 0
    flags: List[str] = []

    hire = to_utc(employee.get("date_of_hire"))
    if hire is not None:
        tenure_months = (now - hire).total_seconds() / (86400 * 30)
        if tenure_months < 6:
            score += 30
            flags.append("Onboarding Phase (<6 months)")
        elif tenure_months <= 12:
            score += 60
            flags.append('One-Year "Cliff" Phase (High Risk)')
        elif 24 < tenure_months < 36:
            score += 40
            flags.append("3-Year Stagnation Risk")

    last_score = employee.get("last_appraisal_score")
    if last_score and last_score < 3.0:
        score += 20
        flags.append("Low Performance Indicators")

    score = min(score, 100)
    return RiskAnalysis(score=score, level=_risk_level(score, 70, 50, 30), flags=flags)


def deactivation_impact(
    employee: Dict[str, Any],
    position: Optional[Dict[str, Any]],
    department: Optional[Dict[str, Any]],
    now: datetime,
) -> ImpactAnalysis:
    title = ((position or {}).get("title") or "").lower()
    dept_name = ((department or {}).get("name") or "").lower()

    if "head" in title or "director" in title:
        replacement_days = 120
    elif "senior" in title or "manager" in title:
        replacement_days = 90
    elif "engineering" in dept_name or "dev" in dept_name:
        replacement_days = 75
    else:
        replacement_days = 45

    capacity = 15
    if "manager" in title:
        capacity = 40
    if "head" in title:
        capacity = 60

    hire = to_utc(employee.get("date_of_hire"))
    tenure_years = (now - hire).total_seconds() / (86400 * 365) if hire else 0.0
    if tenure_years > 5:
        knowledge = "HIGH"
    elif tenure_years > 2:
        knowledge = "MEDIUM"
    else:
        knowledge = "LOW"

    return ImpactAnalysis(replacement_days=replacement_days, capacity_loss_score=capacity, knowledge_loss_risk=knowledge)


def profile_health(employee: Dict[str, Any]) -> ProfileHealth:
    missing = [f for f in CRITICAL_PROFILE_FIELDS if not _nested(employee, f)]

    issues: List[str] = []
    bio = employee.get("biography") or ""
    if len(bio) < MIN_BIOGRAPHY_LENGTH:
        issues.append("Bio is too short or missing")
    if not employee.get("skills"):
        issues.append("No skills listed")

    return ProfileHealth(
        completeness_score=PROFILE_COMPLETENESS_SCORE,
        missing_critical_fields=missing,
        data_quality_issues=issues,
        last_updated=to_utc(employee.get("updated_at")),
    )


class ProfileAnalyticsService:
    def __init__(
        self,
        employees: EmployeeRepository,
        org: OrgRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._employees = employees
        self._org = org
        self._clock = clock

    def analyze_change_request_risk(self, changes: Dict[str, Any], context: str) -> RiskAnalysis:
        result = analyze_change_request_risk(changes, context)
        if result.level in ("HIGH", "CRITICAL"):
            logger.info("Profile change request scored %s (%d)", result.level, result.score)
        return result

    async def _employee(self, employee_id: str) -> Dict[str, Any]:
        employee = await self._employees.get_by_id(employee_id)
        if employee is None:
            raise not_found("employee", employee_id)
        return employee

    async def calculate_retention_risk(self, employee_id: str) -> RiskAnalysis:
        employee = await self._employee(employee_id)
        return retention_risk(employee, self._clock())

    async def analyze_deactivation_impact(self, employee_id: str) -> ImpactAnalysis:
        employee = await self._employee(employee_id)
        position_id = id_str(employee.get("primary_position_id"))
        department_id = id_str(employee.get("primary_department_id"))

        position, department = await asyncio.gather(
            self._org.get_position(position_id) if position_id else _none(),
            self._org.get_department(department_id) if department_id else _none(),
        )
        return deactivation_impact(employee, position, department, self._clock())

    async def get_profile_health(self, employee_id: str) -> ProfileHealth:
        employee = await self._employee(employee_id)
        return profile_health(employee)


async def _none() -> None:
    return None
