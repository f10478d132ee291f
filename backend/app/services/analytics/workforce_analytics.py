from __future__ import annotations

import asyncio
import logging
import random
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from app import config
from app.constants.statuses import ACTIVE_WORKFORCE, EXITED, EmployeeStatus
from app.repositories.appraisal_repository import AppraisalRepository
from app.repositories.employee_repository import AuditLogRepository, EmployeeRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_workforce import (
    AttritionForecast,
    BandCount,
    DemographicsBreakdown,
    DepartmentTurnover,
    HeadcountTrend,
    HighRiskEmployee,
    MonthlyProjection,
    Period,
    RangeCount,
    TenureBandRate,
    TurnoverMetrics,
    TypeCount,
)
from app.utils import (
    age_on,
    id_str,
    month_end,
    month_start,
    months_between,
    now_utc,
    percent,
    round1,
    safe_rate,
    to_utc,
)

logger = logging.getLogger(__name__)

# Placeholder split; no voluntary/involuntary reason is recorded on exits.
VOLUNTARY_SHARE = 0.7
INVOLUNTARY_SHARE = 0.3

TENURE_BANDS = [
    ("< 1 year", 0, 12),
    ("1-2 years", 12, 24),
    ("2-5 years", 24, 60),
    ("5-10 years", 60, 120),
    ("10+ years", 120, None),
]

AGE_BANDS = [
    ("18-25", 18, 25),
    ("26-35", 26, 35),
    ("36-45", 36, 45),
    ("46-55", 46, 55),
    ("55+", 56, None),
]

HIGH_RISK_LIMIT = 20
SYNTHETIC_REVIEW_PROBABILITY = 0.3
PROJECTION_MONTHS = 6


def tenure_band(months: int) -> Optional[str]:
    for label, lo, hi in TENURE_BANDS:
        if months >= lo and (hi is None or months < hi):
            return label
    return None


def age_band(age: int) -> Optional[str]:
    for label, lo, hi in AGE_BANDS:
        if age >= lo and (hi is None or age <= hi):
            return label
    return None


def contract_label(employee: Dict[str, Any]) -> str:
    raw = employee.get("contract_type") or employee.get("work_type") or "FULL_TIME"
    label = str(raw).replace("_", " ").replace("CONTRACT", "").strip()
    return label or "Full Time"


def _in_range(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def attrition_trend(terminations: List[int]) -> str:
    """Compare the latest three months against the earliest three (±20 %)."""

    if len(terminations) < 3:
        return "stable"
    recent = sum(terminations[-3:]) / 3
    earlier = sum(terminations[:3]) / 3
    if recent > earlier * 1.2:
        return "increasing"
    if recent < earlier * 0.8:
        return "decreasing"
    return "stable"


def attrition_risk_level(rate: float) -> str:
    if rate > 25:
        return "CRITICAL"
    if rate > 15:
        return "HIGH"
    if rate > 10:
        return "MEDIUM"
    return "LOW"


def trend_factor(trend: str, months_ahead: int) -> float:
    if trend == "increasing":
        return (1 + 0.05) ** months_ahead
    if trend == "decreasing":
        return (1 - 0.03) ** months_ahead
    return 1.0


def risk_tier(score: int) -> str:
    if score >= 40:
        return "HIGH"
    if score >= 20:
        return "MEDIUM"
    return "LOW"


class WorkforceAnalyticsService:
    def __init__(
        self,
        employees: EmployeeRepository,
        audit_logs: AuditLogRepository,
        org: OrgRepository,
        appraisals: AppraisalRepository,
        clock: Callable[[], datetime] = now_utc,
        synthetic_review_signal: Optional[bool] = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._employees = employees
        self._audit_logs = audit_logs
        self._org = org
        self._appraisals = appraisals
        self._clock = clock
        self._synthetic_review_signal = (
            config.ENABLE_SYNTHETIC_REVIEW_SIGNAL if synthetic_review_signal is None else synthetic_review_signal
        )
        self._rng = rng

    async def get_headcount_trends(self, months: int = 12) -> List[HeadcountTrend]:
        now = self._clock()
        window_start = month_start(now, -(months - 1))
        employees, events = await asyncio.gather(
            self._employees.list_hired(),
            self._audit_logs.list_termination_events(window_start),
        )

        hired = [(to_utc(e.get("date_of_hire")), e) for e in employees]
        event_dates = [to_utc(ev.get("created_at")) for ev in events]

        out: List[HeadcountTrend] = []
        for i in range(months):
            m_start = month_start(now, -(months - 1 - i))
            m_end = month_end(m_start)

            new_hires = sum(1 for hire, _ in hired if _in_range(hire, m_start, m_end))
            terminations = sum(1 for d in event_dates if _in_range(d, m_start, m_end))

            headcount = 0
            for hire, emp in hired:
                if hire is None or hire > m_end:
                    continue
                if emp.get("status") in EXITED:
                    left = to_utc(emp.get("status_effective_from"))
                    if left is not None and left <= m_end:
                        continue
                headcount += 1

            out.append(
                HeadcountTrend(
                    month=m_start.strftime("%Y-%m"),
                    total_headcount=headcount,
                    new_hires=new_hires,
                    terminations=terminations,
                    net_change=new_hires - terminations,
                )
            )
        return out

    async def get_turnover_metrics(self, period_months: int = 12) -> TurnoverMetrics:
        now = self._clock()
        period_start = month_start(now, -period_months)
        period_end = month_end(now)

        active, exited, departments = await asyncio.gather(
            self._employees.list_by_statuses(ACTIVE_WORKFORCE),
            self._employees.list_exited_between(period_start, period_end),
            self._org.list_departments(),
        )
        dept_names = {id_str(d): d.get("name") or "Unknown" for d in departments}

        terminations = len(exited)
        avg_headcount = len(active) + terminations / 2
        overall = round1(safe_rate(terminations, avg_headcount) * 100)

        dept_headcount: Dict[str, int] = defaultdict(int)
        for e in active:
            if e.get("primary_department_id"):
                dept_headcount[id_str(e.get("primary_department_id"))] += 1

        dept_exits: Dict[str, int] = defaultdict(int)
        for e in exited:
            dept_exits[id_str(e.get("primary_department_id")) or "unassigned"] += 1

        by_department = [
            DepartmentTurnover(
                department_id=dept_id,
                department_name=dept_names.get(dept_id, "Unassigned"),
                rate=round1(safe_rate(count, dept_headcount.get(dept_id, 0)) * 100),
            )
            for dept_id, count in dept_exits.items()
        ]
        by_department.sort(key=lambda d: d.rate, reverse=True)

        return TurnoverMetrics(
            overall_turnover_rate=overall,
            voluntary_turnover_rate=round1(overall * VOLUNTARY_SHARE),
            involuntary_turnover_rate=round1(overall * INVOLUNTARY_SHARE),
            by_department=by_department,
            by_tenure_band=self._turnover_by_tenure(exited, active, now),
            period=Period(start=period_start, end=period_end),
        )

    def _turnover_by_tenure(
        self,
        exited: Iterable[Dict[str, Any]],
        active: Iterable[Dict[str, Any]],
        now: datetime,
    ) -> List[TenureBandRate]:
        terminated: Dict[str, int] = defaultdict(int)
        for e in exited:
            hire, left = to_utc(e.get("date_of_hire")), to_utc(e.get("status_effective_from"))
            if hire is None or left is None:
                continue
            band = tenure_band(months_between(hire, left))
            if band:
                terminated[band] += 1

        staying: Dict[str, int] = defaultdict(int)
        for e in active:
            hire = to_utc(e.get("date_of_hire"))
            if hire is None:
                continue
            band = tenure_band(months_between(hire, now))
            if band:
                staying[band] += 1

        return [
            TenureBandRate(
                band=label,
                rate=round1(safe_rate(terminated[label], terminated[label] + staying[label]) * 100),
            )
            for label, _, _ in TENURE_BANDS
        ]

    async def get_demographics_breakdown(self) -> DemographicsBreakdown:
        now = self._clock()
        active = await self._employees.list_by_statuses(ACTIVE_WORKFORCE)
        total = len(active)

        ages: Dict[str, int] = defaultdict(int)
        tenures: Dict[str, int] = defaultdict(int)
        contracts: Dict[str, int] = {}
        for e in active:
            birth = to_utc(e.get("date_of_birth"))
            if birth is not None:
                band = age_band(age_on(birth, now))
                if band:
                    ages[band] += 1
            hire = to_utc(e.get("date_of_hire"))
            if hire is not None:
                band = tenure_band(months_between(hire, now))
                if band:
                    tenures[band] += 1
            label = contract_label(e)
            contracts[label] = contracts.get(label, 0) + 1

        return DemographicsBreakdown(
            by_age=[
                BandCount(band=label, count=ages[label], percentage=percent(ages[label], total))
                for label, _, _ in AGE_BANDS
            ],
            by_tenure=[
                BandCount(band=label, count=tenures[label], percentage=percent(tenures[label], total))
                for label, _, _ in TENURE_BANDS
            ],
            by_contract_type=[
                TypeCount(type=label, count=count, percentage=percent(count, total))
                for label, count in contracts.items()
            ],
        )

    async def get_attrition_forecast(self) -> AttritionForecast:
        turnover, trends = await asyncio.gather(
            self.get_turnover_metrics(12),
            self.get_headcount_trends(6),
        )
        now = self._clock()

        monthly = [t.terminations for t in trends]
        avg_monthly = sum(monthly) / len(monthly) if monthly else 0.0
        trend = attrition_trend(monthly)
        rate = turnover.overall_turnover_rate

        factors: List[str] = []
        if rate > 15:
            factors.append("High overall turnover rate")
        hot_departments = [d for d in turnover.by_department if d.rate > 20]
        if hot_departments:
            factors.append(f"{len(hot_departments)} department(s) with elevated turnover")
        first_year = next((b for b in turnover.by_tenure_band if b.band == "< 1 year"), None)
        if first_year is not None and first_year.rate > 20:
            factors.append("High first-year attrition rate")
        if trend == "increasing":
            factors.append("Turnover trend is increasing")

        projections = [
            MonthlyProjection(
                month=month_start(now, i).strftime("%b"),
                predicted=round(avg_monthly * trend_factor(trend, i)),
                confidence=max(50, 95 - i * 8),
            )
            for i in range(1, PROJECTION_MONTHS + 1)
        ]

        rate_factor = {"increasing": 1.1, "decreasing": 0.9}.get(trend, 1.0)
        return AttritionForecast(
            current_rate=rate,
            predicted_rate=round1(rate * rate_factor),
            trend=trend,
            risk_level=attrition_risk_level(rate),
            predicted_vacancies=round(avg_monthly * PROJECTION_MONTHS),
            risk_factors=factors,
            monthly_projections=projections,
        )

    async def get_tenure_distribution(self) -> List[RangeCount]:
        demographics = await self.get_demographics_breakdown()
        return [RangeCount(range=b.band, count=b.count, percentage=b.percentage) for b in demographics.by_tenure]

    async def get_age_demographics(self) -> List[RangeCount]:
        demographics = await self.get_demographics_breakdown()
        return [RangeCount(range=b.band, count=b.count, percentage=b.percentage) for b in demographics.by_age]

    async def get_employment_types(self) -> List[TypeCount]:
        demographics = await self.get_demographics_breakdown()
        return demographics.by_contract_type

    async def get_high_risk_employees(self) -> List[HighRiskEmployee]:
        """Top attrition candidates among active and probation staff.

        The "no recent review" factor comes from appraisal timestamps unless
        the synthetic demo signal is switched on, in which case it is a coin
        flip and the output is no longer reproducible.
        """

        now = self._clock()
        employees, departments, positions, reviewed = await asyncio.gather(
            self._employees.list_by_statuses([EmployeeStatus.ACTIVE.value, EmployeeStatus.PROBATION.value]),
            self._org.list_departments(),
            self._org.list_positions(),
            self._reviewed_since(month_start(now, -config.REVIEW_LOOKBACK_MONTHS)),
        )
        dept_names = {id_str(d): d.get("name") for d in departments}
        titles = {id_str(p): p.get("title") for p in positions}

        scored: List[HighRiskEmployee] = []
        for e in employees:
            hire = to_utc(e.get("date_of_hire"))
            tenure = months_between(hire, now) if hire else 0
            score = 0
            factors: List[str] = []

            if tenure < 12:
                score += 25
                factors.append("Less than 1 year tenure")
            if e.get("status") == EmployeeStatus.PROBATION.value:
                score += 20
                factors.append("Currently on probation")
            if self._missing_review(id_str(e), reviewed):
                score += 15
                factors.append("No recent performance review")

            level = risk_tier(score)
            if level == "LOW":
                continue
            scored.append(
                HighRiskEmployee(
                    id=id_str(e),
                    name=f"{e.get('first_name') or ''} {e.get('last_name') or ''}".strip() or "Unknown",
                    department=dept_names.get(id_str(e.get("primary_department_id"))) or "Unassigned",
                    position=titles.get(id_str(e.get("primary_position_id"))) or "Unknown",
                    risk_score=score,
                    risk_level=level,
                    factors=factors,
                    tenure_months=tenure,
                )
            )

        scored.sort(key=lambda r: r.risk_score, reverse=True)
        return scored[:HIGH_RISK_LIMIT]

    async def _reviewed_since(self, since: datetime) -> Optional[set]:
        if self._synthetic_review_signal:
            return None
        return await self._appraisals.reviewed_employee_ids_since(since)

    def _missing_review(self, employee_id: str, reviewed: Optional[set]) -> bool:
        if reviewed is None:
            return self._rng() < SYNTHETIC_REVIEW_PROBABILITY
        return employee_id not in reviewed
