"""Leaves analytics dashboard.

All collections are fetched concurrently through `gather_sections`; every
section below is a pure function of those documents so it can be tested
without MongoDB.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.config import DASHBOARD_DEFAULT_DAYS
from app.constants.statuses import ACTIVE_WORKFORCE, LeaveStatus
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.leave_repository import LeaveRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_dashboards import (
    ApprovalWorkflow,
    BalanceSummary,
    Bottleneck,
    DepartmentLeaveStats,
    LeaveForecast,
    LeavesDashboard,
    LeavesOverview,
    LeaveTypeBalance,
    LeaveTypeStats,
    NextMonthForecast,
    PolicyCompliance,
    RequestTrendPoint,
    RoleApprovals,
    SeasonalPattern,
    StoryCard,
    YearEndForecast,
)
from app.services.analytics.scoring import (
    component,
    compose_health,
    gather_sections,
    story,
    story_trend,
)
from app.utils import day_range, id_str, month_start, now_utc, percent, round1, to_utc

logger = logging.getLogger(__name__)

LOW_BALANCE_DAYS = 5
HIGH_BALANCE_DAYS = 20
# Remaining days above this are lost at year end.
CARRY_OVER_DAYS = 5
BOTTLENECK_WAIT_HOURS = 48
ESCALATED_STEP = "escalated"
TYPE_TREND_THRESHOLD = 10.0
SEASONAL_MONTHS = 12
FORECAST_MONTHS = 3

RECOMMENDATIONS = {
    "Approval Speed": "Set approval SLAs and remind approvers of requests waiting longer than two days.",
    "Request Backlog": "Clear pending leave requests before the next payroll cut-off.",
    "Policy Coverage": "Configure an active policy for every leave type.",
    "Balance Utilization": "Encourage staff to plan leave so balances are neither hoarded nor exhausted early.",
}

_FLOAT_ZERO = 0.0


def _days(request: Dict[str, Any]) -> float:
    return float(request.get("duration_days") or 0)


def _status(request: Dict[str, Any]) -> str:
    return (request.get("status") or "").lower()


def _created(request: Dict[str, Any]) -> Optional[datetime]:
    return to_utc(request.get("created_at"))


def _in_window(requests: Iterable[Dict[str, Any]], start: datetime, end: datetime) -> List[Dict[str, Any]]:
    out = []
    for r in requests:
        created = _created(r)
        if created is not None and start <= created <= end:
            out.append(r)
    return out


def _approval_rate(requests: List[Dict[str, Any]]) -> int:
    statuses = Counter(_status(r) for r in requests)
    approved = statuses[LeaveStatus.APPROVED.value]
    return percent(approved, approved + statuses[LeaveStatus.REJECTED.value])


def build_overview(requests: List[Dict[str, Any]], days: int) -> LeavesOverview:
    statuses = Counter(_status(r) for r in requests)
    durations = [_days(r) for r in requests]
    approved_days = sum(_days(r) for r in requests if _status(r) == LeaveStatus.APPROVED.value)

    return LeavesOverview(
        period_days=days,
        total_requests=len(requests),
        pending_requests=statuses[LeaveStatus.PENDING.value],
        approved_requests=statuses[LeaveStatus.APPROVED.value],
        rejected_requests=statuses[LeaveStatus.REJECTED.value],
        cancelled_requests=statuses[LeaveStatus.CANCELLED.value],
        total_days_taken=round1(approved_days),
        approval_rate=_approval_rate(requests),
        avg_request_duration=round1(sum(durations) / len(durations)) if durations else _FLOAT_ZERO,
    )


def build_balance_summary(entitlements: List[Dict[str, Any]], type_names: Dict[str, str]) -> BalanceSummary:
    by_type: Dict[str, Dict[str, float]] = defaultdict(lambda: {"entitled": 0.0, "taken": 0.0, "remaining": 0.0})
    remaining_by_employee: Dict[str, float] = defaultdict(float)
    totals = {"entitled": 0.0, "accrued": 0.0, "taken": 0.0, "remaining": 0.0, "pending": 0.0}

    for e in entitlements:
        entitled = float(e.get("yearly_entitlement") or 0)
        taken = float(e.get("taken") or 0)
        remaining = float(e.get("remaining") or 0)
        totals["entitled"] += entitled
        totals["accrued"] += float(e.get("accrued_actual") or 0)
        totals["taken"] += taken
        totals["remaining"] += remaining
        totals["pending"] += float(e.get("pending") or 0)

        bucket = by_type[id_str(e.get("leave_type_id"))]
        bucket["entitled"] += entitled
        bucket["taken"] += taken
        bucket["remaining"] += remaining
        remaining_by_employee[id_str(e.get("employee_id"))] += remaining

    balances = [
        LeaveTypeBalance(
            leave_type_id=type_id,
            leave_type_name=type_names.get(type_id, "Unknown"),
            entitled=round1(b["entitled"]),
            taken=round1(b["taken"]),
            remaining=round1(b["remaining"]),
            utilization_rate=percent(b["taken"], b["entitled"]),
        )
        for type_id, b in by_type.items()
    ]
    balances.sort(key=lambda b: b.entitled, reverse=True)

    return BalanceSummary(
        total_entitlements=round1(totals["entitled"]),
        total_accrued=round1(totals["accrued"]),
        total_taken=round1(totals["taken"]),
        total_remaining=round1(totals["remaining"]),
        total_pending=round1(totals["pending"]),
        balances_by_type=balances,
        employees_with_low_balance=sum(1 for v in remaining_by_employee.values() if v < LOW_BALANCE_DAYS),
        employees_with_high_balance=sum(1 for v in remaining_by_employee.values() if v > HIGH_BALANCE_DAYS),
    )


def build_request_trends(requests: List[Dict[str, Any]], start: datetime, end: datetime) -> List[RequestTrendPoint]:
    """One point per calendar day of the window, oldest first."""

    buckets: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in requests:
        created = _created(r)
        if created is not None:
            buckets[created.date().isoformat()].append(r)

    out: List[RequestTrendPoint] = []
    for day in day_range(start, end):
        rows = buckets.get(day, [])
        statuses = Counter(_status(r) for r in rows)
        out.append(
            RequestTrendPoint(
                date=day,
                requests=len(rows),
                approved=statuses[LeaveStatus.APPROVED.value],
                rejected=statuses[LeaveStatus.REJECTED.value],
                pending=statuses[LeaveStatus.PENDING.value],
                days=round1(sum(_days(r) for r in rows)),
            )
        )
    return out


def build_department_analysis(
    requests: List[Dict[str, Any]],
    employees: List[Dict[str, Any]],
    dept_names: Dict[str, str],
) -> List[DepartmentLeaveStats]:
    dept_of: Dict[str, str] = {}
    staff: Counter = Counter()
    for e in employees:
        dept_id = id_str(e.get("primary_department_id"))
        if dept_id:
            dept_of[id_str(e)] = dept_id
            staff[dept_id] += 1

    by_dept: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in requests:
        dept_id = dept_of.get(id_str(r.get("employee_id")))
        if dept_id:
            by_dept[dept_id].append(r)

    out: List[DepartmentLeaveStats] = []
    for dept_id, headcount in staff.items():
        rows = by_dept.get(dept_id, [])
        total_days = sum(_days(r) for r in rows)
        out.append(
            DepartmentLeaveStats(
                department_id=dept_id,
                department_name=dept_names.get(dept_id, "Unknown"),
                employee_count=headcount,
                total_requests=len(rows),
                total_days=round1(total_days),
                approval_rate=_approval_rate(rows),
                avg_days_per_employee=round1(total_days / headcount),
            )
        )
    out.sort(key=lambda d: d.total_days, reverse=True)
    return out


def _type_trend(current: int, previous: int) -> str:
    trend = story_trend(current, previous, threshold=TYPE_TREND_THRESHOLD)
    return {"UP": "INCREASING", "DOWN": "DECREASING"}.get(trend, "STABLE")


def build_leave_type_analysis(
    current: List[Dict[str, Any]],
    previous: List[Dict[str, Any]],
    type_names: Dict[str, str],
) -> List[LeaveTypeStats]:
    now_by_type: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in current:
        now_by_type[id_str(r.get("leave_type_id"))].append(r)
    before = Counter(id_str(r.get("leave_type_id")) for r in previous)

    out: List[LeaveTypeStats] = []
    for type_id, rows in now_by_type.items():
        total_days = sum(_days(r) for r in rows)
        out.append(
            LeaveTypeStats(
                leave_type_id=type_id,
                leave_type_name=type_names.get(type_id, "Unknown"),
                total_requests=len(rows),
                total_days=round1(total_days),
                avg_duration=round1(total_days / len(rows)),
                approval_rate=_approval_rate(rows),
                trend=_type_trend(len(rows), before[type_id]),
            )
        )
    out.sort(key=lambda t: t.total_requests, reverse=True)
    return out


def build_seasonal_patterns(requests: List[Dict[str, Any]], now: datetime) -> List[SeasonalPattern]:
    """Request volume for each of the last twelve calendar months, oldest first."""

    counts: Counter = Counter()
    days: Dict[str, float] = defaultdict(float)
    for r in requests:
        created = _created(r)
        if created is None:
            continue
        key = created.strftime("%Y-%m")
        counts[key] += 1
        days[key] += _days(r)

    out = []
    for offset in range(-(SEASONAL_MONTHS - 1), 1):
        key = month_start(now, offset).strftime("%Y-%m")
        out.append(SeasonalPattern(month=key, requests=counts[key], days=round1(days[key])))
    return out


def build_approval_workflow(requests: List[Dict[str, Any]], now: datetime) -> ApprovalWorkflow:
    approval_hours: List[float] = []
    escalated = 0
    by_role: Dict[str, Counter] = defaultdict(Counter)
    waits: Dict[str, List[float]] = defaultdict(list)

    for r in requests:
        created = _created(r)
        decided = to_utc(r.get("decided_at"))
        if created is not None and decided is not None:
            approval_hours.append((decided - created).total_seconds() / 3600)

        flow = r.get("approval_flow") or []
        if any((step.get("status") or "").lower() == ESCALATED_STEP for step in flow):
            escalated += 1
        for step in flow:
            role = step.get("role") or "unknown"
            status = (step.get("status") or "").lower()
            by_role[role][status] += 1
            if status == LeaveStatus.PENDING.value and created is not None:
                waits[role].append((now - created).total_seconds() / 3600)

    bottlenecks = []
    for role, hours in waits.items():
        avg_wait = sum(hours) / len(hours)
        if avg_wait > BOTTLENECK_WAIT_HOURS:
            bottlenecks.append(
                Bottleneck(
                    role=role,
                    pending_count=len(hours),
                    avg_wait_hours=round1(avg_wait),
                    description=f"{len(hours)} requests waiting on {role} for {round1(avg_wait)}h on average",
                )
            )
    bottlenecks.sort(key=lambda b: b.avg_wait_hours, reverse=True)

    return ApprovalWorkflow(
        avg_approval_time=round1(sum(approval_hours) / len(approval_hours)) if approval_hours else _FLOAT_ZERO,
        approval_rate=_approval_rate(requests),
        pending_backlog=sum(1 for r in requests if _status(r) == LeaveStatus.PENDING.value),
        escalation_rate=percent(escalated, len(requests)),
        approvals_by_role=[
            RoleApprovals(
                role=role,
                approved=c[LeaveStatus.APPROVED.value],
                rejected=c[LeaveStatus.REJECTED.value],
                pending=c[LeaveStatus.PENDING.value],
            )
            for role, c in sorted(by_role.items())
        ],
        bottlenecks=bottlenecks,
    )


def build_policy_compliance(policies: List[Dict[str, Any]], type_names: Dict[str, str]) -> PolicyCompliance:
    active = [p for p in policies if p.get("is_active", True)]
    covered = {id_str(p.get("leave_type_id")) for p in active}
    uncovered = sorted(name for type_id, name in type_names.items() if type_id not in covered)

    recommendations = [f"Create an active policy for leave type {name}" for name in uncovered]
    return PolicyCompliance(
        overall_compliance_rate=percent(len(type_names) - len(uncovered), len(type_names)),
        policies_configured=len(policies),
        policies_active=len(active),
        leave_types_without_policy=uncovered,
        recommendations=recommendations,
    )


def build_forecast(
    seasonal: List[SeasonalPattern],
    entitlements: List[Dict[str, Any]],
    pending_backlog: int,
) -> LeaveForecast:
    recent = seasonal[-FORECAST_MONTHS:]
    with_data = [m for m in recent if m.requests]

    next_month = NextMonthForecast()
    if with_data:
        factors = [f"Average of the last {len(recent)} months of requests"]
        if pending_backlog:
            factors.append(f"{pending_backlog} requests still pending")
        next_month = NextMonthForecast(
            predicted_requests=round(sum(m.requests for m in recent) / len(recent)),
            predicted_days=round1(sum(m.days for m in recent) / len(recent)),
            confidence=85 if len(with_data) == len(recent) else 60,
            factors=factors,
        )

    remaining_by_employee: Dict[str, float] = defaultdict(float)
    for e in entitlements:
        remaining_by_employee[id_str(e.get("employee_id"))] += float(e.get("remaining") or 0)
    excess = [v - CARRY_OVER_DAYS for v in remaining_by_employee.values() if v > CARRY_OVER_DAYS]

    return LeaveForecast(
        next_month=next_month,
        year_end=YearEndForecast(expiring_balances=round1(sum(excess)), employees_at_risk_of_losing_days=len(excess)),
    )


def build_health(
    overview: LeavesOverview,
    workflow: ApprovalWorkflow,
    compliance: PolicyCompliance,
    balances: BalanceSummary,
):
    speed = 100 - max(0.0, workflow.avg_approval_time - 24) * 0.5
    backlog = 100 - percent(overview.pending_requests, overview.total_requests)
    utilization = percent(balances.total_taken, balances.total_entitlements)

    return compose_health(
        [
            component("Approval Speed", speed, 0.3, f"{workflow.avg_approval_time}h average approval time"),
            component("Request Backlog", backlog, 0.25, f"{overview.pending_requests} pending requests"),
            component("Policy Coverage", compliance.overall_compliance_rate, 0.2,
                      f"{len(compliance.leave_types_without_policy)} leave types without policy"),
            component("Balance Utilization", 100 - abs(utilization - 60) * 1.5, 0.25,
                      f"{utilization}% of entitlements used"),
        ],
        RECOMMENDATIONS,
    )


def build_stories(current: List[Dict[str, Any]], previous: List[Dict[str, Any]], days: int) -> List[StoryCard]:
    cur, prev = build_overview(current, days), build_overview(previous, days)

    volume_trend = story_trend(cur.total_requests, prev.total_requests)
    days_trend = story_trend(cur.total_days_taken, prev.total_days_taken)
    rate_trend = story_trend(cur.approval_rate, prev.approval_rate)

    return [
        story(
            "Leave Request Volume",
            volume_trend,
            f"{cur.total_requests} requests in the last {days} days against {prev.total_requests} in the period before.",
            cur.total_requests,
            "requests",
        ),
        story(
            "Days Taken",
            days_trend,
            f"Approved leave totals {cur.total_days_taken} days.",
            cur.total_days_taken,
            "days",
        ),
        story(
            "Approval Rate",
            rate_trend,
            f"{cur.approval_rate}% of decided requests were approved.",
            f"{cur.approval_rate}%",
            "approval_rate",
            "positive" if rate_trend == "UP" else "negative" if rate_trend == "DOWN" else "neutral",
        ),
        story(
            "Pending Backlog",
            story_trend(cur.pending_requests, prev.pending_requests),
            f"{cur.pending_requests} requests are waiting for a decision.",
            cur.pending_requests,
            "pending",
            "negative" if cur.pending_requests > prev.pending_requests else "neutral",
        ),
    ]


class LeavesDashboardService:
    def __init__(
        self,
        leaves: LeaveRepository,
        employees: EmployeeRepository,
        org: OrgRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._leaves = leaves
        self._employees = employees
        self._org = org
        self._clock = clock

    async def get_dashboard(self, days: int = DASHBOARD_DEFAULT_DAYS) -> LeavesDashboard:
        now = self._clock()
        start = now - timedelta(days=days)
        previous_start = start - timedelta(days=days)
        history_start = min(previous_start, month_start(now, -(SEASONAL_MONTHS - 1)))

        data = await gather_sections(
            "leaves",
            {
                "requests": self._leaves.list_requests_between(history_start, now),
                "entitlements": self._leaves.list_entitlements(),
                "leave_types": self._leaves.list_leave_types(),
                "policies": self._leaves.list_policies(),
                "employees": self._employees.list_by_statuses(ACTIVE_WORKFORCE),
                "departments": self._org.list_departments(),
            },
            defaults={
                "requests": [],
                "entitlements": [],
                "leave_types": [],
                "policies": [],
                "employees": [],
                "departments": [],
            },
        )

        history = data["requests"]
        current = _in_window(history, start, now)
        previous = _in_window(history, previous_start, start - timedelta(microseconds=1))
        type_names = {id_str(t): t.get("name") or t.get("code") or "Unknown" for t in data["leave_types"]}
        dept_names = {id_str(d): d.get("name") or "Unknown" for d in data["departments"]}

        overview = build_overview(current, days)
        balances = build_balance_summary(data["entitlements"], type_names)
        seasonal = build_seasonal_patterns(history, now)
        workflow = build_approval_workflow(current, now)
        compliance = build_policy_compliance(data["policies"], type_names)

        return LeavesDashboard(
            generated_at=now,
            overview=overview,
            balance_summary=balances,
            request_trends=build_request_trends(current, start, now),
            department_analysis=build_department_analysis(current, data["employees"], dept_names),
            leave_type_analysis=build_leave_type_analysis(current, previous, type_names),
            seasonal_patterns=seasonal,
            approval_workflow=workflow,
            policy_compliance=compliance,
            forecasting=build_forecast(seasonal, data["entitlements"], overview.pending_requests),
            health_score=build_health(overview, workflow, compliance, balances),
            stories=build_stories(current, previous, days),
        )
