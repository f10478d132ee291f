from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.constants.statuses import ACTIVE_WORKFORCE
from app.errors import not_found
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_org import (
    BracketCount,
    ChangeImpactAnalysis,
    CostCenterSummary,
    CurrentHolder,
    DepartmentAnalytics,
    FactInsight,
    HierarchyStats,
    OrgChartNode,
    OrgSummaryStats,
    PositionRiskAssessment,
    SpanOfControlMetric,
    SpanOfControlSummary,
    StructuralHealthScore,
    TeamDepthStats,
    TeamMetrics,
    TeamSpanStats,
    TeamStructureMetrics,
    VacancyForecast,
)
from app.services.analytics.org_graph import (
    EXECUTIVE_KEYWORDS,
    OrgGraph,
    has_keyword,
    is_management,
    title_of,
)
from app.utils import full_name, id_str, now_utc, percent, round1, to_utc, years_between

logger = logging.getLogger(__name__)

IDEAL_SPAN = 6
TEAM_MANAGER_KEYWORDS = ("manager", "lead", "supervisor")
UNASSIGNED_COST_CENTER = "UNASSIGNED"

_LEVEL_ORDER = {"HIGH": 3, "MEDIUM": 2, "LOW": 1}

_RECOMMENDATIONS = {
    "CRITICAL": (
        "This change has significant organizational impact. Recommend phased approach with HR leadership "
        "approval. Develop comprehensive transition plan before proceeding."
    ),
    "HIGH": (
        "Consider the downstream effects carefully. Ensure affected employees have clear transition paths. "
        "Communicate changes well in advance."
    ),
    "MEDIUM": (
        "Moderate impact expected. Ensure proper handover of responsibilities and update reporting structures "
        "accordingly."
    ),
    "LOW": "Low impact change. Proceed with standard change management procedures.",
}


# ─── Pure helpers ─────────────────────────────────────────────────
def tenure_years(employee: Optional[Dict[str, Any]], now: datetime) -> float:
    if not employee:
        return 0.0
    return years_between(to_utc(employee.get("date_of_hire")) or now, now)


def tenure_brackets(tenures: List[float]) -> List[BracketCount]:
    return [
        BracketCount(bracket="< 1 year", count=sum(1 for t in tenures if t < 1)),
        BracketCount(bracket="1-3 years", count=sum(1 for t in tenures if 1 <= t < 3)),
        BracketCount(bracket="3-10 years", count=sum(1 for t in tenures if 3 <= t < 10)),
        BracketCount(bracket="10+ years", count=sum(1 for t in tenures if t >= 10)),
    ]


def span_brackets(spans: List[int]) -> List[BracketCount]:
    return [
        BracketCount(bracket="0-3 reports", count=sum(1 for s in spans if 0 <= s <= 3)),
        BracketCount(bracket="4-7 reports", count=sum(1 for s in spans if 4 <= s <= 7)),
        BracketCount(bracket="8+ reports", count=sum(1 for s in spans if s >= 8)),
    ]


def impact_level(title: str, direct_reports: int) -> str:
    if has_keyword(title, EXECUTIVE_KEYWORDS) or direct_reports > 8:
        return "HIGH"
    if "manager" in title or "head" in title or direct_reports > 0:
        return "MEDIUM"
    return "LOW"


def vacancy_risk(filled: bool, tenure: Optional[float]) -> Tuple[str, List[str]]:
    """Risk plus the tenure fact that triggered it; `tenure` is None when the holder is unknown."""

    if not filled:
        return "HIGH", ["Position is currently vacant"]
    if tenure is None:
        return "LOW", []
    if tenure > 15:
        return "HIGH", ["Employee tenure > 15 years (Retirement risk)"]
    if tenure < 0.5:
        return "MEDIUM", ["New hire onboarding (< 6 months)"]
    if 2 <= tenure <= 4:
        return "MEDIUM", ["Common turnover window (2-4 years tenure)"]
    return "LOW", []


def succession_status(direct_reports: int, filled_reports: int) -> str:
    if direct_reports > 0:
        if filled_reports >= 2:
            return "COVERED"
        if filled_reports == 1:
            return "AT_RISK"
    return "NO_PLAN"


def change_impact_level(affected_employees: int, affected_positions: int) -> str:
    if affected_employees > 20 or affected_positions > 30:
        return "CRITICAL"
    if affected_employees > 10 or affected_positions > 15:
        return "HIGH"
    if affected_employees > 3 or affected_positions > 5:
        return "MEDIUM"
    return "LOW"


def span_status(direct_reports: int) -> str:
    if 3 <= direct_reports <= 8:
        return "OPTIMAL"
    if direct_reports < 3:
        return "UNDERSTAFFED"
    return "OVERSTAFFED"


def vacancy_likelihood(tenure: Optional[float], title: str) -> Tuple[float, List[str]]:
    factors: List[str] = []
    likelihood = 0.1

    if tenure is not None:
        if tenure > 20:
            likelihood += 0.4
            factors.append("Very long tenure (retirement likely)")
        elif tenure > 15:
            likelihood += 0.25
            factors.append("Long tenure (potential retirement)")
        elif tenure > 10:
            likelihood += 0.1
            factors.append("Extended tenure")

        if tenure < 1:
            likelihood += 0.15
            factors.append("New employee (adjustment period)")
        elif 2 <= tenure <= 4:
            likelihood += 0.1
            factors.append("Common turnover window (2-4 years)")

    if has_keyword(title, EXECUTIVE_KEYWORDS):
        likelihood += 0.05
        factors.append("Executive-level position")

    return min(likelihood, 0.95), factors


def vacancy_timeframe(likelihood: float) -> Tuple[str, str]:
    if likelihood > 0.6:
        return "0-3 months", "CRITICAL"
    if likelihood > 0.4:
        return "3-6 months", "HIGH"
    if likelihood > 0.25:
        return "6-12 months", "MEDIUM"
    return "12+ months", "LOW"


def _unresolved_target(action_type: str, target_id: str, entity: str) -> ChangeImpactAnalysis:
    return ChangeImpactAnalysis(
        action_type=action_type,
        target_id=target_id,
        target_name="Unknown",
        impact_level="LOW",
        affected_positions=0,
        affected_employees=0,
        downstream_effects=[f"{entity.capitalize()} not found"],
        recommendation=f"Verify the {entity} ID and try again.",
    )


class _Snapshot:
    """One concurrent read of the organization structure."""

    def __init__(
        self,
        departments: List[Dict[str, Any]],
        positions: List[Dict[str, Any]],
        assignments: List[Dict[str, Any]],
        employees: List[Dict[str, Any]],
    ) -> None:
        self.departments = departments
        self.department_names = {id_str(d): d.get("name") or "Unknown" for d in departments}
        self.assignments = assignments
        self.employees = {id_str(e): e for e in employees}
        self.graph = OrgGraph(positions, assignments)

    def department_of(self, position: Dict[str, Any]) -> str:
        return self.department_names.get(id_str(position.get("department_id")), "Unknown")

    def holder(self, position_id: str) -> Optional[Dict[str, Any]]:
        return self.employees.get(self.graph.holder_id(position_id))


class OrgStructureAnalyticsService:
    def __init__(
        self,
        org: OrgRepository,
        employees: EmployeeRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._org = org
        self._employees = employees
        self._clock = clock

    async def _snapshot(self, now: datetime, with_employees: bool = True) -> _Snapshot:
        fetches = [
            self._org.list_active_departments(),
            self._org.list_active_positions(),
            self._org.list_active_assignments(now),
        ]
        if with_employees:
            fetches.append(self._employees.list_by_statuses(ACTIVE_WORKFORCE))
        results = await asyncio.gather(*fetches)
        employees = results[3] if with_employees else []
        return _Snapshot(results[0], results[1], results[2], employees)

    # ── Organization-wide ────────────────────────────────
    async def get_structural_health(self) -> StructuralHealthScore:
        now = self._clock()
        snap = await self._snapshot(now)
        graph = snap.graph

        total = len(graph)
        filled = len(snap.assignments)
        fill_rate = percent(filled, total)

        managers = [pid for pid, p in graph.positions.items() if is_management(p)]
        management_ratio = percent(len(managers), total)

        spans = [graph.report_count(pid) for pid in managers]
        avg_span = sum(spans) / len(spans) if spans else 0.0
        max_depth, avg_depth = graph.depth_stats()

        tenures = [tenure_years(e, now) for e in snap.employees.values()]

        insights: List[FactInsight] = []
        if fill_rate < 75:
            insights.append(
                FactInsight(
                    type="critical",
                    title="Significant Capacity Gap",
                    description=(
                        f"Organization is operating at {fill_rate}% capacity. "
                        f"{total - filled} positions are vacant."
                    ),
                    metric=f"{100 - fill_rate}% Vacancy",
                )
            )
        overloaded = sum(1 for s in spans if s > 10)
        if overloaded:
            insights.append(
                FactInsight(
                    type="warning",
                    title="Management Overload",
                    description=f"{overloaded} managers have more than 10 direct reports.",
                )
            )

        return StructuralHealthScore(
            overall_fill_rate=fill_rate,
            management_ratio=management_ratio,
            span_of_control=SpanOfControlSummary(average=round1(avg_span), distribution=span_brackets(spans)),
            hierarchy_stats=HierarchyStats(max_depth=max_depth, average_depth=avg_depth),
            tenure_distribution=tenure_brackets(tenures),
            insights=insights,
        )

    async def get_department_analytics(self) -> List[DepartmentAnalytics]:
        now = self._clock()
        snap = await self._snapshot(now)

        positions_by_dept: Dict[str, List[str]] = defaultdict(list)
        for pid, p in snap.graph.positions.items():
            positions_by_dept[id_str(p.get("department_id"))].append(pid)

        employees_by_dept: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for e in snap.employees.values():
            employees_by_dept[id_str(e.get("primary_department_id"))].append(e)

        out: List[DepartmentAnalytics] = []
        for dept in snap.departments:
            dept_id = id_str(dept)
            pids = positions_by_dept.get(dept_id, [])
            staff = employees_by_dept.get(dept_id, [])

            total = len(pids)
            filled = sum(1 for pid in pids if snap.graph.is_filled(pid))
            management = sum(1 for pid in pids if is_management(snap.graph.positions[pid]))
            avg_tenure = round1(sum(tenure_years(e, now) for e in staff) / len(staff)) if staff else 0.0

            out.append(
                DepartmentAnalytics(
                    department_id=dept_id,
                    department_name=dept.get("name") or "Unknown",
                    total_positions=total,
                    filled_positions=filled,
                    vacant_positions=total - filled,
                    fill_rate=percent(filled, total),
                    headcount=len(staff),
                    avg_tenure=avg_tenure,
                    management_count=management,
                    ic_count=total - management,
                )
            )
        return out

    async def get_position_risk_assessment(self) -> List[PositionRiskAssessment]:
        now = self._clock()
        snap = await self._snapshot(now)
        graph = snap.graph

        out: List[PositionRiskAssessment] = []
        for pid, pos in graph.positions.items():
            title = title_of(pos)
            reports = graph.report_count(pid)
            filled = graph.is_filled(pid)
            holder = snap.holder(pid) if filled else None
            tenure = tenure_years(holder, now) if holder else None

            risk, facts = vacancy_risk(filled, tenure)
            if holder and reports > 5:
                facts.append(f"Managerial span: {reports} reports")

            out.append(
                PositionRiskAssessment(
                    position_id=pid,
                    position_title=pos.get("title") or "",
                    department=snap.department_of(pos),
                    department_id=id_str(pos.get("department_id")),
                    impact_level=impact_level(title, reports),
                    vacancy_risk=risk,
                    succession_status=succession_status(reports, graph.filled_report_count(pid)),
                    facts=facts,
                    current_holder=(
                        CurrentHolder(employee_id=id_str(holder), name=full_name(holder), tenure=round1(tenure or 0))
                        if holder
                        else None
                    ),
                )
            )

        out.sort(key=lambda r: (_LEVEL_ORDER[r.impact_level], _LEVEL_ORDER[r.vacancy_risk]), reverse=True)
        return out

    async def simulate_change_impact(self, action_type: str, target_id: str) -> ChangeImpactAnalysis:
        now = self._clock()
        snap = await self._snapshot(now, with_employees=False)
        graph = snap.graph

        effects: List[str] = []
        if action_type == "DEACTIVATE_DEPARTMENT":
            dept = next((d for d in snap.departments if id_str(d) == target_id), None)
            if dept is None:
                return _unresolved_target(action_type, target_id, "department")

            target_name = dept.get("name") or "Unknown"
            pids = {pid for pid, p in graph.positions.items() if id_str(p.get("department_id")) == target_id}
            affected_positions = len(pids)
            affected_employees = sum(1 for a in snap.assignments if id_str(a.get("position_id")) in pids)
            if affected_employees > 0:
                effects.append(f"{affected_employees} employee(s) will need reassignment")
            if affected_positions > 10:
                effects.append("Large-scale restructuring required")
        else:
            pos = graph.positions.get(target_id)
            if pos is None:
                return _unresolved_target(action_type, target_id, "position")

            target_name = pos.get("title") or "Unknown"
            affected_positions = 1
            affected_employees = 0
            if graph.is_filled(target_id):
                affected_employees = 1
                effects.append("Current employee will need reassignment")
            reports = graph.report_count(target_id)
            if reports > 0:
                affected_positions += reports
                effects.append(f"{reports} position(s) report to this position")
                effects.append("Reporting structure will need to be updated")

        level = change_impact_level(affected_employees, affected_positions)
        logger.info("Simulated %s on %s: impact %s", action_type, target_id, level)
        return ChangeImpactAnalysis(
            action_type=action_type,
            target_id=target_id,
            target_name=target_name,
            impact_level=level,
            affected_positions=affected_positions,
            affected_employees=affected_employees,
            downstream_effects=effects,
            recommendation=_RECOMMENDATIONS[level],
        )

    async def get_cost_center_analysis(self) -> List[CostCenterSummary]:
        snap = await self._snapshot(self._clock(), with_employees=False)

        centers: Dict[str, Dict[str, Any]] = {}
        dept_center: Dict[str, str] = {}
        for dept in snap.departments:
            cc = dept.get("cost_center") or UNASSIGNED_COST_CENTER
            dept_center[id_str(dept)] = cc
            centers.setdefault(cc, {"depts": set(), "positions": 0, "filled": 0})["depts"].add(id_str(dept))

        for pid, pos in snap.graph.positions.items():
            cc = dept_center.get(id_str(pos.get("department_id")), UNASSIGNED_COST_CENTER)
            bucket = centers.get(cc)
            if bucket is None:
                continue
            bucket["positions"] += 1
            if snap.graph.is_filled(pid):
                bucket["filled"] += 1

        out = [
            CostCenterSummary(
                cost_center=cc,
                department_count=len(data["depts"]),
                position_count=data["positions"],
                estimated_headcount=data["filled"],
                utilization_rate=percent(data["filled"], data["positions"]),
            )
            for cc, data in centers.items()
        ]
        out.sort(key=lambda c: c.position_count, reverse=True)
        return out

    async def get_span_of_control_metrics(self) -> List[SpanOfControlMetric]:
        snap = await self._snapshot(self._clock(), with_employees=False)
        graph = snap.graph

        out = [
            SpanOfControlMetric(
                position_id=pid,
                position_title=pos.get("title") or "",
                department=snap.department_of(pos),
                direct_reports=graph.report_count(pid),
                ideal_span=IDEAL_SPAN,
                status=span_status(graph.report_count(pid)),
            )
            for pid, pos in graph.positions.items()
            if graph.report_count(pid) > 0
        ]
        out.sort(key=lambda m: m.direct_reports, reverse=True)
        return out

    async def get_vacancy_forecasts(self) -> List[VacancyForecast]:
        now = self._clock()
        snap = await self._snapshot(now)
        return self._vacancy_forecasts(snap, now)

    def _vacancy_forecasts(self, snap: _Snapshot, now: datetime) -> List[VacancyForecast]:
        out: List[VacancyForecast] = []
        for pid, pos in snap.graph.positions.items():
            if not snap.graph.is_filled(pid):
                continue
            holder = snap.holder(pid)
            tenure = tenure_years(holder, now) if holder else None
            likelihood, factors = vacancy_likelihood(tenure, title_of(pos))
            if not factors:
                continue
            timeframe, risk = vacancy_timeframe(likelihood)
            out.append(
                VacancyForecast(
                    position_id=pid,
                    position_title=pos.get("title") or "",
                    department=snap.department_of(pos),
                    department_id=id_str(pos.get("department_id")),
                    likelihood=round(likelihood, 2),
                    timeframe=timeframe,
                    risk_level=risk,
                    factors=factors,
                )
            )
        out.sort(key=lambda f: f.likelihood, reverse=True)
        return out

    async def get_org_summary_stats(self) -> OrgSummaryStats:
        now = self._clock()
        departments, positions, filled, employees, cost_centers = await asyncio.gather(
            self._org.count_active_departments(),
            self._org.count_active_positions(),
            self._org.count_active_assignments(now),
            self._employees.count_by_statuses(ACTIVE_WORKFORCE),
            self._org.distinct_cost_centers(),
        )
        return OrgSummaryStats(
            total_departments=departments,
            total_positions=positions,
            filled_positions=filled,
            vacant_positions=positions - filled,
            fill_rate=percent(filled, positions),
            total_employees=employees,
            cost_center_count=len(cost_centers),
        )

    # ── Department-head views ────────────────────────────
    async def _team(self, department_id: str) -> Tuple[Dict[str, Any], OrgGraph, List[Dict[str, Any]]]:
        department = await self._org.get_department(department_id)
        if department is None:
            raise not_found("department", department_id)

        positions = await self._org.list_active_positions(department_id=id_str(department))
        assignments = await self._org.list_active_assignments(self._clock(), position_ids=[p["_id"] for p in positions])
        return department, OrgGraph(positions, assignments), assignments

    async def get_team_structure_metrics(self, department_id: str) -> TeamStructureMetrics:
        now = self._clock()
        department, graph, assignments = await self._team(department_id)

        employees = await self._employees.list_by_ids(
            [a.get("employee_profile_id") for a in assignments if a.get("employee_profile_id")],
            statuses=ACTIVE_WORKFORCE,
        )

        managers = [pid for pid, p in graph.positions.items() if has_keyword(title_of(p), TEAM_MANAGER_KEYWORDS)]
        spans = sorted(graph.report_count(pid) for pid in managers)
        avg_span = sum(spans) / len(spans) if spans else 0.0

        depths = list(graph.depths().values())
        avg_depth = sum(depths) / len(depths) if depths else 0.0
        max_depth = max(depths) if depths else 0

        tenures = [tenure_years(e, now) for e in employees]
        avg_tenure = sum(tenures) / len(tenures) if tenures else 0.0

        total = len(graph)
        filled = len(assignments)
        vacant = total - filled

        issues: List[str] = []
        if avg_span > 10:
            issues.append("High span of control - managers may be overburdened")
        if avg_span < 3 and managers:
            issues.append("Low span of control - potential management overhead")
        if max_depth > 5:
            issues.append("Deep hierarchy - communication may be slowed")
        if vacant > 2:
            issues.append(f"{vacant} vacant positions need attention")

        return TeamStructureMetrics(
            department_id=id_str(department),
            department_name=department.get("name") or "Unknown",
            metrics=TeamMetrics(
                span_of_control=TeamSpanStats(
                    avg=round1(avg_span),
                    min=spans[0] if spans else 0,
                    max=spans[-1] if spans else 0,
                    median=spans[len(spans) // 2] if spans else 0,
                ),
                depth=TeamDepthStats(avg=round1(avg_depth), max=max_depth),
                headcount=len(employees),
                total_positions=total,
                filled_positions=filled,
                vacant_positions=vacant,
                fill_rate=percent(filled, total),
                avg_tenure=round1(avg_tenure),
                issues=issues,
            ),
        )

    async def get_team_org_chart(self, department_id: str) -> List[OrgChartNode]:
        department, graph, assignments = await self._team(department_id)
        profiles = await self._employees.list_by_ids(
            [a.get("employee_profile_id") for a in assignments if a.get("employee_profile_id")]
        )
        by_id = {id_str(p): p for p in profiles}
        dept_name = department.get("name") or "Unknown"

        nodes: List[OrgChartNode] = []
        for a in assignments:
            emp = by_id.get(id_str(a.get("employee_profile_id")))
            if emp is None:
                continue
            pos = graph.positions.get(id_str(a.get("position_id")))
            manager_id = None
            parent = id_str((pos or {}).get("reports_to_position_id"))
            if parent and graph.is_filled(parent):
                manager_id = graph.holder_id(parent) or None

            name = f"{emp.get('first_name') or ''} {emp.get('last_name') or ''}".strip() or "Unknown"
            nodes.append(
                OrgChartNode(
                    id=id_str(emp),
                    name=name,
                    position=(pos or {}).get("title") or "Unknown Position",
                    department=dept_name,
                    manager_id=manager_id,
                    image_url=emp.get("profile_picture") or None,
                )
            )
        return nodes

    async def get_team_vacancy_forecasts(self, department_id: str) -> List[VacancyForecast]:
        department = await self._org.get_department(department_id)
        if department is None:
            raise not_found("department", department_id)

        dept_id = id_str(department)
        forecasts = await self.get_vacancy_forecasts()
        return [f for f in forecasts if f.department_id == dept_id]
