"""Performance-science views over published appraisals.

Rater bias (manager z-scores), rating trajectories (least squares over the
rating history), the 9-box talent grid, per-employee attrition risk and the
organization pulse.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone
from statistics import pstdev
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.constants.statuses import ACTIVE_WORKFORCE, EmployeeStatus
from app.errors import not_found
from app.repositories.appraisal_repository import AppraisalRepository
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_talent import (
    AttritionRisk,
    GenderCount,
    ManagerBiasMetric,
    OrgPulse,
    PerformanceTrajectory,
    RatingPoint,
    SkillHolder,
    SkillMatrixEntry,
    TalentGridNode,
)
from app.utils import full_name, id_str, now_utc, round1, to_utc, years_between

logger = logging.getLogger(__name__)

MIN_RATINGS_PER_MANAGER = 3
BIAS_Z_THRESHOLD = 1.0

NINE_BOX = [
    # rows: potential low -> high; columns: performance low -> high
    ["Underperformer (Risk)", "Effective Employee", "Trusted Professional"],
    ["Inconsistent Player", "Core Performer", "High Performer"],
    ["Rough Diamond", "Future Star", "Top Talent (Star)"],
]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _rating(appraisal: Dict[str, Any]) -> float:
    return float(appraisal.get("total_score") or 0)


def _rated_at(appraisal: Dict[str, Any]) -> Optional[datetime]:
    return to_utc(appraisal.get("manager_submitted_at") or appraisal.get("created_at"))


def _short_name(doc: Optional[Dict[str, Any]], default: str) -> str:
    if not doc:
        return default
    name = f"{doc.get('first_name') or ''} {doc.get('last_name') or ''}".strip()
    return name or full_name(doc, default)


def grid_level(value: float) -> int:
    if value >= 4:
        return 2
    if value >= 2.5:
        return 1
    return 0


def classify_nine_box(performance: float, potential: float) -> str:
    return NINE_BOX[grid_level(potential)][grid_level(performance)]


def rater_bias(ratings: Sequence[Tuple[str, float]], names: Dict[str, str]) -> List[ManagerBiasMetric]:
    """Z-score of each manager's mean rating against the population.

    `ratings` holds (manager_id, rating) pairs.
    """

    if not ratings:
        return []
    values = [r for _, r in ratings]
    mean = sum(values) / len(values)
    stdev = pstdev(values) or 1

    by_manager: Dict[str, List[float]] = defaultdict(list)
    for manager_id, rating in ratings:
        by_manager[manager_id].append(rating)

    out: List[ManagerBiasMetric] = []
    for manager_id, scores in by_manager.items():
        if len(scores) < MIN_RATINGS_PER_MANAGER:
            continue
        avg = sum(scores) / len(scores)
        z = (avg - mean) / stdev
        if z > BIAS_Z_THRESHOLD:
            category = "Lenient"
        elif z < -BIAS_Z_THRESHOLD:
            category = "Strict"
        else:
            category = "Balanced"
        out.append(
            ManagerBiasMetric(
                manager_id=manager_id,
                manager_name=names.get(manager_id, f"Manager {manager_id}"),
                avg_rating=round(avg, 2),
                rating_count=len(scores),
                z_score=round(z, 2),
                bias_category=category,
            )
        )
    out.sort(key=lambda m: m.z_score, reverse=True)
    return out


def trajectory_fit(ratings: Sequence[float]) -> Tuple[float, float]:
    """Slope and next-point prediction of a least-squares line over x = 0..n-1."""

    n = len(ratings)
    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(ratings)
    sum_xy = sum(x * y for x, y in zip(xs, ratings))
    sum_xx = sum(x * x for x in xs)

    slope = (n * sum_xy - sum_x * sum_y) / ((n * sum_xx - sum_x * sum_x) or 1)
    intercept = (sum_y - slope * sum_x) / n
    return slope, slope * n + intercept


class TalentAnalyticsService:
    def __init__(
        self,
        employees: EmployeeRepository,
        appraisals: AppraisalRepository,
        org: OrgRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._employees = employees
        self._appraisals = appraisals
        self._org = org
        self._clock = clock

    async def predict_attrition_risk(self, employee_id: str) -> AttritionRisk:
        employee, recent = await asyncio.gather(
            self._employees.get_by_id(employee_id),
            self._appraisals.list_published(employee_id=employee_id, limit=3),
        )
        if employee is None:
            raise not_found("employee", employee_id)

        now = self._clock()
        score = 0
        factors: List[str] = []

        hire = to_utc(employee.get("date_of_hire"))
        if hire is not None:
            months = (now - hire).total_seconds() / (86400 * 30.44)
            if 18 <= months <= 24:
                score += 25
                factors.append('Standard "Career Itch" zone (1.5-2 years tenure)')

        if len(recent) >= 2:
            latest, previous = _rating(recent[0]), _rating(recent[1])
            if latest < previous * 0.9:
                score += 35
                factors.append("Declining performance trend (>10% drop in appraisal score)")
            if latest < 60:
                score += 20
                factors.append("Performance currently below threshold (<60%)")

        # Every employee carries a 10 point baseline.
        score = min(score + 10, 100)
        if score > 70:
            level = "HIGH"
        elif score > 40:
            level = "MEDIUM"
        else:
            level = "LOW"

        return AttritionRisk(
            employee_id=id_str(employee),
            name=_short_name(employee, "Unknown"),
            risk_score=score,
            level=level,
            factors=factors,
            updated_at=now,
        )

    async def get_org_pulse(self) -> OrgPulse:
        now = self._clock()
        employees, appraisal_count, published, departments = await asyncio.gather(
            self._employees.list_by_statuses(ACTIVE_WORKFORCE),
            self._appraisals.count_all(),
            self._appraisals.list_published(),
            self._org.list_departments(),
        )

        genders = Counter((e.get("gender") or "NOT_SPECIFIED") for e in employees)
        scores = [_rating(a) for a in published]
        tenures = [
            years_between(to_utc(e.get("date_of_hire")), now) for e in employees if e.get("date_of_hire")
        ]
        dept_counts = Counter(
            id_str(e.get("primary_department_id")) for e in employees if e.get("primary_department_id")
        )
        dept_names = {id_str(d): d.get("name") for d in departments}

        dominant = "N/A"
        if dept_counts:
            top_id, _ = dept_counts.most_common(1)[0]
            dominant = dept_names.get(top_id) or "N/A"

        return OrgPulse(
            headcount=len(employees),
            gender_diversity=[GenderCount(gender=g, count=c) for g, c in genders.most_common()],
            avg_performance_score=round1(sum(scores) / len(scores)) if scores else 0.0,
            active_appraisals=appraisal_count,
            avg_tenure=round1(sum(tenures) / len(tenures)) if tenures else 0.0,
            dominant_department=dominant,
            timestamp=now,
        )

    async def get_department_skill_matrix(self, department_id: str) -> List[SkillMatrixEntry]:
        department = await self._org.get_department(department_id)
        if department is None:
            raise not_found("department", department_id)

        staff = await self._employees.list_by_department(id_str(department), [EmployeeStatus.ACTIVE.value])

        skills: Dict[str, List[Tuple[str, float]]] = defaultdict(list)
        for e in staff:
            for skill in e.get("skills") or []:
                name = skill.get("name")
                if not name:
                    continue
                skills[name].append((_short_name(e, "Unknown"), float(skill.get("level") or 0)))

        out: List[SkillMatrixEntry] = []
        for skill, holders in skills.items():
            ranked = sorted(holders, key=lambda h: h[1], reverse=True)
            out.append(
                SkillMatrixEntry(
                    skill=skill,
                    avg_level=round(sum(level for _, level in holders) / len(holders), 2),
                    headcount=len(holders),
                    top_talent=[SkillHolder(name=n, level=level) for n, level in ranked[:3]],
                )
            )
        return out

    async def get_rater_bias(self) -> List[ManagerBiasMetric]:
        published = await self._appraisals.list_published()
        pairs = [(id_str(a.get("manager_profile_id")), _rating(a)) for a in published if a.get("manager_profile_id")]
        names = await self._names({m for m, _ in pairs})
        return rater_bias(pairs, names)

    async def get_performance_trajectories(self) -> List[PerformanceTrajectory]:
        published = await self._appraisals.list_published()

        history: Dict[str, List[Tuple[Optional[datetime], float]]] = defaultdict(list)
        for a in published:
            emp_id = id_str(a.get("employee_profile_id"))
            if emp_id:
                history[emp_id].append((_rated_at(a), _rating(a)))

        names = await self._names(history)

        out: List[PerformanceTrajectory] = []
        for emp_id, points in history.items():
            if len(points) < 2:
                continue
            points.sort(key=lambda p: p[0] or _EPOCH)
            slope, predicted = trajectory_fit([r for _, r in points])
            out.append(
                PerformanceTrajectory(
                    employee_id=emp_id,
                    name=names.get(emp_id, f"Employee {emp_id}"),
                    slope=round(slope, 2),
                    predicted_next_rating=round1(predicted),
                    history=[RatingPoint(date=d, rating=r) for d, r in points],
                )
            )
        return out

    async def get_talent_grid(self) -> List[TalentGridNode]:
        published = await self._appraisals.list_published()

        # list_published is newest first; keep the first record per employee.
        latest: Dict[str, Dict[str, Any]] = {}
        for a in published:
            emp_id = id_str(a.get("employee_profile_id"))
            if emp_id and emp_id not in latest:
                latest[emp_id] = a

        profiles = await self._employees.list_by_ids(latest)
        by_id = {id_str(p): p for p in profiles}

        nodes: List[TalentGridNode] = []
        for emp_id, appraisal in latest.items():
            performance = _rating(appraisal)
            potential = float(appraisal.get("potential_score") or performance)
            profile = by_id.get(emp_id)
            nodes.append(
                TalentGridNode(
                    id=emp_id,
                    name=_short_name(profile, f"Employee {emp_id}"),
                    x=performance,
                    y=potential,
                    box_label=classify_nine_box(performance, potential),
                    image_url=(profile or {}).get("profile_picture") or None,
                )
            )
        return nodes

    async def _names(self, ids) -> Dict[str, str]:
        ids = [i for i in ids if i]
        if not ids:
            return {}
        profiles = await self._employees.list_by_ids(ids)
        return {id_str(p): _short_name(p, "Unknown") for p in profiles}
