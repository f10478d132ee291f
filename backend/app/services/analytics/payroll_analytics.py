from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.errors import not_found
from app.repositories.attendance_repository import AttendanceRepository
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.payroll_repository import PayrollRepository
from app.schemas_payroll import PayrollAnomaly, PayrollForecast, PayrollStory, PayrollTrendPoint
from app.utils import full_name, id_str, month_end, month_start, now_utc, to_utc

logger = logging.getLogger(__name__)

FORECAST_WINDOW = 6
FORECAST_MIN_POINTS = 3
# Fixed heuristic, not derived from the regression fit.
FORECAST_CONFIDENCE = 0.85

INSUFFICIENT_STORY = PayrollStory(
    headline="Insufficient Data",
    narrative="Not enough payroll history to generate a story.",
    trend="STABLE",
    change_percentage=0,
)


def _money(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def change_percentage(current: float, previous: float) -> float:
    return (current - previous) / (previous or 1) * 100


def story_from_runs(current: Dict[str, Any], previous: Dict[str, Any]) -> PayrollStory:
    """Compare the latest approved run against the one before it."""

    cur_total = float(current.get("total_net_pay") or 0)
    prev_total = float(previous.get("total_net_pay") or 0)
    pct = change_percentage(cur_total, prev_total)

    period = to_utc(current.get("payroll_period"))
    month = period.strftime("%B") if period else "the latest period"
    narrative = f"The payroll for {month} closed at ${_money(cur_total)}. "

    if pct > 5:
        headline = "Significant Cost Increase"
        new_hires = int(current.get("employees") or 0) - int(previous.get("employees") or 0)
        narrative += (
            f"Net pay jumped by {pct:.1f}% compared to last month. "
            f"This is driven by {new_hires} new hires and {int(current.get('exceptions') or 0)} detected exceptions."
        )
    elif pct < -5:
        headline = "Cost Reduction Observed"
        narrative += (
            f"Payroll costs dropped by {abs(pct):.1f}%, likely due to offboarding or reduced overtime payouts."
        )
    else:
        headline = "Payroll Stable"
        narrative += f"Costs remained stable with a minor {pct:.1f}% variance. Operational efficiency is steady."

    if pct > 1:
        trend = "RISING"
    elif pct < -1:
        trend = "FALLING"
    else:
        trend = "STABLE"

    return PayrollStory(headline=headline, narrative=narrative, trend=trend, change_percentage=round(pct, 1))


def linear_forecast(values: Sequence[float]) -> PayrollForecast:
    """Ordinary least squares over x = 0..n-1, evaluated at x = n."""

    n = len(values)
    if n < FORECAST_MIN_POINTS:
        return PayrollForecast(next_month_prediction=0, confidence=0)

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    prediction = slope * n + intercept

    return PayrollForecast(next_month_prediction=round(prediction, 2), confidence=FORECAST_CONFIDENCE)


class PayrollAnalyticsService:
    def __init__(
        self,
        payroll: PayrollRepository,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._payroll = payroll
        self._attendance = attendance
        self._employees = employees
        self._clock = clock

    async def get_payroll_story(self, entity_id: Optional[str] = None) -> PayrollStory:
        runs = await self._payroll.latest_approved_runs(2, entity_id=entity_id)
        if len(runs) < 2:
            return INSUFFICIENT_STORY.model_copy()
        current, previous = runs[0], runs[1]
        return story_from_runs(current, previous)

    async def detect_ghost_employees(self, run_id: str) -> List[PayrollAnomaly]:
        run = await self._payroll.find_run(run_id)
        if run is None:
            raise not_found("payroll_run", run_id)
        return await self._scan_run(run)

    async def get_anomalies(self) -> List[PayrollAnomaly]:
        """Ghost-employee scan of the most recent approved run."""

        latest = await self._payroll.latest_approved_runs(1)
        if not latest:
            return []
        return await self._scan_run(latest[0])

    async def get_forecast(self) -> PayrollForecast:
        recent = await self._payroll.latest_approved_runs(FORECAST_WINDOW)
        history = list(reversed(recent))
        return linear_forecast([float(r.get("total_net_pay") or 0) for r in history])

    async def get_trends(self, months: int = 6) -> List[PayrollTrendPoint]:
        start = month_start(self._clock(), -(months - 1))
        runs = await self._payroll.approved_runs_since(start)

        points: List[PayrollTrendPoint] = []
        previous_total: Optional[float] = None
        for run in runs:
            total = float(run.get("total_net_pay") or 0)
            period = to_utc(run.get("payroll_period"))
            pct = change_percentage(total, previous_total) if previous_total is not None else 0.0
            points.append(
                PayrollTrendPoint(
                    run_id=run.get("run_id"),
                    period=period.strftime("%Y-%m") if period else "",
                    total_net_pay=total,
                    employees=int(run.get("employees") or 0),
                    exceptions=int(run.get("exceptions") or 0),
                    change_percentage=round(pct, 1),
                )
            )
            previous_total = total
        return points

    async def _scan_run(self, run: Dict[str, Any]) -> List[PayrollAnomaly]:
        period = to_utc(run.get("payroll_period"))
        if period is None:
            logger.warning("Payroll run %s has no payroll_period; skipping ghost scan", id_str(run))
            return []

        start, end = month_start(period), month_end(period)
        payslips = await self._payroll.list_payslips(run["_id"])
        paid = [s for s in payslips if float(s.get("net_pay") or 0) > 0]
        if not paid:
            return []

        counts = await asyncio.gather(
            *[self._attendance.count_punched_records(s.get("employee_id"), start, end) for s in paid]
        )
        ghosts = [s for s, count in zip(paid, counts) if count == 0]
        if not ghosts:
            return []

        profiles = await self._employees.list_by_ids([s.get("employee_id") for s in ghosts])
        names = {id_str(p): full_name(p) for p in profiles}
        detected_at = self._clock()

        logger.info("Ghost scan of run %s flagged %d payslips", run.get("run_id") or id_str(run), len(ghosts))
        return [
            PayrollAnomaly(
                type="GHOST_EMPLOYEE",
                severity="HIGH",
                employee_id=id_str(s.get("employee_id")),
                description=(
                    f"Employee {names.get(id_str(s.get('employee_id')), 'Unknown')} received "
                    f"{_money(float(s.get('net_pay') or 0))} but has 0 attendance logs this month."
                ),
                detected_at=detected_at,
            )
            for s in ghosts
        ]
