"""Time-management analytics dashboard over attendance, exceptions, shifts and holidays."""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.config import DASHBOARD_DEFAULT_DAYS
from app.constants.statuses import (
    ACTIVE_WORKFORCE,
    PENDING_EXCEPTION_STATUSES,
    RESOLVED_EXCEPTION_STATUSES,
    TimeExceptionStatus,
    TimeExceptionType,
)
from app.repositories.attendance_repository import AttendanceRepository
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.org_repository import OrgRepository
from app.schemas_dashboards import (
    AttendanceTrendPoint,
    DayWorkload,
    DepartmentAttendance,
    DepartmentHours,
    DepartmentPunctuality,
    EmployeeHours,
    ExceptionAnalysis,
    HolidayCalendar,
    NamedCount,
    OvertimeAnalysis,
    PunctualityScore,
    ResolutionMetrics,
    ShiftDistribution,
    StoryCard,
    TimeManagementDashboard,
    TimeOverview,
    UpcomingHoliday,
    WorkloadBalance,
    WorkPatterns,
)
from app.services.analytics.scoring import (
    component,
    compose_health,
    gather_sections,
    health_status,
    story,
    story_trend,
)
from app.utils import day_range, full_name, id_str, now_utc, percent, round1, to_utc

logger = logging.getLogger(__name__)

STANDARD_DAY_MINUTES = 480
BALANCED_DAY_MINUTES = (360, 540)
TOP_OVERTIME_EMPLOYEES = 5
UPCOMING_HOLIDAY_DAYS = 90
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

RECOMMENDATIONS = {
    "Attendance Compliance": "Follow up on missed punches daily before they reach payroll.",
    "Punctuality": "Review late arrivals with line managers and check shift start times.",
    "Exception Resolution": "Assign owners to open time exceptions and escalate stale ones.",
    "Payroll Readiness": "Finalise attendance records for payroll ahead of the cut-off.",
}


def _minutes(record: Dict[str, Any]) -> float:
    return float(record.get("total_work_minutes") or 0)


def _created(doc: Dict[str, Any]) -> Optional[datetime]:
    return to_utc(doc.get("created_at"))


def _in_window(docs: Iterable[Dict[str, Any]], start: datetime, end: datetime) -> List[Dict[str, Any]]:
    out = []
    for d in docs:
        created = _created(d)
        if created is not None and start <= created <= end:
            out.append(d)
    return out


def _avg_hours(records: List[Dict[str, Any]]) -> float:
    if not records:
        return 0.0
    return round1(sum(_minutes(r) for r in records) / len(records) / 60)


def _named_counts(values: Iterable[str]) -> List[NamedCount]:
    return [NamedCount(name=name, count=count) for name, count in Counter(values).most_common()]


def _of_type(exceptions: List[Dict[str, Any]], kind: TimeExceptionType) -> List[Dict[str, Any]]:
    return [e for e in exceptions if e.get("type") == kind.value]


def build_overview(records: List[Dict[str, Any]], exceptions: List[Dict[str, Any]], days: int) -> TimeOverview:
    missed = sum(1 for r in records if r.get("has_missed_punch"))
    return TimeOverview(
        period_days=days,
        total_records=len(records),
        employees_tracked=len({id_str(r.get("employee_id")) for r in records if r.get("employee_id")}),
        avg_work_hours_per_day=_avg_hours(records),
        missed_punch_count=missed,
        missed_punch_rate=percent(missed, len(records)),
        finalised_for_payroll_count=sum(1 for r in records if r.get("finalised_for_payroll")),
        total_exceptions=len(exceptions),
    )


def _on_time_rate(records: List[Dict[str, Any]], exceptions: List[Dict[str, Any]]) -> int:
    late = len(_of_type(exceptions, TimeExceptionType.LATE))
    early = len(_of_type(exceptions, TimeExceptionType.EARLY_LEAVE))
    return percent(max(0, len(records) - late - early), len(records))


def _department_index(employees: List[Dict[str, Any]]) -> Dict[str, str]:
    out = {}
    for e in employees:
        dept_id = id_str(e.get("primary_department_id"))
        if dept_id:
            out[id_str(e)] = dept_id
    return out


def _group_by_department(
    docs: List[Dict[str, Any]], dept_of: Dict[str, str]
) -> Dict[str, List[Dict[str, Any]]]:
    out: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for d in docs:
        dept_id = dept_of.get(id_str(d.get("employee_id")))
        if dept_id:
            out[dept_id].append(d)
    return out


def build_attendance_trends(
    records: List[Dict[str, Any]],
    exceptions: List[Dict[str, Any]],
    start: datetime,
    end: datetime,
) -> List[AttendanceTrendPoint]:
    """One point per calendar day of the window, oldest first."""

    records_by_day: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in records:
        created = _created(r)
        if created is not None:
            records_by_day[created.date().isoformat()].append(r)

    exceptions_by_day: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for e in exceptions:
        created = _created(e)
        if created is not None:
            exceptions_by_day[created.date().isoformat()].append(e)

    out: List[AttendanceTrendPoint] = []
    for day in day_range(start, end):
        rows = records_by_day.get(day, [])
        excs = exceptions_by_day.get(day, [])
        out.append(
            AttendanceTrendPoint(
                date=day,
                day_of_week=WEEKDAYS[datetime.fromisoformat(day).weekday()],
                total_employees=len({id_str(r.get("employee_id")) for r in rows if r.get("employee_id")}),
                records=len(rows),
                avg_work_hours=_avg_hours(rows),
                missed_punches=sum(1 for r in rows if r.get("has_missed_punch")),
                late_arrivals=len(_of_type(excs, TimeExceptionType.LATE)),
                on_time_rate=_on_time_rate(rows, excs),
            )
        )
    return out


def build_punctuality(
    records: List[Dict[str, Any]],
    exceptions: List[Dict[str, Any]],
    employees: List[Dict[str, Any]],
    dept_names: Dict[str, str],
) -> PunctualityScore:
    late = len(_of_type(exceptions, TimeExceptionType.LATE))
    early = len(_of_type(exceptions, TimeExceptionType.EARLY_LEAVE))
    rate = _on_time_rate(records, exceptions)

    dept_of = _department_index(employees)
    exceptions_by_dept = _group_by_department(exceptions, dept_of)
    by_department = [
        DepartmentPunctuality(
            department_id=dept_id,
            department_name=dept_names.get(dept_id, "Unknown"),
            score=_on_time_rate(rows, exceptions_by_dept.get(dept_id, [])),
        )
        for dept_id, rows in _group_by_department(records, dept_of).items()
    ]
    by_department.sort(key=lambda d: (-d.score, d.department_name))

    return PunctualityScore(
        score=rate,
        status=health_status(rate),
        late_arrivals=late,
        early_leaves=early,
        on_time_rate=rate,
        late_percentage=percent(late, len(records)),
        early_departure_percentage=percent(early, len(records)),
        score_by_department=by_department,
    )


def build_department_metrics(
    records: List[Dict[str, Any]],
    exceptions: List[Dict[str, Any]],
    employees: List[Dict[str, Any]],
    dept_names: Dict[str, str],
) -> List[DepartmentAttendance]:
    dept_of = _department_index(employees)
    staff = Counter(dept_of.values())
    records_by_dept = _group_by_department(records, dept_of)
    exceptions_by_dept = _group_by_department(exceptions, dept_of)

    out: List[DepartmentAttendance] = []
    for dept_id, headcount in staff.items():
        rows = records_by_dept.get(dept_id, [])
        excs = exceptions_by_dept.get(dept_id, [])
        out.append(
            DepartmentAttendance(
                department_id=dept_id,
                department_name=dept_names.get(dept_id, "Unknown"),
                employee_count=headcount,
                total_records=len(rows),
                avg_work_hours_per_day=_avg_hours(rows),
                missed_punch_rate=percent(sum(1 for r in rows if r.get("has_missed_punch")), len(rows)),
                late_arrival_rate=percent(len(_of_type(excs, TimeExceptionType.LATE)), len(rows)),
                total_exceptions=len(excs),
            )
        )
    out.sort(key=lambda d: d.total_records, reverse=True)
    return out


def build_overtime(
    records: List[Dict[str, Any]],
    employees: List[Dict[str, Any]],
    dept_names: Dict[str, str],
) -> OvertimeAnalysis:
    """Overtime is work time beyond a standard 8 hour day, per record."""

    dept_of = _department_index(employees)
    names = {id_str(e): full_name(e) for e in employees}

    by_employee: Dict[str, float] = defaultdict(float)
    for r in records:
        extra = _minutes(r) - STANDARD_DAY_MINUTES
        if extra > 0:
            by_employee[id_str(r.get("employee_id"))] += extra / 60

    by_dept: Dict[str, float] = defaultdict(float)
    for emp_id, hours in by_employee.items():
        by_dept[dept_names.get(dept_of.get(emp_id, ""), "Unassigned")] += hours

    total = sum(by_employee.values())
    top = sorted(by_employee.items(), key=lambda kv: kv[1], reverse=True)[:TOP_OVERTIME_EMPLOYEES]

    return OvertimeAnalysis(
        total_overtime_hours=round1(total),
        employees_with_overtime=len(by_employee),
        avg_overtime_per_employee=round1(total / len(by_employee)) if by_employee else 0.0,
        overtime_by_department=[
            DepartmentHours(department_name=name, hours=round1(hours))
            for name, hours in sorted(by_dept.items(), key=lambda kv: kv[1], reverse=True)
        ],
        top_overtime_employees=[
            EmployeeHours(employee_id=emp_id, name=names.get(emp_id, "Unknown"), hours=round1(hours))
            for emp_id, hours in top
        ],
    )


def build_exception_analysis(exceptions: List[Dict[str, Any]]) -> ExceptionAnalysis:
    statuses = [e.get("status") or "UNKNOWN" for e in exceptions]
    resolved = sum(1 for s in statuses if s in RESOLVED_EXCEPTION_STATUSES)
    return ExceptionAnalysis(
        total_exceptions=len(exceptions),
        exceptions_by_type=_named_counts(e.get("type") or "UNKNOWN" for e in exceptions),
        exceptions_by_status=_named_counts(statuses),
        resolution_metrics=ResolutionMetrics(
            resolved=resolved,
            pending=sum(1 for s in statuses if s in PENDING_EXCEPTION_STATUSES),
            escalated=sum(1 for s in statuses if s == TimeExceptionStatus.ESCALATED.value),
            resolution_rate=percent(resolved, len(exceptions)),
        ),
    )


def build_shift_distribution(
    shifts: List[Dict[str, Any]],
    assignments: List[Dict[str, Any]],
    now: datetime,
) -> List[ShiftDistribution]:
    names = {id_str(s): s.get("name") or "Unknown" for s in shifts}

    current = []
    for a in assignments:
        if (a.get("status") or "ACTIVE").upper() != "ACTIVE":
            continue
        end = to_utc(a.get("end_date"))
        if end is not None and end <= now:
            continue
        current.append(a)

    counts = Counter(id_str(a.get("shift_id")) for a in current if a.get("shift_id"))
    total = sum(counts.values())
    return [
        ShiftDistribution(
            shift_id=shift_id,
            shift_name=names.get(shift_id, "Unknown"),
            employee_count=count,
            percentage=percent(count, total),
        )
        for shift_id, count in counts.most_common()
    ]


def build_holiday_calendar(holidays: List[Dict[str, Any]], now: datetime) -> HolidayCalendar:
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    horizon = today + timedelta(days=UPCOMING_HOLIDAY_DAYS)

    upcoming = []
    months = []
    for h in holidays:
        start = to_utc(h.get("start_date"))
        if start is None:
            continue
        if start.year == now.year:
            months.append(start.strftime("%Y-%m"))
        if today <= start <= horizon:
            upcoming.append(
                UpcomingHoliday(
                    name=h.get("name") or "Holiday",
                    type=h.get("type"),
                    start_date=start,
                    end_date=to_utc(h.get("end_date")),
                    days_until=(start - today).days,
                )
            )
    upcoming.sort(key=lambda u: u.start_date)

    return HolidayCalendar(
        total_holidays=len(holidays),
        upcoming_holidays=upcoming,
        holidays_by_month=[NamedCount(name=m, count=c) for m, c in sorted(Counter(months).items())],
    )


def build_work_patterns(records: List[Dict[str, Any]]) -> WorkPatterns:
    by_day: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
    for r in records:
        created = _created(r)
        if created is not None:
            by_day[created.weekday()].append(r)

    distribution = [
        DayWorkload(day=WEEKDAYS[i], records=len(by_day.get(i, [])), avg_work_hours=_avg_hours(by_day.get(i, [])))
        for i in range(7)
    ]
    busiest = max(distribution, key=lambda d: d.records) if records else None

    low, high = BALANCED_DAY_MINUTES
    under = sum(1 for r in records if _minutes(r) < low)
    over = sum(1 for r in records if _minutes(r) > high)

    return WorkPatterns(
        avg_daily_work_hours=_avg_hours(records),
        most_active_day=busiest.day if busiest else None,
        workload_balance=WorkloadBalance(underworked=under, optimal=len(records) - under - over, overworked=over),
        work_distribution_by_day=distribution,
    )


def build_health(overview: TimeOverview, punctuality: PunctualityScore, exceptions: ExceptionAnalysis):
    resolution = exceptions.resolution_metrics.resolution_rate if exceptions.total_exceptions else 100
    finalised = percent(overview.finalised_for_payroll_count, overview.total_records)

    return compose_health(
        [
            component("Attendance Compliance", 100 - overview.missed_punch_rate, 0.3,
                      f"{overview.missed_punch_count} records with missed punches"),
            component("Punctuality", punctuality.on_time_rate, 0.3, f"{punctuality.late_arrivals} late arrivals"),
            component("Exception Resolution", resolution, 0.2,
                      f"{exceptions.resolution_metrics.pending} exceptions pending"),
            component("Payroll Readiness", finalised, 0.2, f"{finalised}% of records finalised for payroll"),
        ],
        RECOMMENDATIONS,
    )


def build_stories(
    current: List[Dict[str, Any]],
    previous: List[Dict[str, Any]],
    current_exceptions: List[Dict[str, Any]],
    previous_exceptions: List[Dict[str, Any]],
) -> List[StoryCard]:
    cur_missed = sum(1 for r in current if r.get("has_missed_punch"))
    prev_missed = sum(1 for r in previous if r.get("has_missed_punch"))
    cur_hours, prev_hours = _avg_hours(current), _avg_hours(previous)

    missed_trend = story_trend(cur_missed, prev_missed)
    exception_trend = story_trend(len(current_exceptions), len(previous_exceptions))

    return [
        story(
            "Attendance Volume",
            story_trend(len(current), len(previous)),
            f"{len(current)} attendance records this period against {len(previous)} before.",
            len(current),
            "records",
        ),
        story(
            "Average Work Day",
            story_trend(cur_hours, prev_hours),
            f"Employees logged {cur_hours} hours per recorded day.",
            f"{cur_hours}h",
            "avg_work_hours",
        ),
        story(
            "Missed Punches",
            missed_trend,
            f"{cur_missed} records are missing a punch.",
            cur_missed,
            "missed_punches",
            "negative" if missed_trend == "UP" else "positive" if missed_trend == "DOWN" else "neutral",
        ),
        story(
            "Time Exceptions",
            exception_trend,
            f"{len(current_exceptions)} time exceptions were raised.",
            len(current_exceptions),
            "exceptions",
            "negative" if exception_trend == "UP" else "positive" if exception_trend == "DOWN" else "neutral",
        ),
    ]


class TimeManagementDashboardService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        org: OrgRepository,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._attendance = attendance
        self._employees = employees
        self._org = org
        self._clock = clock

    async def get_dashboard(self, days: int = DASHBOARD_DEFAULT_DAYS) -> TimeManagementDashboard:
        now = self._clock()
        start = now - timedelta(days=days)
        previous_start = start - timedelta(days=days)

        data = await gather_sections(
            "time-management",
            {
                "records": self._attendance.list_records_between(previous_start, now),
                "exceptions": self._attendance.list_exceptions_between(previous_start, now),
                "shifts": self._attendance.list_shifts(),
                "shift_assignments": self._attendance.list_shift_assignments(),
                "holidays": self._attendance.list_active_holidays(),
                "employees": self._employees.list_by_statuses(ACTIVE_WORKFORCE),
                "departments": self._org.list_departments(),
            },
            defaults={
                "records": [],
                "exceptions": [],
                "shifts": [],
                "shift_assignments": [],
                "holidays": [],
                "employees": [],
                "departments": [],
            },
        )

        before = start - timedelta(microseconds=1)
        records = _in_window(data["records"], start, now)
        previous_records = _in_window(data["records"], previous_start, before)
        exceptions = _in_window(data["exceptions"], start, now)
        previous_exceptions = _in_window(data["exceptions"], previous_start, before)
        dept_names = {id_str(d): d.get("name") or "Unknown" for d in data["departments"]}

        overview = build_overview(records, exceptions, days)
        punctuality = build_punctuality(records, exceptions, data["employees"], dept_names)
        exception_analysis = build_exception_analysis(exceptions)

        return TimeManagementDashboard(
            generated_at=now,
            overview=overview,
            attendance_trends=build_attendance_trends(records, exceptions, start, now),
            punctuality=punctuality,
            department_metrics=build_department_metrics(records, exceptions, data["employees"], dept_names),
            overtime_analysis=build_overtime(records, data["employees"], dept_names),
            exception_analysis=exception_analysis,
            shift_distribution=build_shift_distribution(data["shifts"], data["shift_assignments"], now),
            holiday_calendar=build_holiday_calendar(data["holidays"], now),
            work_patterns=build_work_patterns(records),
            health_score=build_health(overview, punctuality, exception_analysis),
            stories=build_stories(records, previous_records, exceptions, previous_exceptions),
        )
