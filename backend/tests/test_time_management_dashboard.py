from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from app.constants.roles import SystemRole
from app.services.analytics.time_management_dashboard import (
    TimeManagementDashboardService,
    build_holiday_calendar,
    build_shift_distribution,
    build_work_patterns,
)
from fakes import FakeAttendanceRepository, FakeEmployeeRepository, FakeOrgRepository

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _dt(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _record(employee: str, created: datetime, minutes: int, missed: bool = False) -> dict:
    return {
        "employee_id": employee,
        "created_at": created,
        "total_work_minutes": minutes,
        "has_missed_punch": missed,
        "finalised_for_payroll": True,
    }


def _seed(store) -> None:
    store.departments.extend([{"_id": "d1", "name": "Engineering"}, {"_id": "d2", "name": "Operations"}])
    store.employees.extend(
        [
            {"_id": "e1", "first_name": "Eve", "last_name": "Early", "status": "ACTIVE", "primary_department_id": "d1"},
            {"_id": "e2", "first_name": "Lou", "last_name": "Late", "status": "ACTIVE", "primary_department_id": "d2"},
        ]
    )
    store.attendance.extend(
        [
            _record("e1", _dt(2024, 6, 10), 540),
            _record("e1", _dt(2024, 6, 11), 480),
            _record("e2", _dt(2024, 6, 10), 300, missed=True),
            _record("e2", _dt(2024, 6, 12), 600),
            _record("e1", _dt(2024, 5, 20), 480),
        ]
    )
    store.time_exceptions.extend(
        [
            {"employee_id": "e2", "type": "LATE", "status": "OPEN", "created_at": _dt(2024, 6, 10)},
            {"employee_id": "e1", "type": "MISSED_PUNCH", "status": "RESOLVED", "created_at": _dt(2024, 6, 11)},
        ]
    )


def test_shift_distribution_counts_current_assignments():
    shifts = [{"_id": "s1", "name": "Morning"}, {"_id": "s2", "name": "Night"}]
    assignments = [
        {"employee_id": "e1", "shift_id": "s1", "status": "ACTIVE"},
        {"employee_id": "e2", "shift_id": "s1"},
        {"employee_id": "e3", "shift_id": "s2", "end_date": _dt(2024, 1, 1)},
        {"employee_id": "e4", "shift_id": "s2", "status": "INACTIVE"},
    ]

    distribution = build_shift_distribution(shifts, assignments, NOW)

    assert [(d.shift_name, d.employee_count, d.percentage) for d in distribution] == [("Morning", 2, 100)]


def test_holiday_calendar_window():
    holidays = [
        {"name": "New Year", "start_date": _dt(2024, 1, 1, 0)},
        {"name": "Eid", "type": "RELIGIOUS", "start_date": _dt(2024, 6, 16, 0)},
        {"name": "Next New Year", "start_date": _dt(2025, 1, 1, 0)},
    ]

    calendar = build_holiday_calendar(holidays, NOW)

    assert calendar.total_holidays == 3
    assert [(h.name, h.days_until) for h in calendar.upcoming_holidays] == [("Eid", 1)]
    assert [(m.name, m.count) for m in calendar.holidays_by_month] == [("2024-01", 1), ("2024-06", 1)]


def test_work_patterns_with_no_records():
    patterns = build_work_patterns([])

    assert patterns.most_active_day is None
    balance = patterns.workload_balance
    assert (balance.underworked, balance.optimal, balance.overworked) == (0, 0, 0)
    assert len(patterns.work_distribution_by_day) == 7


@pytest.mark.anyio
async def test_dashboard_sections(store, time_service):
    _seed(store)

    dashboard = await time_service.get_dashboard(14)

    overview = dashboard.overview
    assert (overview.total_records, overview.employees_tracked) == (4, 2)
    assert overview.avg_work_hours_per_day == 8.0
    assert (overview.missed_punch_count, overview.missed_punch_rate) == (1, 25)
    assert overview.total_exceptions == 2

    assert dashboard.punctuality.on_time_rate == 75
    assert dashboard.punctuality.status == "GOOD"
    assert (dashboard.punctuality.late_percentage, dashboard.punctuality.early_departure_percentage) == (25, 0)
    assert [(d.department_name, d.score) for d in dashboard.punctuality.score_by_department] == [
        ("Engineering", 100),
        ("Operations", 50),
    ]

    depts = {d.department_name: d for d in dashboard.department_metrics}
    assert depts["Engineering"].avg_work_hours_per_day == 8.5
    assert depts["Operations"].late_arrival_rate == 50
    assert depts["Operations"].missed_punch_rate == 50

    overtime = dashboard.overtime_analysis
    assert overtime.total_overtime_hours == 3.0
    assert overtime.avg_overtime_per_employee == 1.5
    assert [(d.department_name, d.hours) for d in overtime.overtime_by_department] == [
        ("Operations", 2.0),
        ("Engineering", 1.0),
    ]
    assert overtime.top_overtime_employees[0].name == "Lou Late"

    resolution = dashboard.exception_analysis.resolution_metrics
    assert (resolution.resolved, resolution.pending, resolution.resolution_rate) == (1, 1, 50)

    patterns = dashboard.work_patterns
    assert patterns.most_active_day == "Monday"
    balance = patterns.workload_balance
    assert (balance.underworked, balance.optimal, balance.overworked) == (1, 2, 1)

    health = dashboard.health_score
    assert health.overall_score == 75
    assert health.status == "GOOD"
    assert health.top_issues == ["Exception Resolution: 1 exceptions pending"]

    stories = {s.title: s for s in dashboard.stories}
    assert stories["Attendance Volume"].trend == "UP"
    assert stories["Average Work Day"].trend == "STABLE"
    assert stories["Missed Punches"].impact == "negative"


@pytest.mark.anyio
async def test_attendance_trends_cover_every_day(store, time_service):
    _seed(store)
    store.attendance.append(_record("e1", _dt(2024, 6, 1, 18), 480))

    dashboard = await time_service.get_dashboard(14)

    trends = dashboard.attendance_trends
    assert len(trends) == 15
    assert (trends[0].date, trends[-1].date) == ("2024-06-01", "2024-06-15")
    assert sum(t.records for t in trends) == dashboard.overview.total_records == 5
    assert trends[0].records == 1

    monday = next(t for t in trends if t.date == "2024-06-10")
    assert monday.day_of_week == "Monday"
    assert (monday.total_employees, monday.records, monday.avg_work_hours) == (2, 2, 7.0)
    assert (monday.missed_punches, monday.late_arrivals, monday.on_time_rate) == (1, 1, 50)

    quiet = next(t for t in trends if t.date == "2024-06-14")
    assert (quiet.records, quiet.on_time_rate) == (0, 0)


@pytest.mark.anyio
async def test_dashboard_route_serialises_trends(store, async_client, auth_headers):
    _seed(store)

    resp = await async_client.get(
        "/api/time-management-analytics/dashboard?days=14",
        headers=auth_headers(SystemRole.HR_MANAGER.value),
    )

    body = resp.json()
    assert resp.status_code == 200
    assert len(body["attendance_trends"]) == 15
    assert body["work_patterns"]["workload_balance"] == {"underworked": 1, "optimal": 2, "overworked": 1}


class _BrokenShifts(FakeAttendanceRepository):
    async def list_shift_assignments(self):
        raise RuntimeError("shift assignments unavailable")


@pytest.mark.anyio
async def test_failed_section_falls_back_to_default(store, caplog):
    _seed(store)
    store.shifts.append({"_id": "s1", "name": "Morning"})
    store.shift_assignments.append({"employee_id": "e1", "shift_id": "s1"})
    service = TimeManagementDashboardService(
        _BrokenShifts(store),
        FakeEmployeeRepository(store),
        FakeOrgRepository(store),
        clock=lambda: NOW,
    )

    with caplog.at_level(logging.WARNING):
        dashboard = await service.get_dashboard(14)

    assert dashboard.shift_distribution == []
    assert dashboard.overview.total_records == 4
    assert "section shift_assignments failed" in caplog.text


@pytest.mark.anyio
async def test_dashboard_route(store, async_client, auth_headers):
    _seed(store)

    ok = await async_client.get(
        "/api/time-management-analytics/dashboard?days=14",
        headers=auth_headers(SystemRole.SYSTEM_ADMIN.value),
    )
    denied = await async_client.get(
        "/api/time-management-analytics/dashboard",
        headers=auth_headers(SystemRole.PAYROLL_MANAGER.value),
    )

    assert ok.status_code == 200
    assert ok.json()["work_patterns"]["most_active_day"] == "Monday"
    assert denied.status_code == 403
