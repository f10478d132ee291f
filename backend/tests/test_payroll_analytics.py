from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.constants.roles import SystemRole
from app.errors import AppError
from app.services.analytics.payroll_analytics import linear_forecast, story_from_runs


def _dt(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _run(run_id: str, period: datetime, net: float, employees: int = 10, status: str = "approved") -> dict:
    return {
        "_id": f"oid-{run_id}",
        "run_id": run_id,
        "entity_id": "acme",
        "payroll_period": period,
        "status": status,
        "total_net_pay": net,
        "employees": employees,
        "exceptions": 0,
    }


def test_story_rising_above_five_percent():
    story = story_from_runs(
        {"total_net_pay": 106000, "payroll_period": _dt(2024, 5, 31), "employees": 12, "exceptions": 2},
        {"total_net_pay": 100000, "payroll_period": _dt(2024, 4, 30), "employees": 10},
    )

    assert story.trend == "RISING"
    assert story.change_percentage == 6.0
    assert story.headline == "Significant Cost Increase"
    assert "May" in story.narrative
    assert "2 new hires" in story.narrative


def test_story_small_variance_is_stable():
    story = story_from_runs({"total_net_pay": 100500}, {"total_net_pay": 100000})

    assert story.headline == "Payroll Stable"
    assert story.trend == "STABLE"


def test_linear_forecast_needs_three_points():
    assert linear_forecast([100.0, 200.0]).model_dump() == {"next_month_prediction": 0, "confidence": 0}

    forecast = linear_forecast([100.0, 200.0, 300.0])
    assert forecast.next_month_prediction == 400.0
    assert forecast.confidence == 0.85


@pytest.mark.anyio
async def test_payroll_story_insufficient_history(store, payroll_service):
    store.payroll_runs.append(_run("R1", _dt(2024, 5, 31), 1000))

    story = await payroll_service.get_payroll_story()

    assert story.headline == "Insufficient Data"
    assert story.change_percentage == 0


@pytest.mark.anyio
async def test_forecast_uses_latest_runs_in_period_order(store, payroll_service):
    store.payroll_runs.extend(
        [
            _run("R3", _dt(2024, 3, 31), 300),
            _run("R1", _dt(2024, 1, 31), 100),
            _run("R2", _dt(2024, 2, 29), 200),
            _run("DRAFT", _dt(2024, 4, 30), 9999, status="draft"),
        ]
    )

    forecast = await payroll_service.get_forecast()

    assert forecast.next_month_prediction == 400.0


@pytest.mark.anyio
async def test_forecast_with_two_runs_is_zero(store, payroll_service):
    store.payroll_runs.extend([_run("R1", _dt(2024, 4, 30), 100), _run("R2", _dt(2024, 5, 31), 200)])

    forecast = await payroll_service.get_forecast()

    assert (forecast.next_month_prediction, forecast.confidence) == (0, 0)


@pytest.mark.anyio
async def test_ghost_detection_flags_paid_employees_without_punches(store, payroll_service):
    run = _run("R-MAY", _dt(2024, 5, 31), 8000)
    store.payroll_runs.append(run)
    store.employees.extend(
        [
            {"_id": "e1", "first_name": "Ada", "last_name": "Worker"},
            {"_id": "e2", "first_name": "Ghost", "last_name": "Person"},
            {"_id": "e3", "first_name": "Unpaid", "last_name": "Leave"},
        ]
    )
    store.payslips.extend(
        [
            {"payroll_run_id": run["_id"], "employee_id": "e1", "net_pay": 5000},
            {"payroll_run_id": run["_id"], "employee_id": "e2", "net_pay": 3000},
            {"payroll_run_id": run["_id"], "employee_id": "e3", "net_pay": 0},
        ]
    )
    store.attendance.append({"employee_id": "e1", "punches": [{"type": "IN", "time": _dt(2024, 5, 10)}]})

    anomalies = await payroll_service.detect_ghost_employees("R-MAY")

    assert [a.employee_id for a in anomalies] == ["e2"]
    assert anomalies[0].type == "GHOST_EMPLOYEE"
    assert anomalies[0].severity == "HIGH"
    assert anomalies[0].description == "Employee Ghost Person received 3,000 but has 0 attendance logs this month."


@pytest.mark.anyio
async def test_ghost_detection_spans_whole_month_for_first_day_periods(store, payroll_service):
    run = _run("R-MAY", _dt(2024, 5, 1), 3000)
    store.payroll_runs.append(run)
    store.employees.append({"_id": "e1", "first_name": "Ada", "last_name": "Worker"})
    store.payslips.append({"payroll_run_id": run["_id"], "employee_id": "e1", "net_pay": 3000})
    store.attendance.append({"employee_id": "e1", "punches": [{"type": "IN", "time": _dt(2024, 5, 20)}]})

    assert await payroll_service.detect_ghost_employees("R-MAY") == []


@pytest.mark.anyio
async def test_ghost_detection_unknown_run_raises_not_found(payroll_service):
    with pytest.raises(AppError) as exc:
        await payroll_service.detect_ghost_employees("missing")

    assert exc.value.status_code == 404
    assert exc.value.code == "payroll_run_not_found"


@pytest.mark.anyio
async def test_trends_report_month_over_month_change(store, payroll_service):
    store.payroll_runs.extend(
        [
            _run("R-APR", _dt(2024, 4, 30), 1000),
            _run("R-MAY", _dt(2024, 5, 31), 1100),
            _run("R-2023", _dt(2023, 5, 31), 500),
        ]
    )

    points = await payroll_service.get_trends(months=6)

    assert [p.period for p in points] == ["2024-04", "2024-05"]
    assert [p.change_percentage for p in points] == [0.0, 10.0]


@pytest.mark.anyio
async def test_story_endpoint_requires_token(async_client):
    resp = await async_client.get("/api/payroll-analytics/story")

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


@pytest.mark.anyio
async def test_story_endpoint_rejects_other_roles(async_client, auth_headers):
    resp = await async_client.get(
        "/api/payroll-analytics/story",
        headers=auth_headers(SystemRole.DEPARTMENT_EMPLOYEE.value),
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


@pytest.mark.anyio
async def test_forecast_endpoint_allows_finance_staff(store, async_client, auth_headers):
    store.payroll_runs.extend(
        [_run("R1", _dt(2024, 3, 31), 100), _run("R2", _dt(2024, 4, 30), 200), _run("R3", _dt(2024, 5, 31), 300)]
    )

    resp = await async_client.get(
        "/api/payroll-analytics/forecast",
        headers=auth_headers(SystemRole.FINANCE_STAFF.value),
    )

    assert resp.status_code == 200
    assert resp.json() == {"next_month_prediction": 400.0, "confidence": 0.85}


@pytest.mark.anyio
async def test_ghost_endpoint_unknown_run_is_404(async_client, auth_headers):
    resp = await async_client.get(
        "/api/payroll-analytics/anomalies/ghosts/nope",
        headers=auth_headers(SystemRole.PAYROLL_MANAGER.value),
    )

    assert resp.status_code == 404
    body = resp.json()["error"]
    assert body["code"] == "payroll_run_not_found"
    assert body["details"]["id"] == "nope"


@pytest.mark.anyio
async def test_anomalies_scan_latest_approved_run(store, payroll_service):
    older = _run("R-APR", _dt(2024, 4, 30), 3000)
    latest = _run("R-MAY", _dt(2024, 5, 31), 3000)
    store.payroll_runs.extend([older, latest])
    store.employees.append({"_id": "e1", "first_name": "No", "last_name": "Show"})
    store.payslips.extend(
        [
            {"payroll_run_id": older["_id"], "employee_id": "e1", "net_pay": 3000},
            {"payroll_run_id": latest["_id"], "employee_id": "e1", "net_pay": 3000},
        ]
    )
    store.attendance.append({"employee_id": "e1", "punches": [{"type": "IN", "time": _dt(2024, 4, 10)}]})

    anomalies = await payroll_service.get_anomalies()

    assert [a.employee_id for a in anomalies] == ["e1"]


@pytest.mark.anyio
async def test_anomalies_without_approved_runs_is_empty(payroll_service):
    assert await payroll_service.get_anomalies() == []
