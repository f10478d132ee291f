from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from app.constants.roles import SystemRole
from app.services.analytics.leaves_dashboard import (
    LeavesDashboardService,
    build_approval_workflow,
    build_policy_compliance,
)
from fakes import FakeEmployeeRepository, FakeLeaveRepository, FakeOrgRepository

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _dt(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _request(rid, employee, leave_type, status, days, created, decided=None, flow=None) -> dict:
    return {
        "_id": rid,
        "employee_id": employee,
        "leave_type_id": leave_type,
        "status": status,
        "duration_days": days,
        "created_at": created,
        "decided_at": decided,
        "approval_flow": flow or [],
    }


def _seed(store) -> None:
    store.departments.append({"_id": "d1", "name": "Support"})
    store.employees.extend(
        [
            {"_id": "e1", "status": "ACTIVE", "primary_department_id": "d1"},
            {"_id": "e2", "status": "ACTIVE", "primary_department_id": "d1"},
        ]
    )
    store.leave_types.extend([{"_id": "t1", "name": "Annual"}, {"_id": "t2", "name": "Sick"}])
    store.leave_policies.append({"leave_type_id": "t1", "is_active": True})
    store.leave_entitlements.extend(
        [
            {"employee_id": "e1", "leave_type_id": "t1", "yearly_entitlement": 20, "accrued_actual": 10,
             "taken": 6, "remaining": 14, "pending": 1},
            {"employee_id": "e2", "leave_type_id": "t1", "yearly_entitlement": 20, "accrued_actual": 10,
             "taken": 18, "remaining": 2, "pending": 0},
        ]
    )
    store.leave_requests.extend(
        [
            _request("r1", "e1", "t1", "approved", 3, _dt(2024, 6, 1), _dt(2024, 6, 2),
                     [{"role": "department head", "status": "approved"}]),
            _request("r2", "e2", "t1", "rejected", 2, _dt(2024, 6, 5), _dt(2024, 6, 6),
                     [{"role": "department head", "status": "rejected"}]),
            _request("r3", "e1", "t2", "pending", 1, _dt(2024, 6, 10),
                     flow=[{"role": "HR Manager", "status": "pending"}]),
            _request("r4", "e1", "t1", "approved", 4, _dt(2024, 5, 1), _dt(2024, 5, 2)),
        ]
    )


def test_policy_compliance_lists_uncovered_types():
    compliance = build_policy_compliance(
        [{"leave_type_id": "t1"}, {"leave_type_id": "t2", "is_active": False}],
        {"t1": "Annual", "t2": "Sick"},
    )

    assert compliance.overall_compliance_rate == 50
    assert compliance.policies_configured == 2
    assert compliance.policies_active == 1
    assert compliance.leave_types_without_policy == ["Sick"]
    assert compliance.recommendations == ["Create an active policy for leave type Sick"]


def test_approval_workflow_counts_escalations():
    requests = [
        _request("a", "e1", "t1", "pending", 1, _dt(2024, 6, 14),
                 flow=[{"role": "department head", "status": "Escalated"}]),
        _request("b", "e1", "t1", "pending", 1, _dt(2024, 6, 14)),
    ]

    workflow = build_approval_workflow(requests, NOW)

    assert workflow.escalation_rate == 50
    assert workflow.pending_backlog == 2
    assert workflow.avg_approval_time == 0
    assert workflow.bottlenecks == []


@pytest.mark.anyio
async def test_dashboard_sections(store, leaves_service):
    _seed(store)

    dashboard = await leaves_service.get_dashboard(30)

    overview = dashboard.overview
    assert (overview.total_requests, overview.pending_requests, overview.approved_requests) == (3, 1, 1)
    assert overview.total_days_taken == 3.0
    assert overview.approval_rate == 50
    assert overview.avg_request_duration == 2.0

    balances = dashboard.balance_summary
    assert balances.total_entitlements == 40.0
    assert balances.total_taken == 24.0
    assert balances.balances_by_type[0].utilization_rate == 60
    assert (balances.employees_with_low_balance, balances.employees_with_high_balance) == (1, 0)

    trends = dashboard.request_trends
    assert len(trends) == 31
    assert (trends[0].date, trends[-1].date) == ("2024-05-16", "2024-06-15")
    assert next(t for t in trends if t.date == "2024-06-01").days == 3.0

    [support] = dashboard.department_analysis
    assert (support.total_requests, support.total_days, support.avg_days_per_employee) == (3, 6.0, 3.0)

    types = {t.leave_type_name: t for t in dashboard.leave_type_analysis}
    assert types["Annual"].total_requests == 2
    assert types["Annual"].avg_duration == 2.5
    assert types["Annual"].trend == "INCREASING"

    seasonal = dashboard.seasonal_patterns
    assert (seasonal[0].month, seasonal[-1].month) == ("2023-07", "2024-06")
    assert (seasonal[-1].requests, seasonal[-2].requests) == (3, 1)

    workflow = dashboard.approval_workflow
    assert workflow.avg_approval_time == 24.0
    assert [r.role for r in workflow.approvals_by_role] == ["HR Manager", "department head"]
    assert [(b.role, b.avg_wait_hours) for b in workflow.bottlenecks] == [("HR Manager", 120.0)]

    forecast = dashboard.forecasting
    assert forecast.next_month.predicted_requests == 1
    assert forecast.next_month.confidence == 60
    assert forecast.next_month.factors[-1] == "1 requests still pending"
    assert forecast.year_end.expiring_balances == 9.0
    assert forecast.year_end.employees_at_risk_of_losing_days == 1

    health = dashboard.health_score
    assert health.overall_score == 82
    assert health.status == "GOOD"
    assert health.top_issues == ["Request Backlog: 1 pending requests", "Policy Coverage: 1 leave types without policy"]
    assert len(health.recommendations) == 2

    stories = {s.title: s for s in dashboard.stories}
    assert stories["Leave Request Volume"].trend == "UP"
    assert stories["Days Taken"].trend == "DOWN"
    assert stories["Approval Rate"].impact == "negative"
    assert stories["Pending Backlog"].value == "1"


@pytest.mark.anyio
async def test_empty_dashboard_renders(leaves_service):
    dashboard = await leaves_service.get_dashboard(7)

    assert dashboard.overview.total_requests == 0
    assert dashboard.forecasting.next_month.predicted_requests == 0
    assert dashboard.approval_workflow.bottlenecks == []
    assert len(dashboard.stories) == 4


@pytest.mark.anyio
async def test_request_trends_include_first_day_of_window(store, leaves_service):
    store.employees.append({"_id": "e1", "status": "ACTIVE"})
    store.leave_requests.append(_request("r1", "e1", "t1", "pending", 1, _dt(2024, 5, 16, 18)))

    dashboard = await leaves_service.get_dashboard(30)

    assert dashboard.overview.total_requests == 1
    assert sum(t.requests for t in dashboard.request_trends) == 1
    assert dashboard.request_trends[0].date == "2024-05-16"
    assert dashboard.request_trends[0].pending == 1


class _BrokenPolicies(FakeLeaveRepository):
    async def list_policies(self):
        raise RuntimeError("policies collection unavailable")


@pytest.mark.anyio
async def test_failed_section_falls_back_to_default(store, caplog):
    _seed(store)
    service = LeavesDashboardService(
        _BrokenPolicies(store),
        FakeEmployeeRepository(store),
        FakeOrgRepository(store),
        clock=lambda: NOW,
    )

    with caplog.at_level(logging.WARNING):
        dashboard = await service.get_dashboard(30)

    assert dashboard.policy_compliance.policies_configured == 0
    assert dashboard.policy_compliance.leave_types_without_policy == ["Annual", "Sick"]
    assert dashboard.overview.total_requests == 3
    assert "section policies failed" in caplog.text


@pytest.mark.anyio
async def test_dashboard_route(store, async_client, auth_headers):
    _seed(store)

    ok = await async_client.get(
        "/api/leaves-analytics/dashboard?days=30",
        headers=auth_headers(SystemRole.HR_MANAGER.value),
    )
    denied = await async_client.get(
        "/api/leaves-analytics/dashboard",
        headers=auth_headers(SystemRole.DEPARTMENT_HEAD.value),
    )
    invalid = await async_client.get(
        "/api/leaves-analytics/dashboard?days=0",
        headers=auth_headers(SystemRole.HR_ADMIN.value),
    )

    assert ok.status_code == 200
    assert ok.json()["overview"]["total_requests"] == 3
    assert denied.status_code == 403
    assert invalid.status_code == 422
