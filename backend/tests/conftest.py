"""Shared test configuration and fixtures for backend tests.

Key principles:
- No live MongoDB: services run over the in-memory repositories in `fakes`.
- A fixed clock so every aggregation is reproducible.
- httpx.AsyncClient over ASGITransport against the real FastAPI app, with the
  service providers swapped through `app.dependency_overrides`.
- AnyIO is the single async runner (@pytest.mark.anyio).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict

import httpx
import pytest
from httpx import ASGITransport

from app.auth import create_access_token
from app.routers import analytics_deps
from app.services.analytics.leaves_dashboard import LeavesDashboardService
from app.services.analytics.org_structure_analytics import OrgStructureAnalyticsService
from app.services.analytics.payroll_analytics import PayrollAnalyticsService
from app.services.analytics.profile_analytics import ProfileAnalyticsService
from app.services.analytics.talent_analytics import TalentAnalyticsService
from app.services.analytics.time_management_dashboard import TimeManagementDashboardService
from app.services.analytics.workforce_analytics import WorkforceAnalyticsService
from fakes import (
    FakeAppraisalRepository,
    FakeAttendanceRepository,
    FakeAuditLogRepository,
    FakeEmployeeRepository,
    FakeLeaveRepository,
    FakeOrgRepository,
    FakePayrollRepository,
    FakeStore,
)
from server import app

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def payroll_service(store: FakeStore) -> PayrollAnalyticsService:
    return PayrollAnalyticsService(
        FakePayrollRepository(store),
        FakeAttendanceRepository(store),
        FakeEmployeeRepository(store),
        clock=fixed_clock,
    )


@pytest.fixture
def org_service(store: FakeStore) -> OrgStructureAnalyticsService:
    return OrgStructureAnalyticsService(FakeOrgRepository(store), FakeEmployeeRepository(store), clock=fixed_clock)


@pytest.fixture
def workforce_service(store: FakeStore) -> WorkforceAnalyticsService:
    return WorkforceAnalyticsService(
        FakeEmployeeRepository(store),
        FakeAuditLogRepository(store),
        FakeOrgRepository(store),
        FakeAppraisalRepository(store),
        clock=fixed_clock,
        synthetic_review_signal=False,
    )


@pytest.fixture
def talent_service(store: FakeStore) -> TalentAnalyticsService:
    return TalentAnalyticsService(
        FakeEmployeeRepository(store),
        FakeAppraisalRepository(store),
        FakeOrgRepository(store),
        clock=fixed_clock,
    )


@pytest.fixture
def profile_service(store: FakeStore) -> ProfileAnalyticsService:
    return ProfileAnalyticsService(FakeEmployeeRepository(store), FakeOrgRepository(store), clock=fixed_clock)


@pytest.fixture
def leaves_service(store: FakeStore) -> LeavesDashboardService:
    return LeavesDashboardService(
        FakeLeaveRepository(store),
        FakeEmployeeRepository(store),
        FakeOrgRepository(store),
        clock=fixed_clock,
    )


@pytest.fixture
def time_service(store: FakeStore) -> TimeManagementDashboardService:
    return TimeManagementDashboardService(
        FakeAttendanceRepository(store),
        FakeEmployeeRepository(store),
        FakeOrgRepository(store),
        clock=fixed_clock,
    )


@pytest.fixture
async def async_client(
    store,
    payroll_service,
    org_service,
    workforce_service,
    talent_service,
    profile_service,
    leaves_service,
    time_service,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    overrides: Dict[Callable[..., Any], Callable[..., Any]] = {
        analytics_deps.get_employee_repository: lambda: FakeEmployeeRepository(store),
        analytics_deps.get_payroll_service: lambda: payroll_service,
        analytics_deps.get_org_service: lambda: org_service,
        analytics_deps.get_workforce_service: lambda: workforce_service,
        analytics_deps.get_talent_service: lambda: talent_service,
        analytics_deps.get_profile_service: lambda: profile_service,
        analytics_deps.get_leaves_dashboard_service: lambda: leaves_service,
        analytics_deps.get_time_dashboard_service: lambda: time_service,
    }
    app.dependency_overrides.update(overrides)

    transport = ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test", timeout=30.0) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build a bearer header for a caller holding the given roles."""

    def _make(*roles: str, employee_id: str = "emp-caller", department_id: str | None = None) -> Dict[str, str]:
        token = create_access_token(
            subject=employee_id,
            roles=list(roles),
            employee_id=employee_id,
            department_id=department_id,
        )
        return {"Authorization": f"Bearer {token}"}

    return _make
