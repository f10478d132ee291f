"""In-memory stand-ins for the Mongo repositories.

Each fake reads from a shared `FakeStore` and mirrors the filtering and
ordering of the real repository method it replaces.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from app.constants.statuses import (
    EXITED,
    AppraisalStatus,
    AuditAction,
    PayrollRunStatus,
)
from app.utils import id_str, to_utc


@dataclass
class FakeStore:
    employees: List[Dict[str, Any]] = field(default_factory=list)
    audit_logs: List[Dict[str, Any]] = field(default_factory=list)
    departments: List[Dict[str, Any]] = field(default_factory=list)
    positions: List[Dict[str, Any]] = field(default_factory=list)
    assignments: List[Dict[str, Any]] = field(default_factory=list)
    payroll_runs: List[Dict[str, Any]] = field(default_factory=list)
    payslips: List[Dict[str, Any]] = field(default_factory=list)
    attendance: List[Dict[str, Any]] = field(default_factory=list)
    time_exceptions: List[Dict[str, Any]] = field(default_factory=list)
    shifts: List[Dict[str, Any]] = field(default_factory=list)
    shift_assignments: List[Dict[str, Any]] = field(default_factory=list)
    holidays: List[Dict[str, Any]] = field(default_factory=list)
    appraisals: List[Dict[str, Any]] = field(default_factory=list)
    leave_requests: List[Dict[str, Any]] = field(default_factory=list)
    leave_entitlements: List[Dict[str, Any]] = field(default_factory=list)
    leave_types: List[Dict[str, Any]] = field(default_factory=list)
    leave_policies: List[Dict[str, Any]] = field(default_factory=list)


def _between(value: Any, start: datetime, end: datetime) -> bool:
    v = to_utc(value)
    return v is not None and start <= v <= end


def _assignment_active(a: Dict[str, Any], now: datetime) -> bool:
    end = to_utc(a.get("end_date"))
    return end is None or end > now


class FakeEmployeeRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_by_id(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return next((e for e in self._store.employees if id_str(e) == str(employee_id)), None)

    async def list_by_statuses(self, statuses: Iterable[str]) -> List[Dict[str, Any]]:
        wanted = set(statuses)
        return [e for e in self._store.employees if e.get("status") in wanted]

    async def count_by_statuses(self, statuses: Iterable[str]) -> int:
        return len(await self.list_by_statuses(statuses))

    async def list_hired(self) -> List[Dict[str, Any]]:
        return [e for e in self._store.employees if e.get("date_of_hire") is not None]

    async def list_exited_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return [
            e
            for e in self._store.employees
            if e.get("status") in EXITED and _between(e.get("status_effective_from"), start, end)
        ]

    async def list_by_department(self, department_id: str, statuses: Iterable[str]) -> List[Dict[str, Any]]:
        wanted = set(statuses)
        return [
            e
            for e in self._store.employees
            if id_str(e.get("primary_department_id")) == department_id and e.get("status") in wanted
        ]

    async def list_by_ids(self, ids: Iterable[Any], statuses: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        wanted_ids = {id_str(i) for i in ids}
        wanted_statuses = set(statuses) if statuses is not None else None
        return [
            e
            for e in self._store.employees
            if id_str(e) in wanted_ids and (wanted_statuses is None or e.get("status") in wanted_statuses)
        ]


class FakeAuditLogRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def list_termination_events(self, since: datetime) -> List[Dict[str, Any]]:
        actions = {AuditAction.STATUS_CHANGED.value, AuditAction.DEACTIVATED.value}
        return [
            ev
            for ev in self._store.audit_logs
            if ev.get("action") in actions
            and (to_utc(ev.get("created_at")) or since) >= since
            and (ev.get("after_snapshot") or {}).get("status") in EXITED
        ]


class FakeOrgRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def list_active_departments(self) -> List[Dict[str, Any]]:
        return [d for d in self._store.departments if d.get("is_active")]

    async def list_departments(self) -> List[Dict[str, Any]]:
        return list(self._store.departments)

    async def get_department(self, department_id: str) -> Optional[Dict[str, Any]]:
        return next((d for d in self._store.departments if id_str(d) == department_id), None)

    async def count_active_departments(self) -> int:
        return len(await self.list_active_departments())

    async def distinct_cost_centers(self) -> List[str]:
        return sorted({d["cost_center"] for d in self._store.departments if d.get("is_active") and d.get("cost_center")})

    async def list_active_positions(self, department_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            p
            for p in self._store.positions
            if p.get("is_active") and (not department_id or id_str(p.get("department_id")) == department_id)
        ]

    async def get_position(self, position_id: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self._store.positions if id_str(p) == position_id), None)

    async def list_positions(self) -> List[Dict[str, Any]]:
        return list(self._store.positions)

    async def count_active_positions(self) -> int:
        return len(await self.list_active_positions())

    async def list_active_assignments(self, now: datetime, position_ids: Optional[Iterable[Any]] = None):
        wanted = {id_str(p) for p in position_ids} if position_ids is not None else None
        return [
            a
            for a in self._store.assignments
            if _assignment_active(a, now) and (wanted is None or id_str(a.get("position_id")) in wanted)
        ]

    async def count_active_assignments(self, now: datetime) -> int:
        return len(await self.list_active_assignments(now))


class FakePayrollRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def _approved(self) -> List[Dict[str, Any]]:
        return [r for r in self._store.payroll_runs if r.get("status") == PayrollRunStatus.APPROVED.value]

    async def latest_approved_runs(self, limit: int, entity_id: Optional[str] = None) -> List[Dict[str, Any]]:
        runs = [r for r in self._approved() if not entity_id or r.get("entity_id") == entity_id]
        runs.sort(key=lambda r: to_utc(r["payroll_period"]), reverse=True)
        return runs[:limit]

    async def approved_runs_since(self, start: datetime) -> List[Dict[str, Any]]:
        runs = [r for r in self._approved() if to_utc(r["payroll_period"]) >= start]
        runs.sort(key=lambda r: to_utc(r["payroll_period"]))
        return runs

    async def find_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        run = next((r for r in self._store.payroll_runs if r.get("run_id") == run_id), None)
        if run is None:
            run = next((r for r in self._store.payroll_runs if id_str(r) == run_id), None)
        return run

    async def list_payslips(self, run_oid: Any) -> List[Dict[str, Any]]:
        return [s for s in self._store.payslips if id_str(s.get("payroll_run_id")) == id_str(run_oid)]


class FakeAttendanceRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def count_punched_records(self, employee_id: Any, start: datetime, end: datetime) -> int:
        return sum(
            1
            for r in self._store.attendance
            if id_str(r.get("employee_id")) == id_str(employee_id)
            and any(_between(p.get("time"), start, end) for p in r.get("punches") or [])
        )

    async def list_records_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return [r for r in self._store.attendance if _between(r.get("created_at"), start, end)]

    async def list_exceptions_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return [e for e in self._store.time_exceptions if _between(e.get("created_at"), start, end)]

    async def list_shifts(self) -> List[Dict[str, Any]]:
        return list(self._store.shifts)

    async def list_shift_assignments(self) -> List[Dict[str, Any]]:
        return list(self._store.shift_assignments)

    async def list_active_holidays(self) -> List[Dict[str, Any]]:
        active = [h for h in self._store.holidays if h.get("active") is not False]
        return sorted(active, key=lambda h: to_utc(h.get("start_date")))


class FakeAppraisalRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def list_published(self, employee_id: Optional[str] = None, limit: int = 0) -> List[Dict[str, Any]]:
        rows = [
            a
            for a in self._store.appraisals
            if a.get("status") == AppraisalStatus.PUBLISHED.value
            and (not employee_id or id_str(a.get("employee_profile_id")) == employee_id)
        ]
        rows.sort(key=lambda a: to_utc(a.get("created_at")), reverse=True)
        return rows[:limit] if limit else rows

    async def count_all(self) -> int:
        return len(self._store.appraisals)

    async def reviewed_employee_ids_since(self, since: datetime) -> Set[str]:
        return {
            id_str(a.get("employee_profile_id"))
            for a in await self.list_published()
            if (to_utc(a.get("created_at")) or since) >= since
        }


class FakeLeaveRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def list_requests_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        rows = [r for r in self._store.leave_requests if _between(r.get("created_at"), start, end)]
        return sorted(rows, key=lambda r: to_utc(r.get("created_at")))

    async def list_entitlements(self) -> List[Dict[str, Any]]:
        return list(self._store.leave_entitlements)

    async def list_leave_types(self) -> List[Dict[str, Any]]:
        return list(self._store.leave_types)

    async def list_policies(self) -> List[Dict[str, Any]]:
        return list(self._store.leave_policies)
