from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.constants.statuses import AuditAction, EXITED
from app.repositories.base_repository import get_collection
from app.utils import maybe_object_id


class EmployeeRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "employee_profiles")

    async def get_by_id(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"_id": maybe_object_id(employee_id)})

    async def list_by_statuses(self, statuses: Iterable[str]) -> List[Dict[str, Any]]:
        cursor = self._col.find({"status": {"$in": list(statuses)}})
        return await cursor.to_list(length=None)

    async def count_by_statuses(self, statuses: Iterable[str]) -> int:
        return await self._col.count_documents({"status": {"$in": list(statuses)}})

    async def list_hired(self) -> List[Dict[str, Any]]:
        """Every profile with a hire date, regardless of status."""

        cursor = self._col.find(
            {"date_of_hire": {"$exists": True, "$ne": None}},
            {"date_of_hire": 1, "status": 1, "status_effective_from": 1},
        )
        return await cursor.to_list(length=None)

    async def list_exited_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        cursor = self._col.find(
            {
                "status": {"$in": EXITED},
                "status_effective_from": {"$gte": start, "$lte": end},
            }
        )
        return await cursor.to_list(length=None)

    async def list_by_department(self, department_id: str, statuses: Iterable[str]) -> List[Dict[str, Any]]:
        cursor = self._col.find(
            {
                "primary_department_id": maybe_object_id(department_id),
                "status": {"$in": list(statuses)},
            }
        )
        return await cursor.to_list(length=None)

    async def list_by_ids(
        self,
        ids: Iterable[Any],
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        id_list = [maybe_object_id(str(i)) for i in ids]
        if not id_list:
            return []
        f: Dict[str, Any] = {"_id": {"$in": id_list}}
        if statuses is not None:
            f["status"] = {"$in": list(statuses)}
        return await self._col.find(f).to_list(length=None)


class AuditLogRepository:
    """Employee profile audit trail; terminations are inferred from it."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "employee_profile_audit_logs")

    async def list_termination_events(self, since: datetime) -> List[Dict[str, Any]]:
        cursor = self._col.find(
            {
                "action": {"$in": [AuditAction.STATUS_CHANGED.value, AuditAction.DEACTIVATED.value]},
                "created_at": {"$gte": since},
                "after_snapshot.status": {"$in": EXITED},
            },
            {"created_at": 1, "employee_profile_id": 1, "after_snapshot": 1},
        )
        return await cursor.to_list(length=None)
