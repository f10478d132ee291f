from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.repositories.base_repository import active_assignment_filter, get_collection
from app.utils import maybe_object_id


class OrgRepository:
    """Read access to departments, positions and position assignments."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._departments = get_collection(db, "departments")
        self._positions = get_collection(db, "positions")
        self._assignments = get_collection(db, "position_assignments")

    # ── Departments ─────────────────────────────────────────
    async def list_active_departments(self) -> List[Dict[str, Any]]:
        return await self._departments.find({"is_active": True}).to_list(length=None)

    async def list_departments(self) -> List[Dict[str, Any]]:
        """All departments, active or not, for name lookups."""

        return await self._departments.find({}, {"name": 1, "code": 1, "is_active": 1}).to_list(length=None)

    async def get_department(self, department_id: str) -> Optional[Dict[str, Any]]:
        return await self._departments.find_one({"_id": maybe_object_id(department_id)})

    async def count_active_departments(self) -> int:
        return await self._departments.count_documents({"is_active": True})

    async def distinct_cost_centers(self) -> List[str]:
        values = await self._departments.distinct("cost_center", {"is_active": True})
        return [v for v in values if v]

    # ── Positions ───────────────────────────────────────────
    async def list_active_positions(self, department_id: Optional[str] = None) -> List[Dict[str, Any]]:
        f: Dict[str, Any] = {"is_active": True}
        if department_id:
            f["department_id"] = maybe_object_id(department_id)
        return await self._positions.find(f).to_list(length=None)

    async def get_position(self, position_id: str) -> Optional[Dict[str, Any]]:
        return await self._positions.find_one({"_id": maybe_object_id(position_id)})

    async def list_positions(self) -> List[Dict[str, Any]]:
        return await self._positions.find({}, {"title": 1, "department_id": 1}).to_list(length=None)

    async def count_active_positions(self) -> int:
        return await self._positions.count_documents({"is_active": True})

    # ── Assignments ─────────────────────────────────────────
    async def list_active_assignments(
        self,
        now: datetime,
        position_ids: Optional[Iterable[Any]] = None,
    ) -> List[Dict[str, Any]]:
        extra: Dict[str, Any] = {}
        if position_ids is not None:
            extra["position_id"] = {"$in": list(position_ids)}
        cursor = self._assignments.find(active_assignment_filter(now, extra))
        return await cursor.to_list(length=None)

    async def count_active_assignments(self, now: datetime) -> int:
        return await self._assignments.count_documents(active_assignment_filter(now))
