from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.constants.statuses import AppraisalStatus
from app.repositories.base_repository import get_collection
from app.utils import id_str, maybe_object_id


class AppraisalRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "appraisal_records")

    async def list_published(self, employee_id: Optional[str] = None, limit: int = 0) -> List[Dict[str, Any]]:
        """Published appraisals, newest first."""

        f: Dict[str, Any] = {"status": AppraisalStatus.PUBLISHED.value}
        if employee_id:
            f["employee_profile_id"] = maybe_object_id(employee_id)
        cursor = self._col.find(f).sort("created_at", -1)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count_all(self) -> int:
        return await self._col.count_documents({})

    async def reviewed_employee_ids_since(self, since: datetime) -> Set[str]:
        """Ids of employees with a published appraisal created at or after `since`."""

        values = await self._col.distinct(
            "employee_profile_id",
            {"status": AppraisalStatus.PUBLISHED.value, "created_at": {"$gte": since}},
        )
        return {id_str(v) for v in values}
