from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.repositories.base_repository import get_collection


class LeaveRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._requests = get_collection(db, "leave_requests")
        self._entitlements = get_collection(db, "leave_entitlements")
        self._types = get_collection(db, "leave_types")
        self._policies = get_collection(db, "leave_policies")

    async def list_requests_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        cursor = self._requests.find({"created_at": {"$gte": start, "$lte": end}}).sort("created_at", 1)
        return await cursor.to_list(length=None)

    async def list_entitlements(self) -> List[Dict[str, Any]]:
        return await self._entitlements.find({}).to_list(length=None)

    async def list_leave_types(self) -> List[Dict[str, Any]]:
        return await self._types.find({}, {"name": 1, "code": 1}).to_list(length=None)

    async def list_policies(self) -> List[Dict[str, Any]]:
        return await self._policies.find({}, {"leave_type_id": 1, "is_active": 1}).to_list(length=None)
