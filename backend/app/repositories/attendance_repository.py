from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.repositories.base_repository import get_collection


class AttendanceRepository:
    """Time-management collections: attendance, exceptions, shifts, holidays."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._records = get_collection(db, "attendance_records")
        self._exceptions = get_collection(db, "time_exceptions")
        self._shifts = get_collection(db, "shifts")
        self._shift_assignments = get_collection(db, "shift_assignments")
        self._holidays = get_collection(db, "holidays")

    async def count_punched_records(self, employee_id: Any, start: datetime, end: datetime) -> int:
        """Attendance records of `employee_id` with at least one punch in [start, end]."""

        return await self._records.count_documents(
            {"employee_id": employee_id, "punches.time": {"$gte": start, "$lte": end}}
        )

    async def list_records_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        cursor = self._records.find({"created_at": {"$gte": start, "$lte": end}})
        return await cursor.to_list(length=None)

    async def list_exceptions_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        cursor = self._exceptions.find({"created_at": {"$gte": start, "$lte": end}})
        return await cursor.to_list(length=None)

    async def list_shifts(self) -> List[Dict[str, Any]]:
        return await self._shifts.find({}, {"name": 1}).to_list(length=None)

    async def list_shift_assignments(self) -> List[Dict[str, Any]]:
        return await self._shift_assignments.find({}).to_list(length=None)

    async def list_active_holidays(self) -> List[Dict[str, Any]]:
        cursor = self._holidays.find({"active": {"$ne": False}}).sort("start_date", 1)
        return await cursor.to_list(length=None)
