from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.constants.statuses import PayrollRunStatus
from app.repositories.base_repository import get_collection


class PayrollRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._runs = get_collection(db, "payroll_runs")
        self._payslips = get_collection(db, "payslips")

    async def latest_approved_runs(self, limit: int, entity_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Approved runs, most recent payroll period first."""

        f: Dict[str, Any] = {"status": PayrollRunStatus.APPROVED.value}
        if entity_id:
            f["entity_id"] = entity_id
        cursor = self._runs.find(f).sort("payroll_period", -1).limit(limit)
        return await cursor.to_list(length=limit)

    async def approved_runs_since(self, start: datetime) -> List[Dict[str, Any]]:
        """Approved runs from `start` on, oldest first."""

        cursor = self._runs.find(
            {"status": PayrollRunStatus.APPROVED.value, "payroll_period": {"$gte": start}}
        ).sort("payroll_period", 1)
        return await cursor.to_list(length=None)

    async def find_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Resolve a run by its business `run_id`, falling back to `_id`."""

        run = await self._runs.find_one({"run_id": run_id})
        if run is None and ObjectId.is_valid(run_id):
            run = await self._runs.find_one({"_id": ObjectId(run_id)})
        return run

    async def list_payslips(self, run_oid: Any) -> List[Dict[str, Any]]:
        cursor = self._payslips.find(
            {"payroll_run_id": run_oid},
            {"employee_id": 1, "net_pay": 1, "total_gross_salary": 1},
        )
        return await cursor.to_list(length=None)
