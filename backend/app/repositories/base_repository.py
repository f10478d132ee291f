from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection


def get_collection(db: AsyncIOMotorDatabase, name: str) -> AsyncIOMotorCollection:
    """Return a Motor collection from the given database.

    This is the only place where repositories should obtain collections.
    """

    return db[name]


def active_assignment_filter(now: datetime, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Mongo filter for position assignments that are currently in effect.

    Assignments carry no active flag; an assignment is current while its
    `end_date` is missing, null or still in the future.
    """

    f: Dict[str, Any] = {
        "$or": [
            {"end_date": {"$exists": False}},
            {"end_date": None},
            {"end_date": {"$gt": now}},
        ]
    }
    if extra:
        f.update(extra)
    return f
