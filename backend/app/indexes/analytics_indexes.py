"""Read indexes backing the analytics queries. Idempotent."""
from __future__ import annotations

import logging

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure

logger = logging.getLogger("analytics_indexes")

INDEX_SPECS = [
    # Workforce
    ("employee_profiles", [("status", ASCENDING), ("primary_department_id", ASCENDING)], {}),
    ("employee_profiles", [("status", ASCENDING), ("status_effective_from", DESCENDING)], {}),
    ("employee_profile_audit_logs", [("action", ASCENDING), ("created_at", DESCENDING)], {}),
    # Organization structure
    ("departments", [("is_active", ASCENDING)], {}),
    ("positions", [("is_active", ASCENDING), ("department_id", ASCENDING)], {}),
    ("position_assignments", [("position_id", ASCENDING), ("end_date", ASCENDING)], {}),
    # Payroll
    ("payroll_runs", [("status", ASCENDING), ("payroll_period", DESCENDING)], {}),
    ("payroll_runs", [("run_id", ASCENDING)], {}),
    ("payslips", [("payroll_run_id", ASCENDING)], {}),
    # Time management
    ("attendance_records", [("employee_id", ASCENDING), ("punches.time", ASCENDING)], {}),
    ("attendance_records", [("created_at", DESCENDING)], {}),
    ("time_exceptions", [("created_at", DESCENDING)], {}),
    # Performance
    ("appraisal_records", [("status", ASCENDING), ("employee_profile_id", ASCENDING), ("created_at", DESCENDING)], {}),
    # Leaves
    ("leave_requests", [("created_at", ASCENDING)], {}),
    ("leave_entitlements", [("employee_id", ASCENDING), ("leave_type_id", ASCENDING)], {}),
]


async def ensure_analytics_indexes(db) -> dict[str, list[str]]:
    """Create the analytics read indexes, reporting what was created or skipped."""
    created = []
    skipped = []
    errors = []

    for collection_name, keys, options in INDEX_SPECS:
        try:
            await db[collection_name].create_index(keys, **options)
            created.append(f"{collection_name}: {keys}")
        except OperationFailure as e:
            err_str = str(e)
            if "already exists" in err_str.lower() or "IndexOptionsConflict" in err_str:
                skipped.append(f"{collection_name}: {keys}")
            else:
                errors.append(f"{collection_name}: {keys} -> {err_str[:100]}")
                logger.warning("Index creation failed: %s %s", collection_name, err_str[:200])

    logger.info("Analytics indexes: %d created, %d skipped, %d errors", len(created), len(skipped), len(errors))
    return {"created": created, "skipped": skipped, "errors": errors}
