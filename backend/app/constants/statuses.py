"""Status vocabularies of the HR collections read by the analytics layer."""
from __future__ import annotations

from enum import Enum


class EmployeeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PROBATION = "PROBATION"
    ON_LEAVE = "ON_LEAVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"
    RETIRED = "RETIRED"


# Population counted as "current workforce" by every headcount metric.
ACTIVE_WORKFORCE = [EmployeeStatus.ACTIVE.value, EmployeeStatus.ON_LEAVE.value, EmployeeStatus.PROBATION.value]
EXITED = [EmployeeStatus.TERMINATED.value, EmployeeStatus.RETIRED.value]


class AuditAction(str, Enum):
    STATUS_CHANGED = "STATUS_CHANGED"
    DEACTIVATED = "DEACTIVATED"
    UPDATED = "UPDATED"


class PayrollRunStatus(str, Enum):
    DRAFT = "draft"
    UNDER_REVIEW = "under review"
    PENDING_FINANCE_APPROVAL = "pending finance approval"
    REJECTED = "rejected"
    APPROVED = "approved"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class AppraisalStatus(str, Enum):
    DRAFT = "DRAFT"
    MANAGER_SUBMITTED = "MANAGER_SUBMITTED"
    PUBLISHED = "PUBLISHED"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class TimeExceptionStatus(str, Enum):
    OPEN = "OPEN"
    PENDING = "PENDING"
    ESCALATED = "ESCALATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RESOLVED = "RESOLVED"


RESOLVED_EXCEPTION_STATUSES = {
    TimeExceptionStatus.RESOLVED.value,
    TimeExceptionStatus.APPROVED.value,
    TimeExceptionStatus.REJECTED.value,
}
PENDING_EXCEPTION_STATUSES = {TimeExceptionStatus.OPEN.value, TimeExceptionStatus.PENDING.value}


class TimeExceptionType(str, Enum):
    LATE = "LATE"
    EARLY_LEAVE = "EARLY_LEAVE"
    MISSED_PUNCH = "MISSED_PUNCH"
    SHORT_TIME = "SHORT_TIME"
    OVERTIME_REQUEST = "OVERTIME_REQUEST"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
