from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

HealthStatus = Literal["EXCELLENT", "GOOD", "FAIR", "POOR"]


# ── Shared blocks ───────────────────────────────────────
class HealthComponent(BaseModel):
    name: str
    score: int
    status: HealthStatus
    weight: float
    details: str = ""


class HealthScore(BaseModel):
    overall_score: int = 0
    status: HealthStatus = "POOR"
    components: List[HealthComponent] = Field(default_factory=list)
    top_issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class StoryCard(BaseModel):
    title: str
    trend: Literal["UP", "DOWN", "STABLE"]
    narrative: str
    value: str
    metric: str
    impact: Literal["positive", "negative", "neutral"] = "neutral"


class NamedCount(BaseModel):
    name: str
    count: int


# ── Leaves ──────────────────────────────────────────────
class LeavesOverview(BaseModel):
    period_days: int = 0
    total_requests: int = 0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    cancelled_requests: int = 0
    total_days_taken: float = 0
    approval_rate: int = 0
    avg_request_duration: float = 0


class LeaveTypeBalance(BaseModel):
    leave_type_id: str
    leave_type_name: str
    entitled: float
    taken: float
    remaining: float
    utilization_rate: int


class BalanceSummary(BaseModel):
    total_entitlements: float = 0
    total_accrued: float = 0
    total_taken: float = 0
    total_remaining: float = 0
    total_pending: float = 0
    balances_by_type: List[LeaveTypeBalance] = Field(default_factory=list)
    employees_with_low_balance: int = 0
    employees_with_high_balance: int = 0


class RequestTrendPoint(BaseModel):
    date: str
    requests: int
    approved: int
    rejected: int
    pending: int
    days: float


class DepartmentLeaveStats(BaseModel):
    department_id: str
    department_name: str
    employee_count: int
    total_requests: int
    total_days: float
    approval_rate: int
    avg_days_per_employee: float


class LeaveTypeStats(BaseModel):
    leave_type_id: str
    leave_type_name: str
    total_requests: int
    total_days: float
    avg_duration: float
    approval_rate: int
    trend: Literal["INCREASING", "DECREASING", "STABLE"]


class SeasonalPattern(BaseModel):
    month: str
    requests: int
    days: float


class RoleApprovals(BaseModel):
    role: str
    approved: int
    rejected: int
    pending: int


class Bottleneck(BaseModel):
    role: str
    pending_count: int
    avg_wait_hours: float
    description: str


class ApprovalWorkflow(BaseModel):
    avg_approval_time: float = 0
    approval_rate: int = 0
    pending_backlog: int = 0
    escalation_rate: int = 0
    approvals_by_role: List[RoleApprovals] = Field(default_factory=list)
    bottlenecks: List[Bottleneck] = Field(default_factory=list)


class PolicyCompliance(BaseModel):
    overall_compliance_rate: int = 0
    policies_configured: int = 0
    policies_active: int = 0
    leave_types_without_policy: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class NextMonthForecast(BaseModel):
    predicted_requests: int = 0
    predicted_days: float = 0
    confidence: int = 0
    factors: List[str] = Field(default_factory=list)


class YearEndForecast(BaseModel):
    expiring_balances: float = 0
    employees_at_risk_of_losing_days: int = 0


class LeaveForecast(BaseModel):
    next_month: NextMonthForecast = Field(default_factory=NextMonthForecast)
    year_end: YearEndForecast = Field(default_factory=YearEndForecast)


class LeavesDashboard(BaseModel):
    generated_at: datetime
    overview: LeavesOverview
    balance_summary: BalanceSummary
    request_trends: List[RequestTrendPoint]
    department_analysis: List[DepartmentLeaveStats]
    leave_type_analysis: List[LeaveTypeStats]
    seasonal_patterns: List[SeasonalPattern]
    approval_workflow: ApprovalWorkflow
    policy_compliance: PolicyCompliance
    forecasting: LeaveForecast
    health_score: HealthScore
    stories: List[StoryCard]


# ── Time management ─────────────────────────────────────
class TimeOverview(BaseModel):
    period_days: int = 0
    total_records: int = 0
    employees_tracked: int = 0
    avg_work_hours_per_day: float = 0
    missed_punch_count: int = 0
    missed_punch_rate: int = 0
    finalised_for_payroll_count: int = 0
    total_exceptions: int = 0


class AttendanceTrendPoint(BaseModel):
    date: str
    day_of_week: str
    total_employees: int
    records: int
    avg_work_hours: float
    missed_punches: int
    late_arrivals: int
    on_time_rate: int


class DepartmentPunctuality(BaseModel):
    department_id: str
    department_name: str
    score: int


class PunctualityScore(BaseModel):
    score: int = 0
    status: HealthStatus = "POOR"
    late_arrivals: int = 0
    early_leaves: int = 0
    on_time_rate: int = 0
    late_percentage: int = 0
    early_departure_percentage: int = 0
    score_by_department: List[DepartmentPunctuality] = Field(default_factory=list)


class DepartmentAttendance(BaseModel):
    department_id: str
    department_name: str
    employee_count: int
    total_records: int
    avg_work_hours_per_day: float
    missed_punch_rate: int
    late_arrival_rate: int
    total_exceptions: int


class DepartmentHours(BaseModel):
    department_name: str
    hours: float


class EmployeeHours(BaseModel):
    employee_id: str
    name: str
    hours: float


class OvertimeAnalysis(BaseModel):
    total_overtime_hours: float = 0
    employees_with_overtime: int = 0
    avg_overtime_per_employee: float = 0
    overtime_by_department: List[DepartmentHours] = Field(default_factory=list)
    top_overtime_employees: List[EmployeeHours] = Field(default_factory=list)


class ResolutionMetrics(BaseModel):
    resolved: int = 0
    pending: int = 0
    escalated: int = 0
    resolution_rate: int = 0


class ExceptionAnalysis(BaseModel):
    total_exceptions: int = 0
    exceptions_by_type: List[NamedCount] = Field(default_factory=list)
    exceptions_by_status: List[NamedCount] = Field(default_factory=list)
    resolution_metrics: ResolutionMetrics = Field(default_factory=ResolutionMetrics)


class ShiftDistribution(BaseModel):
    shift_id: str
    shift_name: str
    employee_count: int
    percentage: int


class UpcomingHoliday(BaseModel):
    name: str
    type: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    days_until: int


class HolidayCalendar(BaseModel):
    total_holidays: int = 0
    upcoming_holidays: List[UpcomingHoliday] = Field(default_factory=list)
    holidays_by_month: List[NamedCount] = Field(default_factory=list)


class DayWorkload(BaseModel):
    day: str
    records: int
    avg_work_hours: float


class WorkloadBalance(BaseModel):
    underworked: int = 0
    optimal: int = 0
    overworked: int = 0


class WorkPatterns(BaseModel):
    avg_daily_work_hours: float = 0
    most_active_day: Optional[str] = None
    workload_balance: WorkloadBalance = Field(default_factory=WorkloadBalance)
    work_distribution_by_day: List[DayWorkload] = Field(default_factory=list)


class TimeManagementDashboard(BaseModel):
    generated_at: datetime
    overview: TimeOverview
    attendance_trends: List[AttendanceTrendPoint]
    punctuality: PunctualityScore
    department_metrics: List[DepartmentAttendance]
    overtime_analysis: OvertimeAnalysis
    exception_analysis: ExceptionAnalysis
    shift_distribution: List[ShiftDistribution]
    holiday_calendar: HolidayCalendar
    work_patterns: WorkPatterns
    health_score: HealthScore
    stories: List[StoryCard]
