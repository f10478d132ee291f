from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

RiskLevel = Literal["HIGH", "MEDIUM", "LOW"]


class FactInsight(BaseModel):
    type: Literal["critical", "warning", "info"]
    title: str
    description: str
    metric: Optional[str] = None


class BracketCount(BaseModel):
    bracket: str
    count: int


class SpanOfControlSummary(BaseModel):
    average: float
    distribution: List[BracketCount]


class HierarchyStats(BaseModel):
    max_depth: int
    average_depth: float


class StructuralHealthScore(BaseModel):
    overall_fill_rate: int
    management_ratio: int
    span_of_control: SpanOfControlSummary
    hierarchy_stats: HierarchyStats
    tenure_distribution: List[BracketCount]
    insights: List[FactInsight]


class DepartmentAnalytics(BaseModel):
    department_id: str
    department_name: str
    total_positions: int
    filled_positions: int
    vacant_positions: int
    fill_rate: int
    headcount: int
    avg_tenure: float
    management_count: int
    ic_count: int


class CurrentHolder(BaseModel):
    employee_id: str
    name: str
    tenure: float


class PositionRiskAssessment(BaseModel):
    position_id: str
    position_title: str
    department: str
    department_id: str
    impact_level: RiskLevel
    vacancy_risk: RiskLevel
    succession_status: Literal["COVERED", "AT_RISK", "NO_PLAN"]
    facts: List[str]
    current_holder: Optional[CurrentHolder] = None


class CostCenterSummary(BaseModel):
    cost_center: str
    department_count: int
    position_count: int
    estimated_headcount: int
    utilization_rate: int


ChangeAction = Literal["DEACTIVATE_POSITION", "DEACTIVATE_DEPARTMENT"]


class SimulateChangeRequest(BaseModel):
    action_type: ChangeAction
    target_id: str = Field(..., min_length=1)


class ChangeImpactAnalysis(BaseModel):
    action_type: ChangeAction
    target_id: str
    target_name: str
    impact_level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    affected_positions: int
    affected_employees: int
    downstream_effects: List[str]
    recommendation: str


class SpanOfControlMetric(BaseModel):
    position_id: str
    position_title: str
    department: str
    direct_reports: int
    ideal_span: int
    status: Literal["OPTIMAL", "UNDERSTAFFED", "OVERSTAFFED"]


class VacancyForecast(BaseModel):
    position_id: str
    position_title: str
    department: str
    department_id: str
    likelihood: float
    timeframe: str
    risk_level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    factors: List[str]


class OrgSummaryStats(BaseModel):
    total_departments: int
    total_positions: int
    filled_positions: int
    vacant_positions: int
    fill_rate: int
    total_employees: int
    cost_center_count: int


class TeamSpanStats(BaseModel):
    avg: float
    min: int
    max: int
    median: int


class TeamDepthStats(BaseModel):
    avg: float
    max: int


class TeamMetrics(BaseModel):
    span_of_control: TeamSpanStats
    depth: TeamDepthStats
    headcount: int
    total_positions: int
    filled_positions: int
    vacant_positions: int
    fill_rate: int
    avg_tenure: float
    issues: List[str]


class TeamStructureMetrics(BaseModel):
    department_id: str
    department_name: str
    metrics: TeamMetrics


class OrgChartNode(BaseModel):
    id: str
    name: str
    position: str
    department: str
    manager_id: Optional[str] = None
    image_url: Optional[str] = None
