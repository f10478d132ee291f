from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel


class HeadcountTrend(BaseModel):
    month: str
    total_headcount: int
    new_hires: int
    terminations: int
    net_change: int


class DepartmentTurnover(BaseModel):
    department_id: str
    department_name: str
    rate: float


class TenureBandRate(BaseModel):
    band: str
    rate: float


class Period(BaseModel):
    start: datetime
    end: datetime


class TurnoverMetrics(BaseModel):
    overall_turnover_rate: float
    voluntary_turnover_rate: float
    involuntary_turnover_rate: float
    by_department: List[DepartmentTurnover]
    by_tenure_band: List[TenureBandRate]
    period: Period


class BandCount(BaseModel):
    band: str
    count: int
    percentage: int


class TypeCount(BaseModel):
    type: str
    count: int
    percentage: int


class DemographicsBreakdown(BaseModel):
    by_age: List[BandCount]
    by_tenure: List[BandCount]
    by_contract_type: List[TypeCount]


class RangeCount(BaseModel):
    range: str
    count: int
    percentage: int


class MonthlyProjection(BaseModel):
    month: str
    predicted: int
    confidence: int


class AttritionForecast(BaseModel):
    current_rate: float
    predicted_rate: float
    trend: Literal["increasing", "stable", "decreasing"]
    risk_level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    predicted_vacancies: int
    risk_factors: List[str]
    monthly_projections: List[MonthlyProjection]


class HighRiskEmployee(BaseModel):
    id: str
    name: str
    department: str
    position: str
    risk_score: int
    risk_level: Literal["HIGH", "MEDIUM", "LOW"]
    factors: List[str]
    tenure_months: int
