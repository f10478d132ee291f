from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

Trend = Literal["RISING", "FALLING", "STABLE"]


class PayrollStory(BaseModel):
    headline: str
    narrative: str
    trend: Trend
    change_percentage: float


class PayrollAnomaly(BaseModel):
    type: Literal["GHOST_EMPLOYEE", "GRADE_DEVIATION", "UNUSUAL_BONUS"]
    severity: Literal["HIGH", "MEDIUM", "LOW"]
    employee_id: str
    description: str
    detected_at: datetime


class PayrollForecast(BaseModel):
    next_month_prediction: float
    confidence: float


class PayrollTrendPoint(BaseModel):
    run_id: Optional[str] = None
    period: str
    total_net_pay: float
    employees: int
    exceptions: int
    change_percentage: float
