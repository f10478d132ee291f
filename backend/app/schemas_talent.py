from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


class AttritionRisk(BaseModel):
    employee_id: str
    name: str
    risk_score: int
    level: Literal["HIGH", "MEDIUM", "LOW"]
    factors: List[str]
    updated_at: datetime


class GenderCount(BaseModel):
    gender: str
    count: int


class OrgPulse(BaseModel):
    headcount: int
    gender_diversity: List[GenderCount]
    avg_performance_score: float
    active_appraisals: int
    avg_tenure: float
    dominant_department: str
    timestamp: datetime


class SkillHolder(BaseModel):
    name: str
    level: float


class SkillMatrixEntry(BaseModel):
    skill: str
    avg_level: float
    headcount: int
    top_talent: List[SkillHolder]


class ManagerBiasMetric(BaseModel):
    manager_id: str
    manager_name: str
    avg_rating: float
    rating_count: int
    z_score: float
    bias_category: Literal["Lenient", "Strict", "Balanced"]


class RatingPoint(BaseModel):
    date: Optional[datetime] = None
    rating: float


class PerformanceTrajectory(BaseModel):
    employee_id: str
    name: str
    slope: float
    predicted_next_rating: float
    history: List[RatingPoint]


class TalentGridNode(BaseModel):
    id: str
    name: str
    x: float
    y: float
    box_label: str
    image_url: Optional[str] = None
