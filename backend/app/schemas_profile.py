from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ChangeRiskRequest(BaseModel):
    changes: Dict[str, Any] = Field(default_factory=dict)
    context: str = ""


class RiskAnalysis(BaseModel):
    score: int
    level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    flags: List[str]


class ImpactAnalysis(BaseModel):
    replacement_days: int
    capacity_loss_score: int
    knowledge_loss_risk: Literal["LOW", "MEDIUM", "HIGH"]


class ProfileHealth(BaseModel):
    completeness_score: int
    missing_critical_fields: List[str]
    data_quality_issues: List[str]
    last_updated: Optional[datetime] = None
