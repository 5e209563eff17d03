"""
Request / response models for risk mitigations.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from riskflow.schemas.enums import (
    MitigationPriority,
    MitigationReviewStatus,
    MitigationStatus,
    RiskLevel,
)


class MitigationCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    priority: MitigationPriority = MitigationPriority.MEDIUM
    status: MitigationStatus = MitigationStatus.PLANNED
    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    responsible_person: Optional[str] = Field(None, max_length=255)
    responsible_unit: Optional[str] = Field(None, max_length=255)
    progress_percentage: int = Field(0, ge=0, le=100)
    progress_notes: Optional[str] = None
    proposed_residual_likelihood: Optional[int] = Field(None, ge=1)
    proposed_residual_impact: Optional[int] = Field(None, ge=1)


class MitigationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    priority: Optional[MitigationPriority] = None
    status: Optional[MitigationStatus] = None
    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    responsible_person: Optional[str] = Field(None, max_length=255)
    responsible_unit: Optional[str] = Field(None, max_length=255)
    progress_percentage: Optional[int] = Field(None, ge=0, le=100)
    progress_notes: Optional[str] = None
    proposed_residual_likelihood: Optional[int] = Field(None, ge=1)
    proposed_residual_impact: Optional[int] = Field(None, ge=1)


class MitigationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    item_id: str
    code: str
    name: str
    description: Optional[str]
    priority: MitigationPriority
    status: MitigationStatus
    planned_start_date: Optional[date]
    planned_end_date: Optional[date]
    actual_start_date: Optional[date]
    actual_end_date: Optional[date]
    responsible_person: Optional[str]
    responsible_unit: Optional[str]
    progress_percentage: int
    progress_notes: Optional[str]
    proposed_residual_likelihood: Optional[int]
    proposed_residual_impact: Optional[int]
    proposed_residual_risk_level: Optional[RiskLevel]

    review_status: MitigationReviewStatus
    is_validated: bool
    validated_at: Optional[datetime]
    validated_by: Optional[str]
    validation_notes: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime


class PendingMitigationResponse(MitigationResponse):
    """Mitigation row of the cross-unit review queue, with its location."""
    unit_id: str
    worksheet_id: str
    risk_code: str
    risk_name: str
