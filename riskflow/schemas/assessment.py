"""
Request / response models for risk assessments and the items scored in a
worksheet. Risk levels are never accepted from the client: they are derived
from the context's matrix.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from riskflow.schemas.enums import (
    AssessmentStatus,
    ControlEffectiveness,
    RiskLevel,
    TreatmentOption,
)


# ── Assessment ──

class AssessmentCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    assessment_date: Optional[date] = None


class AssessmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    assessment_date: Optional[date] = None


class AssessmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    code: str
    name: str
    description: Optional[str]
    assessment_date: Optional[date]
    status: AssessmentStatus
    submitted_at: Optional[datetime]
    submitted_by: Optional[str]
    reviewed_at: Optional[datetime]
    reviewed_by: Optional[str]
    review_notes: Optional[str]
    version: int
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime


# ── Item ──

class ItemCreate(BaseModel):
    risk_name: str = Field(..., min_length=3, max_length=255)
    risk_description: Optional[str] = None
    weakness_description: Optional[str] = None
    threat_description: Optional[str] = None
    impact_description: Optional[str] = None

    risk_category_id: str
    asset_id: Optional[str] = None
    assessment_id: Optional[str] = None

    inherent_likelihood: int = Field(..., ge=1)
    inherent_impact: int = Field(..., ge=1)
    existing_controls: Optional[str] = None
    control_effectiveness: Optional[ControlEffectiveness] = None
    # Defaults to the inherent scores when omitted
    residual_likelihood: Optional[int] = Field(None, ge=1)
    residual_impact: Optional[int] = Field(None, ge=1)

    treatment_option: Optional[TreatmentOption] = None
    treatment_rationale: Optional[str] = None
    risk_priority_rank: Optional[int] = Field(None, ge=1)
    order: int = Field(0, ge=0)


class ItemUpdate(BaseModel):
    risk_name: Optional[str] = Field(None, min_length=3, max_length=255)
    risk_description: Optional[str] = None
    weakness_description: Optional[str] = None
    threat_description: Optional[str] = None
    impact_description: Optional[str] = None

    risk_category_id: Optional[str] = None
    asset_id: Optional[str] = None
    assessment_id: Optional[str] = None

    inherent_likelihood: Optional[int] = Field(None, ge=1)
    inherent_impact: Optional[int] = Field(None, ge=1)
    existing_controls: Optional[str] = None
    control_effectiveness: Optional[ControlEffectiveness] = None
    residual_likelihood: Optional[int] = Field(None, ge=1)
    residual_impact: Optional[int] = Field(None, ge=1)

    treatment_option: Optional[TreatmentOption] = None
    treatment_rationale: Optional[str] = None
    risk_priority_rank: Optional[int] = Field(None, ge=1)
    order: Optional[int] = Field(None, ge=0)


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    assessment_id: Optional[str]
    risk_code: str
    risk_name: str
    risk_description: Optional[str]
    weakness_description: Optional[str]
    threat_description: Optional[str]
    impact_description: Optional[str]
    risk_category_id: str
    asset_id: Optional[str]

    inherent_likelihood: int
    inherent_impact: int
    inherent_risk_level: RiskLevel
    existing_controls: Optional[str]
    control_effectiveness: Optional[ControlEffectiveness]
    residual_likelihood: int
    residual_impact: int
    residual_risk_level: RiskLevel

    treatment_option: Optional[TreatmentOption]
    treatment_rationale: Optional[str]
    risk_priority_rank: Optional[int]
    order: int
    created_at: datetime
    updated_at: datetime
