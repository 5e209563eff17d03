"""
Request / response models for risk worksheets.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from riskflow.schemas.enums import WorksheetStatus


class WorksheetCreate(BaseModel):
    context_id: str
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None


class WorksheetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None


class WorksheetSubmit(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class WorksheetReject(BaseModel):
    reason: str = Field(..., max_length=500)


class WorksheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    unit_id: str
    context_id: str
    owner_id: str
    name: str
    description: Optional[str]
    status: WorksheetStatus

    submitted_at: Optional[datetime]
    submitted_by: Optional[str]
    submission_notes: Optional[str]
    approved_at: Optional[datetime]
    approved_by: Optional[str]
    approval_notes: Optional[str]
    rejected_at: Optional[datetime]
    rejected_by: Optional[str]
    rejection_reason: Optional[str]

    version: int
    created_at: datetime
    updated_at: datetime
