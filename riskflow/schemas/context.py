"""
Request / response models for context configuration: contexts, categories,
likelihood and impact scales, and matrix cells.

Cross-field rules (period order, levels bounded by the matrix size) are
checked in the services, which know the stored context.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from riskflow.schemas.enums import ContextStatus, RiskLevel

CODE_PATTERN = r"^[A-Z0-9_-]+$"


# ── Context ──

class ContextCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=2, max_length=100, pattern=CODE_PATTERN)
    description: Optional[str] = None
    period_start: int = Field(..., ge=2000, le=2100)
    period_end: int = Field(..., ge=2000, le=2100)
    matrix_size: int = Field(5, ge=2, le=10, description="N for the N×N likelihood/impact grid")
    risk_appetite_level: Optional[RiskLevel] = None
    risk_appetite_description: Optional[str] = None


class ContextUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    period_start: Optional[int] = Field(None, ge=2000, le=2100)
    period_end: Optional[int] = Field(None, ge=2000, le=2100)
    matrix_size: Optional[int] = Field(None, ge=2, le=10)
    risk_appetite_level: Optional[RiskLevel] = None
    risk_appetite_description: Optional[str] = None


class ContextResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    description: Optional[str]
    period_start: int
    period_end: int
    matrix_size: int
    risk_appetite_level: Optional[RiskLevel]
    risk_appetite_description: Optional[str]
    status: ContextStatus
    version: int
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str]
    updated_by: Optional[str]


class CategoryReadiness(BaseModel):
    category_id: str
    name: str
    likelihood_scales: int
    impact_scales: int


class ReadinessResponse(BaseModel):
    context_id: str
    status: ContextStatus
    matrix_size: int
    categories: list[CategoryReadiness]
    matrix_cells: int
    expected_matrix_cells: int
    is_complete: bool
    missing: list[str]


# ── Category ──

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    order: int = Field(0, ge=0)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    context_id: str
    name: str
    description: Optional[str]
    order: int
    created_at: datetime
    updated_at: datetime


# ── Likelihood / impact scale ──

class ScaleCreate(BaseModel):
    level: int = Field(..., ge=1)
    label: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None


class ScaleUpdate(BaseModel):
    level: Optional[int] = Field(None, ge=1)
    label: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None


class ScaleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: str
    level: int
    label: str
    description: Optional[str]


# ── Matrix ──

class MatrixCellCreate(BaseModel):
    likelihood_level: int = Field(..., ge=1)
    impact_level: int = Field(..., ge=1)
    risk_level: RiskLevel


class MatrixCellUpdate(BaseModel):
    likelihood_level: Optional[int] = Field(None, ge=1)
    impact_level: Optional[int] = Field(None, ge=1)
    risk_level: Optional[RiskLevel] = None


class MatrixBulkCreate(BaseModel):
    cells: list[MatrixCellCreate] = Field(..., min_length=1, max_length=100)


class MatrixCellResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    context_id: str
    likelihood_level: int
    impact_level: int
    risk_level: RiskLevel


class MatrixBulkResponse(BaseModel):
    created: list[MatrixCellResponse]
    total_cells: int
    expected_cells: int
    is_complete: bool
