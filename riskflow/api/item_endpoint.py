"""
Risk item and mitigation API.

  /v1/unit-kerja/{u}/risk-worksheets/{w}/items[/{i}]
  /v1/unit-kerja/{u}/risk-worksheets/{w}/items/{i}/mitigations[/{m}]
      PATCH .../{m}/validate | reject | resubmit
  GET /v1/mitigations/pending       → reviewer queue across units
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller, get_caller
from riskflow.models.database import get_db
from riskflow.schemas.assessment import ItemCreate, ItemResponse, ItemUpdate
from riskflow.schemas.common import Page, ReviewNotes
from riskflow.schemas.enums import MitigationPriority, MitigationReviewStatus, RiskLevel
from riskflow.schemas.mitigation import (
    MitigationCreate,
    MitigationResponse,
    MitigationUpdate,
    PendingMitigationResponse,
)
from riskflow.services import item_service, mitigation_service

router = APIRouter(prefix="/v1/unit-kerja/{unit_id}/risk-worksheets/{worksheet_id}/items", tags=["item"])
review_router = APIRouter(prefix="/v1/mitigations", tags=["mitigation"])


# ── Items ──

@router.post("", response_model=ItemResponse, status_code=201)
async def create_item(
    unit_id: str,
    worksheet_id: str,
    body: ItemCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await item_service.create_item(db, caller, unit_id, worksheet_id, body)


@router.get("", response_model=Page[ItemResponse])
async def list_items(
    unit_id: str,
    worksheet_id: str,
    risk_name: Optional[str] = None,
    risk_category_id: Optional[str] = None,
    assessment_id: Optional[str] = None,
    inherent_risk_level: Optional[RiskLevel] = None,
    residual_risk_level: Optional[RiskLevel] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await item_service.list_items(
        db,
        caller,
        unit_id,
        worksheet_id,
        risk_name=risk_name,
        risk_category_id=risk_category_id,
        assessment_id=assessment_id,
        inherent_risk_level=inherent_risk_level,
        residual_risk_level=residual_risk_level,
        page=page,
        limit=limit,
    )
    return Page[ItemResponse].of(result, ItemResponse)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await item_service.get_item(db, caller, unit_id, worksheet_id, item_id)


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    body: ItemUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await item_service.update_item(db, caller, unit_id, worksheet_id, item_id, body)


@router.delete("/{item_id}", status_code=204)
async def delete_item(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    await item_service.delete_item(db, caller, unit_id, worksheet_id, item_id)
    return Response(status_code=204)


# ── Mitigations ──

@router.post("/{item_id}/mitigations", response_model=MitigationResponse, status_code=201)
async def create_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    body: MitigationCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.create_mitigation(db, caller, unit_id, worksheet_id, item_id, body)


@router.get("/{item_id}/mitigations", response_model=Page[MitigationResponse])
async def list_mitigations(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    review_status: Optional[MitigationReviewStatus] = None,
    priority: Optional[MitigationPriority] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await mitigation_service.list_mitigations(
        db, caller, unit_id, worksheet_id, item_id, review_status, priority, page, limit
    )
    return Page[MitigationResponse].of(result, MitigationResponse)


@router.get("/{item_id}/mitigations/{mitigation_id}", response_model=MitigationResponse)
async def get_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.get_mitigation(
        db, caller, unit_id, worksheet_id, item_id, mitigation_id
    )


@router.patch("/{item_id}/mitigations/{mitigation_id}", response_model=MitigationResponse)
async def update_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    body: MitigationUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.update_mitigation(
        db, caller, unit_id, worksheet_id, item_id, mitigation_id, body
    )


@router.delete("/{item_id}/mitigations/{mitigation_id}", status_code=204)
async def delete_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    await mitigation_service.delete_mitigation(db, caller, unit_id, worksheet_id, item_id, mitigation_id)
    return Response(status_code=204)


@router.patch("/{item_id}/mitigations/{mitigation_id}/validate", response_model=MitigationResponse)
async def validate_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    body: Optional[ReviewNotes] = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.validate_mitigation(
        db, caller, unit_id, worksheet_id, item_id, mitigation_id, body.notes if body else None
    )


@router.patch("/{item_id}/mitigations/{mitigation_id}/reject", response_model=MitigationResponse)
async def reject_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    body: ReviewNotes,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.reject_mitigation(
        db, caller, unit_id, worksheet_id, item_id, mitigation_id, body.notes
    )


@router.patch("/{item_id}/mitigations/{mitigation_id}/resubmit", response_model=MitigationResponse)
async def resubmit_mitigation(
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await mitigation_service.resubmit_mitigation(
        db, caller, unit_id, worksheet_id, item_id, mitigation_id
    )


# ── Reviewer queue ──

@review_router.get("/pending", response_model=Page[PendingMitigationResponse])
async def pending_mitigations(
    unit_id: Optional[str] = None,
    priority: Optional[MitigationPriority] = None,
    review_status: Optional[MitigationReviewStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await mitigation_service.list_pending(
        db, caller, unit_id, priority, review_status, page, limit
    )
    return Page[PendingMitigationResponse].of(result, PendingMitigationResponse)
