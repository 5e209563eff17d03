"""
Worksheet and assessment API, scoped by unit kerja.

  /v1/unit-kerja/{u}/risk-worksheets[/{w}]
      PATCH .../{w}/submit | approve | reject      DELETE .../{w} → archive
  /v1/unit-kerja/{u}/risk-worksheets/{w}/assessments[/{a}]
      PATCH .../{a}/submit | review | approve | reject | reopen
      DELETE .../{a} → archive
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller, get_caller
from riskflow.models.database import get_db
from riskflow.schemas.assessment import AssessmentCreate, AssessmentResponse, AssessmentUpdate
from riskflow.schemas.common import Page, ReviewNotes
from riskflow.schemas.enums import AssessmentStatus, WorksheetStatus
from riskflow.schemas.worksheet import (
    WorksheetCreate,
    WorksheetReject,
    WorksheetResponse,
    WorksheetSubmit,
    WorksheetUpdate,
)
from riskflow.services import assessment_service, worksheet_service

router = APIRouter(prefix="/v1/unit-kerja/{unit_id}/risk-worksheets", tags=["worksheet"])


def _notes(body: Optional[ReviewNotes]) -> Optional[str]:
    return body.notes if body else None


# ── Worksheets ──

@router.post("", response_model=WorksheetResponse, status_code=201)
async def create_worksheet(
    unit_id: str,
    body: WorksheetCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.create_worksheet(db, caller, unit_id, body)


@router.get("", response_model=Page[WorksheetResponse])
async def list_worksheets(
    unit_id: str,
    name: Optional[str] = None,
    context_id: Optional[str] = None,
    status: Optional[WorksheetStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await worksheet_service.list_worksheets(
        db, caller, unit_id, name, context_id, status, page, limit
    )
    return Page[WorksheetResponse].of(result, WorksheetResponse)


@router.get("/{worksheet_id}", response_model=WorksheetResponse)
async def get_worksheet(
    unit_id: str,
    worksheet_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.get_worksheet(db, caller, unit_id, worksheet_id)


@router.patch("/{worksheet_id}", response_model=WorksheetResponse)
async def update_worksheet(
    unit_id: str,
    worksheet_id: str,
    body: WorksheetUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.update_worksheet(db, caller, unit_id, worksheet_id, body)


@router.patch("/{worksheet_id}/submit", response_model=WorksheetResponse)
async def submit_worksheet(
    unit_id: str,
    worksheet_id: str,
    body: Optional[WorksheetSubmit] = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    notes = body.notes if body else None
    return await worksheet_service.submit_worksheet(db, caller, unit_id, worksheet_id, notes)


@router.patch("/{worksheet_id}/approve", response_model=WorksheetResponse)
async def approve_worksheet(
    unit_id: str,
    worksheet_id: str,
    body: Optional[ReviewNotes] = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.approve_worksheet(db, caller, unit_id, worksheet_id, _notes(body))


@router.patch("/{worksheet_id}/reject", response_model=WorksheetResponse)
async def reject_worksheet(
    unit_id: str,
    worksheet_id: str,
    body: WorksheetReject,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.reject_worksheet(db, caller, unit_id, worksheet_id, body.reason)


@router.delete("/{worksheet_id}", response_model=WorksheetResponse)
async def archive_worksheet(
    unit_id: str,
    worksheet_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await worksheet_service.archive_worksheet(db, caller, unit_id, worksheet_id)


# ── Assessments ──

@router.post("/{worksheet_id}/assessments", response_model=AssessmentResponse, status_code=201)
async def create_assessment(
    unit_id: str,
    worksheet_id: str,
    body: AssessmentCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.create_assessment(db, caller, unit_id, worksheet_id, body)


@router.get("/{worksheet_id}/assessments", response_model=Page[AssessmentResponse])
async def list_assessments(
    unit_id: str,
    worksheet_id: str,
    name: Optional[str] = None,
    status: Optional[AssessmentStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await assessment_service.list_assessments(
        db, caller, unit_id, worksheet_id, name, status, page, limit
    )
    return Page[AssessmentResponse].of(result, AssessmentResponse)


@router.get("/{worksheet_id}/assessments/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.get_assessment(db, caller, unit_id, worksheet_id, assessment_id)


@router.patch("/{worksheet_id}/assessments/{assessment_id}", response_model=AssessmentResponse)
async def update_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    body: AssessmentUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.update_assessment(
        db, caller, unit_id, worksheet_id, assessment_id, body
    )


@router.patch("/{worksheet_id}/assessments/{assessment_id}/submit", response_model=AssessmentResponse)
async def submit_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.submit_assessment(db, caller, unit_id, worksheet_id, assessment_id)


@router.patch("/{worksheet_id}/assessments/{assessment_id}/review", response_model=AssessmentResponse)
async def start_assessment_review(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.start_review(db, caller, unit_id, worksheet_id, assessment_id)


@router.patch("/{worksheet_id}/assessments/{assessment_id}/approve", response_model=AssessmentResponse)
async def approve_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    body: Optional[ReviewNotes] = None,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.approve_assessment(
        db, caller, unit_id, worksheet_id, assessment_id, _notes(body)
    )


@router.patch("/{worksheet_id}/assessments/{assessment_id}/reject", response_model=AssessmentResponse)
async def reject_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    body: ReviewNotes,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.reject_assessment(
        db, caller, unit_id, worksheet_id, assessment_id, body.notes
    )


@router.patch("/{worksheet_id}/assessments/{assessment_id}/reopen", response_model=AssessmentResponse)
async def reopen_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.reopen_assessment(db, caller, unit_id, worksheet_id, assessment_id)


@router.delete("/{worksheet_id}/assessments/{assessment_id}", response_model=AssessmentResponse)
async def archive_assessment(
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.archive_assessment(db, caller, unit_id, worksheet_id, assessment_id)
