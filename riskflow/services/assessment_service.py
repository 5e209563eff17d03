"""
Assessment Lifecycle — a nested approval pass inside a worksheet.

    DRAFT ─submit─▶ SUBMITTED ─start_review─▶ IN_REVIEW
                        │                        │
                        └──approve / reject──────┴──▶ APPROVED | REJECTED
    REJECTED ─reopen─▶ DRAFT
    any non-ARCHIVED ─archive─▶ ARCHIVED

Unlike a worksheet, a rejected assessment stays REJECTED until its creator
reopens it. Codes are ``RA-{UNIT_CODE}-{NNN}`` from a per-worksheet counter.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import ValidationError
from riskflow.core.metrics import record_transition
from riskflow.models.base import format_code
from riskflow.models.risk_assessment import RiskAssessment, RiskAssessmentItem
from riskflow.schemas.assessment import AssessmentCreate, AssessmentUpdate
from riskflow.schemas.enums import AssessmentStatus
from riskflow.services.lookups import (
    PageResult, check_reason, count_rows, load_assessment, load_unit, load_worksheet, paginate,
)
from riskflow.services.worksheet_service import (
    owned_worksheet, readable_worksheet, require_active_context,
)
from riskflow.workflow.guards import REVIEW, enforce, in_states, is_owner
from riskflow.workflow.states import ASSESSMENT_EDITABLE, ASSESSMENT_MACHINE, Action

logger = structlog.get_logger()

CREATOR = (is_owner(attr="created_by", noun="assessment creator"),)
CREATOR_EDIT = CREATOR + (in_states(*ASSESSMENT_EDITABLE, noun="assessment"),)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _load(db: AsyncSession, unit_id: str, worksheet_id: str, assessment_id: str) -> RiskAssessment:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    return await load_assessment(db, worksheet, assessment_id)


async def create_assessment(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, data: AssessmentCreate
) -> RiskAssessment:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    await require_active_context(db, worksheet.context_id)
    unit = await load_unit(db, worksheet.unit_id)

    worksheet.assessment_sequence += 1
    assessment = RiskAssessment(
        worksheet_id=worksheet.id,
        code=format_code(f"RA-{unit.code}-", worksheet.assessment_sequence),
        status=AssessmentStatus.DRAFT,
        created_by=caller.user_id,
        updated_by=caller.user_id,
        **data.model_dump(),
    )
    db.add(assessment)
    await db.commit()

    logger.info(
        "assessment_created",
        assessment_id=assessment.id,
        code=assessment.code,
        worksheet_id=worksheet.id,
        actor=caller.user_id,
    )
    return assessment


async def list_assessments(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    name: Optional[str] = None,
    status: Optional[AssessmentStatus] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    stmt = select(RiskAssessment).where(RiskAssessment.worksheet_id == worksheet.id)
    if name:
        stmt = stmt.where(RiskAssessment.name.ilike(f"%{name}%"))
    if status is not None:
        stmt = stmt.where(RiskAssessment.status == status)
    return await paginate(db, stmt.order_by(RiskAssessment.code), page, limit)


async def get_assessment(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, assessment_id: str
) -> RiskAssessment:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    return await load_assessment(db, worksheet, assessment_id)


async def update_assessment(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    data: AssessmentUpdate,
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, CREATOR_EDIT)
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")

    for field, value in changes.items():
        setattr(assessment, field, value)
    assessment.updated_by = caller.user_id
    await db.commit()

    logger.info("assessment_updated", assessment_id=assessment.id, fields=sorted(changes), actor=caller.user_id)
    return assessment


# ─── Lifecycle ────────────────────────────────────────────────────

async def submit_assessment(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, assessment_id: str
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, CREATOR)
    target = ASSESSMENT_MACHINE.next_state(assessment.status, Action.SUBMIT)

    items = await count_rows(db, RiskAssessmentItem, RiskAssessmentItem.assessment_id == assessment.id)
    if items == 0:
        raise ValidationError("Assessment has no risk items. Attach at least one item before submitting.")

    assessment.status = target
    assessment.submitted_at = _now()
    assessment.submitted_by = caller.user_id
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.SUBMIT.value)
    logger.info("assessment_submitted", assessment_id=assessment.id, items=items, actor=caller.user_id)
    return assessment


async def start_review(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, assessment_id: str
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, REVIEW)
    assessment.status = ASSESSMENT_MACHINE.next_state(assessment.status, Action.START_REVIEW)
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.START_REVIEW.value)
    logger.info("assessment_review_started", assessment_id=assessment.id, actor=caller.user_id)
    return assessment


async def approve_assessment(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    notes: Optional[str] = None,
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, REVIEW)
    assessment.status = ASSESSMENT_MACHINE.next_state(assessment.status, Action.APPROVE)
    assessment.reviewed_at = _now()
    assessment.reviewed_by = caller.user_id
    assessment.review_notes = notes
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.APPROVE.value)
    logger.info("assessment_approved", assessment_id=assessment.id, actor=caller.user_id)
    return assessment


async def reject_assessment(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    assessment_id: str,
    notes: Optional[str],
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, REVIEW)
    target = ASSESSMENT_MACHINE.next_state(assessment.status, Action.REJECT)
    notes = check_reason(notes, label="Rejection notes")

    assessment.status = target
    assessment.reviewed_at = _now()
    assessment.reviewed_by = caller.user_id
    assessment.review_notes = notes
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.REJECT.value)
    logger.info("assessment_rejected", assessment_id=assessment.id, actor=caller.user_id)
    return assessment


async def reopen_assessment(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, assessment_id: str
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, CREATOR)
    assessment.status = ASSESSMENT_MACHINE.next_state(assessment.status, Action.REOPEN)
    # Review notes stay as the record of what must be fixed
    assessment.submitted_at = None
    assessment.submitted_by = None
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.REOPEN.value)
    logger.info("assessment_reopened", assessment_id=assessment.id, actor=caller.user_id)
    return assessment


async def archive_assessment(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, assessment_id: str
) -> RiskAssessment:
    assessment = await _load(db, unit_id, worksheet_id, assessment_id)
    enforce(caller, assessment, CREATOR)
    assessment.status = ASSESSMENT_MACHINE.next_state(assessment.status, Action.ARCHIVE)
    assessment.updated_by = caller.user_id
    await db.commit()

    record_transition("assessment", Action.ARCHIVE.value)
    logger.info("assessment_archived", assessment_id=assessment.id, actor=caller.user_id)
    return assessment
