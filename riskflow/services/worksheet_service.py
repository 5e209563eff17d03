"""
Worksheet Lifecycle

    DRAFT ──submit (owner, ≥1 item)──▶ SUBMITTED ──approve (reviewer)──▶ APPROVED
      ▲                                    │
      └──────── reject (reviewer, reason) ─┘
    any non-ARCHIVED ──archive (owner)──▶ ARCHIVED

Reject returns the worksheet to DRAFT and clears the submission stamps so the
owner can resubmit.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import Conflict, ValidationError
from riskflow.core.metrics import record_transition
from riskflow.models.risk_assessment import RiskAssessmentItem
from riskflow.models.worksheet import RiskWorksheet
from riskflow.schemas.enums import ContextStatus, WorksheetStatus
from riskflow.schemas.worksheet import WorksheetCreate, WorksheetUpdate
from riskflow.services.lookups import (
    PageResult, check_reason, count_rows, load_context, load_unit, load_worksheet, paginate,
)
from riskflow.workflow.guards import (
    OWNER_ROLE, REVIEW, enforce, has_role, in_states, is_owner, unit_member,
)
from riskflow.workflow.states import WORKSHEET_EDITABLE, WORKSHEET_MACHINE, Action

logger = structlog.get_logger()

# ── Guard tables ──
CREATE = (has_role(OWNER_ROLE), unit_member(attr="id"))
READ = (unit_member(allow_reviewer=True),)
READ_UNIT = (unit_member(allow_reviewer=True, attr="id"),)
OWNER = (is_owner(noun="worksheet owner"),)
OWNER_EDIT = OWNER + (in_states(*WORKSHEET_EDITABLE, noun="worksheet"),)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _check_name(
    db: AsyncSession, unit_id: str, context_id: str, name: str, exclude_id: Optional[str] = None
) -> None:
    stmt = select(RiskWorksheet.id).where(
        RiskWorksheet.unit_id == unit_id,
        RiskWorksheet.context_id == context_id,
        RiskWorksheet.name == name,
    )
    if exclude_id is not None:
        stmt = stmt.where(RiskWorksheet.id != exclude_id)
    if await db.scalar(stmt):
        raise Conflict(f'Worksheet "{name}" already exists for this unit and context.')


async def require_active_context(db: AsyncSession, context_id: str):
    context = await load_context(db, context_id)
    if context.status != ContextStatus.ACTIVE:
        raise ValidationError(f"Context {context.code} is not active.")
    return context


async def owned_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str
) -> RiskWorksheet:
    """Load a worksheet for a child mutation: owner only, DRAFT only."""
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, OWNER_EDIT)
    return worksheet


async def readable_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str
) -> RiskWorksheet:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, READ)
    return worksheet


# ─── CRUD ─────────────────────────────────────────────────────────

async def create_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, data: WorksheetCreate
) -> RiskWorksheet:
    unit = await load_unit(db, unit_id)
    enforce(caller, unit, CREATE)
    context = await require_active_context(db, data.context_id)
    await _check_name(db, unit.id, context.id, data.name)

    worksheet = RiskWorksheet(
        unit_id=unit.id,
        context_id=context.id,
        owner_id=caller.user_id,
        name=data.name,
        description=data.description,
        status=WorksheetStatus.DRAFT,
        created_by=caller.user_id,
        updated_by=caller.user_id,
    )
    db.add(worksheet)
    await db.commit()

    logger.info(
        "worksheet_created",
        worksheet_id=worksheet.id,
        unit_id=unit.id,
        context_id=context.id,
        actor=caller.user_id,
    )
    return worksheet


async def list_worksheets(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    name: Optional[str] = None,
    context_id: Optional[str] = None,
    status: Optional[WorksheetStatus] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    unit = await load_unit(db, unit_id)
    enforce(caller, unit, READ_UNIT)

    stmt = select(RiskWorksheet).where(RiskWorksheet.unit_id == unit.id)
    if name:
        stmt = stmt.where(RiskWorksheet.name.ilike(f"%{name}%"))
    if context_id:
        stmt = stmt.where(RiskWorksheet.context_id == context_id)
    if status is not None:
        stmt = stmt.where(RiskWorksheet.status == status)
    return await paginate(db, stmt.order_by(RiskWorksheet.created_at.desc()), page, limit)


async def get_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str
) -> RiskWorksheet:
    return await readable_worksheet(db, caller, unit_id, worksheet_id)


async def update_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, data: WorksheetUpdate
) -> RiskWorksheet:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")
    if changes.get("name") and changes["name"] != worksheet.name:
        await _check_name(db, worksheet.unit_id, worksheet.context_id, changes["name"], worksheet.id)

    for field, value in changes.items():
        setattr(worksheet, field, value)
    worksheet.updated_by = caller.user_id
    await db.commit()

    logger.info("worksheet_updated", worksheet_id=worksheet.id, fields=sorted(changes), actor=caller.user_id)
    return worksheet


# ─── Lifecycle ────────────────────────────────────────────────────

async def submit_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, notes: Optional[str] = None
) -> RiskWorksheet:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, OWNER)
    target = WORKSHEET_MACHINE.next_state(worksheet.status, Action.SUBMIT)

    items = await count_rows(db, RiskAssessmentItem, RiskAssessmentItem.worksheet_id == worksheet.id)
    if items == 0:
        raise ValidationError("Worksheet has no risk items. Add at least one item before submitting.")

    worksheet.status = target
    worksheet.submitted_at = _now()
    worksheet.submitted_by = caller.user_id
    worksheet.submission_notes = notes
    worksheet.updated_by = caller.user_id
    await db.commit()

    record_transition("worksheet", Action.SUBMIT.value)
    logger.info("worksheet_submitted", worksheet_id=worksheet.id, items=items, actor=caller.user_id)
    return worksheet


async def approve_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, notes: Optional[str] = None
) -> RiskWorksheet:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, REVIEW)
    worksheet.status = WORKSHEET_MACHINE.next_state(worksheet.status, Action.APPROVE)
    worksheet.approved_at = _now()
    worksheet.approved_by = caller.user_id
    worksheet.approval_notes = notes
    worksheet.updated_by = caller.user_id
    await db.commit()

    record_transition("worksheet", Action.APPROVE.value)
    logger.info("worksheet_approved", worksheet_id=worksheet.id, actor=caller.user_id)
    return worksheet


async def reject_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, reason: str
) -> RiskWorksheet:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, REVIEW)
    target = WORKSHEET_MACHINE.next_state(worksheet.status, Action.REJECT)
    reason = check_reason(reason)

    worksheet.status = target
    worksheet.submitted_at = None
    worksheet.submitted_by = None
    worksheet.submission_notes = None
    worksheet.rejected_at = _now()
    worksheet.rejected_by = caller.user_id
    worksheet.rejection_reason = reason
    worksheet.updated_by = caller.user_id
    await db.commit()

    record_transition("worksheet", Action.REJECT.value)
    logger.info("worksheet_rejected", worksheet_id=worksheet.id, actor=caller.user_id)
    return worksheet


async def archive_worksheet(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str
) -> RiskWorksheet:
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    enforce(caller, worksheet, OWNER)
    worksheet.status = WORKSHEET_MACHINE.next_state(worksheet.status, Action.ARCHIVE)
    worksheet.updated_by = caller.user_id
    await db.commit()

    record_transition("worksheet", Action.ARCHIVE.value)
    logger.info("worksheet_archived", worksheet_id=worksheet.id, actor=caller.user_id)
    return worksheet
