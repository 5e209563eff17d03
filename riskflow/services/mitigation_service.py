"""
Mitigation Workflow

    PENDING | REJECTED ──validate (reviewer)──▶ VALIDATED   (terminal, immutable)
    PENDING | REJECTED ──reject (reviewer)────▶ REJECTED
    REJECTED ──resubmit (owner)──▶ PENDING

``is_validated`` mirrors ``review_status == VALIDATED``. Validation copies the
proposed residual scores onto the item in the same transaction and re-checks
the item's treatment option against the new residual level.
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
from riskflow.models.risk_assessment import RiskAssessmentItem, RiskMitigation
from riskflow.models.worksheet import RiskWorksheet
from riskflow.schemas.enums import MitigationPriority, MitigationReviewStatus
from riskflow.schemas.mitigation import MitigationCreate, MitigationUpdate
from riskflow.scoring.appetite import check_treatment_option
from riskflow.scoring.resolver import resolve_risk_level, validate_levels
from riskflow.services.lookups import (
    PageResult, check_reason, load_context, load_item, load_mitigation, load_worksheet, paginate,
)
from riskflow.services.worksheet_service import owned_worksheet, readable_worksheet
from riskflow.workflow.guards import REVIEW, enforce, in_states
from riskflow.workflow.states import MITIGATION_EDITABLE, MITIGATION_MACHINE, Action

logger = structlog.get_logger()

NOT_VALIDATED = (in_states(*MITIGATION_EDITABLE, noun="mitigation", attr="review_status"),)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_dates(start, end, label: str) -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError(f"{label} end date must not be before its start date.")


async def _proposed_level(db: AsyncSession, context, likelihood: Optional[int], impact: Optional[int]):
    if likelihood is None and impact is None:
        return None
    if likelihood is None or impact is None:
        raise ValidationError(
            "Proposed residual likelihood and impact must be given together or not at all."
        )
    validate_levels(context.matrix_size, likelihood, impact, label="proposed residual")
    return await resolve_risk_level(db, context.id, likelihood, impact)


async def _load(db: AsyncSession, unit_id: str, worksheet_id: str, item_id: str, mitigation_id: str):
    worksheet = await load_worksheet(db, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    mitigation = await load_mitigation(db, item, mitigation_id)
    return worksheet, item, mitigation


# ─── CRUD ─────────────────────────────────────────────────────────

async def create_mitigation(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str, data: MitigationCreate
) -> RiskMitigation:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    context = await load_context(db, worksheet.context_id)

    _check_dates(data.planned_start_date, data.planned_end_date, "Planned")
    _check_dates(data.actual_start_date, data.actual_end_date, "Actual")
    proposed = await _proposed_level(
        db, context, data.proposed_residual_likelihood, data.proposed_residual_impact
    )

    item.mitigation_sequence += 1
    mitigation = RiskMitigation(
        item_id=item.id,
        code=format_code("M", item.mitigation_sequence),
        proposed_residual_risk_level=proposed,
        review_status=MitigationReviewStatus.PENDING,
        is_validated=False,
        created_by=caller.user_id,
        updated_by=caller.user_id,
        **data.model_dump(),
    )
    db.add(mitigation)
    await db.commit()

    logger.info(
        "mitigation_created",
        mitigation_id=mitigation.id,
        code=mitigation.code,
        item_id=item.id,
        actor=caller.user_id,
    )
    return mitigation


async def list_mitigations(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    review_status: Optional[MitigationReviewStatus] = None,
    priority: Optional[MitigationPriority] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    stmt = select(RiskMitigation).where(RiskMitigation.item_id == item.id)
    if review_status is not None:
        stmt = stmt.where(RiskMitigation.review_status == review_status)
    if priority is not None:
        stmt = stmt.where(RiskMitigation.priority == priority)
    return await paginate(db, stmt.order_by(RiskMitigation.code), page, limit)


async def get_mitigation(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str, mitigation_id: str
) -> RiskMitigation:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    return await load_mitigation(db, item, mitigation_id)


async def update_mitigation(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    data: MitigationUpdate,
) -> RiskMitigation:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    mitigation = await load_mitigation(db, item, mitigation_id)
    enforce(caller, mitigation, NOT_VALIDATED)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")
    for required in ("name", "priority", "status", "progress_percentage"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required.replace('_', ' ').capitalize()} cannot be empty.")

    def effective(field: str):
        return changes.get(field, getattr(mitigation, field))

    _check_dates(effective("planned_start_date"), effective("planned_end_date"), "Planned")
    _check_dates(effective("actual_start_date"), effective("actual_end_date"), "Actual")
    if "proposed_residual_likelihood" in changes or "proposed_residual_impact" in changes:
        context = await load_context(db, worksheet.context_id)
        changes["proposed_residual_risk_level"] = await _proposed_level(
            db,
            context,
            effective("proposed_residual_likelihood"),
            effective("proposed_residual_impact"),
        )

    for field, value in changes.items():
        setattr(mitigation, field, value)
    mitigation.updated_by = caller.user_id
    await db.commit()

    logger.info("mitigation_updated", mitigation_id=mitigation.id, fields=sorted(changes), actor=caller.user_id)
    return mitigation


async def delete_mitigation(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str, mitigation_id: str
) -> None:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    mitigation = await load_mitigation(db, item, mitigation_id)
    enforce(caller, mitigation, NOT_VALIDATED)

    await db.delete(mitigation)
    await db.commit()

    logger.info("mitigation_deleted", mitigation_id=mitigation_id, code=mitigation.code, actor=caller.user_id)


# ─── Review ───────────────────────────────────────────────────────

async def validate_mitigation(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    notes: Optional[str] = None,
) -> RiskMitigation:
    worksheet, item, mitigation = await _load(db, unit_id, worksheet_id, item_id, mitigation_id)
    enforce(caller, mitigation, REVIEW)
    target = MITIGATION_MACHINE.next_state(mitigation.review_status, Action.VALIDATE)

    # Check the item's new residual before touching any row
    residual = None
    if mitigation.proposed_residual_likelihood is not None:
        context = await load_context(db, worksheet.context_id)
        residual = await resolve_risk_level(
            db, context.id, mitigation.proposed_residual_likelihood, mitigation.proposed_residual_impact
        )
        check_treatment_option(item.treatment_option, residual, context.risk_appetite_level)

    mitigation.review_status = target
    mitigation.is_validated = True
    mitigation.validated_at = _now()
    mitigation.validated_by = caller.user_id
    mitigation.validation_notes = notes
    mitigation.updated_by = caller.user_id
    if residual is not None:
        item.residual_likelihood = mitigation.proposed_residual_likelihood
        item.residual_impact = mitigation.proposed_residual_impact
        item.residual_risk_level = residual
        item.updated_by = caller.user_id
    await db.commit()

    record_transition("mitigation", Action.VALIDATE.value)
    logger.info(
        "mitigation_validated",
        mitigation_id=mitigation.id,
        item_id=item.id,
        residual=residual.value if residual else None,
        actor=caller.user_id,
    )
    return mitigation


async def reject_mitigation(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    item_id: str,
    mitigation_id: str,
    notes: Optional[str],
) -> RiskMitigation:
    _, _, mitigation = await _load(db, unit_id, worksheet_id, item_id, mitigation_id)
    enforce(caller, mitigation, REVIEW)
    target = MITIGATION_MACHINE.next_state(mitigation.review_status, Action.REJECT)
    notes = check_reason(notes, label="Rejection notes")

    mitigation.review_status = target
    mitigation.validation_notes = notes
    mitigation.updated_by = caller.user_id
    await db.commit()

    record_transition("mitigation", Action.REJECT.value)
    logger.info("mitigation_rejected", mitigation_id=mitigation.id, actor=caller.user_id)
    return mitigation


async def resubmit_mitigation(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str, mitigation_id: str
) -> RiskMitigation:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    mitigation = await load_mitigation(db, item, mitigation_id)
    mitigation.review_status = MITIGATION_MACHINE.next_state(mitigation.review_status, Action.RESUBMIT)
    mitigation.validation_notes = None
    mitigation.updated_by = caller.user_id
    await db.commit()

    record_transition("mitigation", Action.RESUBMIT.value)
    logger.info("mitigation_resubmitted", mitigation_id=mitigation.id, actor=caller.user_id)
    return mitigation


async def list_pending(
    db: AsyncSession,
    caller: Caller,
    unit_id: Optional[str] = None,
    priority: Optional[MitigationPriority] = None,
    review_status: Optional[MitigationReviewStatus] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    """Cross-unit review queue of every mitigation not yet validated."""
    enforce(caller, None, REVIEW)
    stmt = (
        select(
            RiskMitigation,
            RiskWorksheet.unit_id,
            RiskWorksheet.id.label("worksheet_id"),
            RiskAssessmentItem.risk_code,
            RiskAssessmentItem.risk_name,
        )
        .join(RiskAssessmentItem, RiskAssessmentItem.id == RiskMitigation.item_id)
        .join(RiskWorksheet, RiskWorksheet.id == RiskAssessmentItem.worksheet_id)
        .where(RiskMitigation.is_validated.is_(False))
    )
    if unit_id:
        stmt = stmt.where(RiskWorksheet.unit_id == unit_id)
    if priority is not None:
        stmt = stmt.where(RiskMitigation.priority == priority)
    if review_status is not None:
        stmt = stmt.where(RiskMitigation.review_status == review_status)
    stmt = stmt.order_by(RiskMitigation.created_at, RiskMitigation.code)

    result = await paginate(db, stmt, page, limit, scalars=False)
    result.items = [
        {
            **{c.key: getattr(m, c.key) for c in RiskMitigation.__table__.columns},
            "unit_id": unit,
            "worksheet_id": ws_id,
            "risk_code": code,
            "risk_name": name,
        }
        for m, unit, ws_id, code, name in result.items
    ]
    return result
