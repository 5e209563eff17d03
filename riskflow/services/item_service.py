"""
Assessment items — one scored risk inside a worksheet.

Scoring pipeline on every create and on any score change:

    (likelihood, impact) ─bounds 1..N─▶ resolver ─▶ inherent / residual level
    residual level + context appetite ─▶ treatment option guard

Risk levels are always derived, never taken from the request. Codes
``R001…`` come from the worksheet's item counter and are never reused.
"""
from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import NotFound, ValidationError
from riskflow.models.base import format_code
from riskflow.models.context import RiskCategory, RiskContext
from riskflow.models.reference import Asset
from riskflow.models.risk_assessment import RiskAssessmentItem, RiskMitigation
from riskflow.models.worksheet import RiskWorksheet
from riskflow.schemas.assessment import ItemCreate, ItemUpdate
from riskflow.schemas.enums import RiskLevel
from riskflow.scoring.appetite import check_treatment_option
from riskflow.scoring.resolver import resolve_risk_level, validate_levels
from riskflow.services.lookups import (
    PageResult, load_assessment, load_context, load_item, paginate,
)
from riskflow.services.worksheet_service import owned_worksheet, readable_worksheet
from riskflow.workflow.guards import enforce, in_states
from riskflow.workflow.states import ASSESSMENT_EDITABLE

logger = structlog.get_logger()

ASSESSMENT_OPEN = (in_states(*ASSESSMENT_EDITABLE, noun="assessment"),)
SCORE_FIELDS = ("inherent_likelihood", "inherent_impact", "residual_likelihood", "residual_impact")


# ─── Reference checks ─────────────────────────────────────────────

async def _check_category(db: AsyncSession, context: RiskContext, category_id: str) -> RiskCategory:
    category = await db.get(RiskCategory, category_id)
    if category is None:
        raise NotFound("Risk category not found.")
    if category.context_id != context.id:
        raise ValidationError("Risk category does not belong to the worksheet's context.")
    return category


async def _check_asset(db: AsyncSession, worksheet: RiskWorksheet, asset_id: str) -> Asset:
    asset = await db.get(Asset, asset_id)
    if asset is None:
        raise NotFound("Asset not found.")
    if asset.unit_id != worksheet.unit_id:
        raise ValidationError("Asset does not belong to the worksheet's unit.")
    return asset


async def _check_assessment(db: AsyncSession, caller: Caller, worksheet: RiskWorksheet, assessment_id: str):
    assessment = await load_assessment(db, worksheet, assessment_id)
    enforce(caller, assessment, ASSESSMENT_OPEN)
    return assessment


async def _score(
    db: AsyncSession, context: RiskContext, likelihood: int, impact: int, label: str
) -> RiskLevel:
    validate_levels(context.matrix_size, likelihood, impact, label=label)
    return await resolve_risk_level(db, context.id, likelihood, impact)


# ─── CRUD ─────────────────────────────────────────────────────────

async def create_item(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, data: ItemCreate
) -> RiskAssessmentItem:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    context = await load_context(db, worksheet.context_id)

    await _check_category(db, context, data.risk_category_id)
    if data.asset_id:
        await _check_asset(db, worksheet, data.asset_id)
    if data.assessment_id:
        await _check_assessment(db, caller, worksheet, data.assessment_id)

    values = data.model_dump()
    if values["residual_likelihood"] is None:
        values["residual_likelihood"] = data.inherent_likelihood
    if values["residual_impact"] is None:
        values["residual_impact"] = data.inherent_impact

    inherent = await _score(db, context, values["inherent_likelihood"], values["inherent_impact"], "inherent")
    residual = await _score(db, context, values["residual_likelihood"], values["residual_impact"], "residual")
    check_treatment_option(data.treatment_option, residual, context.risk_appetite_level)

    worksheet.item_sequence += 1
    item = RiskAssessmentItem(
        worksheet_id=worksheet.id,
        risk_code=format_code("R", worksheet.item_sequence),
        inherent_risk_level=inherent,
        residual_risk_level=residual,
        created_by=caller.user_id,
        updated_by=caller.user_id,
        **values,
    )
    db.add(item)
    await db.commit()

    logger.info(
        "item_created",
        item_id=item.id,
        risk_code=item.risk_code,
        worksheet_id=worksheet.id,
        inherent=inherent.value,
        residual=residual.value,
        actor=caller.user_id,
    )
    return item


async def list_items(
    db: AsyncSession,
    caller: Caller,
    unit_id: str,
    worksheet_id: str,
    risk_name: Optional[str] = None,
    risk_category_id: Optional[str] = None,
    assessment_id: Optional[str] = None,
    inherent_risk_level: Optional[RiskLevel] = None,
    residual_risk_level: Optional[RiskLevel] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    stmt = select(RiskAssessmentItem).where(RiskAssessmentItem.worksheet_id == worksheet.id)
    if risk_name:
        stmt = stmt.where(RiskAssessmentItem.risk_name.ilike(f"%{risk_name}%"))
    if risk_category_id:
        stmt = stmt.where(RiskAssessmentItem.risk_category_id == risk_category_id)
    if assessment_id:
        stmt = stmt.where(RiskAssessmentItem.assessment_id == assessment_id)
    if inherent_risk_level is not None:
        stmt = stmt.where(RiskAssessmentItem.inherent_risk_level == inherent_risk_level)
    if residual_risk_level is not None:
        stmt = stmt.where(RiskAssessmentItem.residual_risk_level == residual_risk_level)
    stmt = stmt.order_by(RiskAssessmentItem.order, RiskAssessmentItem.risk_code)
    return await paginate(db, stmt, page, limit)


async def get_item(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str
) -> RiskAssessmentItem:
    worksheet = await readable_worksheet(db, caller, unit_id, worksheet_id)
    return await load_item(db, worksheet, item_id)


async def update_item(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str, data: ItemUpdate
) -> RiskAssessmentItem:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    context = await load_context(db, worksheet.context_id)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")

    if changes.get("risk_category_id") is not None:
        await _check_category(db, context, changes["risk_category_id"])
    elif "risk_category_id" in changes:
        raise ValidationError("Risk category is required.")
    if changes.get("asset_id"):
        await _check_asset(db, worksheet, changes["asset_id"])
    # Both the assessment the item leaves and the one it joins must be open
    if item.assessment_id:
        await _check_assessment(db, caller, worksheet, item.assessment_id)
    target = changes.get("assessment_id")
    if target and target != item.assessment_id:
        await _check_assessment(db, caller, worksheet, target)

    for score in SCORE_FIELDS:
        if score in changes and changes[score] is None:
            raise ValidationError(f"{score.replace('_', ' ').capitalize()} is required.")

    residual = item.residual_risk_level
    if any(score in changes for score in SCORE_FIELDS):
        inherent = await _score(
            db,
            context,
            changes.get("inherent_likelihood", item.inherent_likelihood),
            changes.get("inherent_impact", item.inherent_impact),
            "inherent",
        )
        residual = await _score(
            db,
            context,
            changes.get("residual_likelihood", item.residual_likelihood),
            changes.get("residual_impact", item.residual_impact),
            "residual",
        )
        changes["inherent_risk_level"] = inherent
        changes["residual_risk_level"] = residual

    check_treatment_option(
        changes.get("treatment_option", item.treatment_option), residual, context.risk_appetite_level
    )

    for field, value in changes.items():
        setattr(item, field, value)
    item.updated_by = caller.user_id
    await db.commit()

    logger.info("item_updated", item_id=item.id, fields=sorted(changes), actor=caller.user_id)
    return item


async def delete_item(
    db: AsyncSession, caller: Caller, unit_id: str, worksheet_id: str, item_id: str
) -> None:
    worksheet = await owned_worksheet(db, caller, unit_id, worksheet_id)
    item = await load_item(db, worksheet, item_id)
    if item.assessment_id:
        await _check_assessment(db, caller, worksheet, item.assessment_id)

    await db.execute(delete(RiskMitigation).where(RiskMitigation.item_id == item.id))
    await db.delete(item)
    await db.commit()

    logger.info("item_deleted", item_id=item_id, risk_code=item.risk_code, actor=caller.user_id)
