"""
Likelihood and impact scales of a risk category.

Both kinds behave identically: levels run from 1 to the context's matrix
size and are unique per category. ``kind`` selects the table.
"""
from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import Conflict, NotFound, ValidationError
from riskflow.models.context import ImpactScale, LikelihoodScale, RiskCategory, RiskContext
from riskflow.schemas.context import ScaleCreate, ScaleUpdate
from riskflow.services.context_service import ensure_configurable
from riskflow.services.lookups import load_category, load_context
from riskflow.workflow.guards import CONFIG_WRITE, enforce

logger = structlog.get_logger()

SCALE_MODELS = {
    "likelihood": LikelihoodScale,
    "impact": ImpactScale,
}


def _model(kind: str):
    try:
        return SCALE_MODELS[kind]
    except KeyError:
        raise NotFound(f"Unknown scale kind: {kind}.") from None


def _check_level(context: RiskContext, kind: str, level: int) -> None:
    if not 1 <= level <= context.matrix_size:
        raise ValidationError(
            f"{kind.capitalize()} level must be between 1 and {context.matrix_size} (matrix size)."
        )


async def _check_unique(
    db: AsyncSession, model, category: RiskCategory, kind: str, level: int
) -> None:
    exists = await db.scalar(
        select(model.id).where(model.category_id == category.id, model.level == level)
    )
    if exists:
        raise Conflict(f'Category "{category.name}" already has a {kind} scale at level {level}.')


async def _load_scope(db: AsyncSession, context_id: str, category_id: str):
    context = await load_context(db, context_id)
    category = await load_category(db, context, category_id)
    return context, category


async def _load_scale(db: AsyncSession, model, category: RiskCategory, kind: str, scale_id: str):
    scale = await db.get(model, scale_id)
    if scale is None or scale.category_id != category.id:
        raise NotFound(f"{kind.capitalize()} scale not found in this category.")
    return scale


async def create_scale(
    db: AsyncSession, caller: Caller, kind: str, context_id: str, category_id: str, data: ScaleCreate
):
    model = _model(kind)
    enforce(caller, None, CONFIG_WRITE)
    context, category = await _load_scope(db, context_id, category_id)
    ensure_configurable(context)
    _check_level(context, kind, data.level)
    await _check_unique(db, model, category, kind, data.level)

    scale = model(category_id=category.id, **data.model_dump())
    db.add(scale)
    await db.commit()

    logger.info(
        "scale_created", kind=kind, category_id=category.id, level=scale.level, actor=caller.user_id
    )
    return scale


async def list_scales(db: AsyncSession, kind: str, context_id: str, category_id: str) -> list:
    model = _model(kind)
    _, category = await _load_scope(db, context_id, category_id)
    rows = await db.scalars(
        select(model).where(model.category_id == category.id).order_by(model.level)
    )
    return list(rows.all())


async def get_scale(db: AsyncSession, kind: str, context_id: str, category_id: str, scale_id: str):
    model = _model(kind)
    _, category = await _load_scope(db, context_id, category_id)
    return await _load_scale(db, model, category, kind, scale_id)


async def update_scale(
    db: AsyncSession,
    caller: Caller,
    kind: str,
    context_id: str,
    category_id: str,
    scale_id: str,
    data: ScaleUpdate,
):
    model = _model(kind)
    enforce(caller, None, CONFIG_WRITE)
    context, category = await _load_scope(db, context_id, category_id)
    scale = await _load_scale(db, model, category, kind, scale_id)
    ensure_configurable(context)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")
    level: Optional[int] = changes.get("level")
    if level is not None and level != scale.level:
        _check_level(context, kind, level)
        await _check_unique(db, model, category, kind, level)

    for field, value in changes.items():
        setattr(scale, field, value)
    await db.commit()

    logger.info("scale_updated", kind=kind, scale_id=scale.id, fields=sorted(changes), actor=caller.user_id)
    return scale


async def delete_scale(
    db: AsyncSession, caller: Caller, kind: str, context_id: str, category_id: str, scale_id: str
) -> None:
    model = _model(kind)
    enforce(caller, None, CONFIG_WRITE)
    context, category = await _load_scope(db, context_id, category_id)
    scale = await _load_scale(db, model, category, kind, scale_id)
    ensure_configurable(context)

    await db.delete(scale)
    await db.commit()

    logger.info("scale_deleted", kind=kind, scale_id=scale_id, actor=caller.user_id)
