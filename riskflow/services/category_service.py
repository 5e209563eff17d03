"""
Risk categories of a context. Name and order are unique per context.
"""
from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import Conflict, ValidationError
from riskflow.models.context import ImpactScale, LikelihoodScale, RiskCategory, RiskContext
from riskflow.schemas.context import CategoryCreate, CategoryUpdate
from riskflow.services.context_service import ensure_configurable
from riskflow.services.lookups import PageResult, load_category, load_context, paginate
from riskflow.workflow.guards import CONFIG_WRITE, enforce

logger = structlog.get_logger()


async def _check_unique(
    db: AsyncSession,
    context: RiskContext,
    name: Optional[str],
    order: Optional[int],
    exclude_id: Optional[str] = None,
) -> None:
    base = select(RiskCategory.id).where(RiskCategory.context_id == context.id)
    if exclude_id is not None:
        base = base.where(RiskCategory.id != exclude_id)
    if name is not None and await db.scalar(base.where(RiskCategory.name == name)):
        raise Conflict(f'Risk category "{name}" already exists in this context.')
    if order is not None and await db.scalar(base.where(RiskCategory.order == order)):
        raise Conflict(f"Risk category order {order} is already used in this context.")


async def create_category(
    db: AsyncSession, caller: Caller, context_id: str, data: CategoryCreate
) -> RiskCategory:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    ensure_configurable(context)
    await _check_unique(db, context, data.name, data.order)

    category = RiskCategory(context_id=context.id, **data.model_dump())
    db.add(category)
    await db.commit()

    logger.info("category_created", context_id=context.id, category_id=category.id, actor=caller.user_id)
    return category


async def list_categories(
    db: AsyncSession,
    context_id: str,
    name: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    context = await load_context(db, context_id)
    stmt = select(RiskCategory).where(RiskCategory.context_id == context.id)
    if name:
        stmt = stmt.where(RiskCategory.name.ilike(f"%{name}%"))
    return await paginate(db, stmt.order_by(RiskCategory.order), page, limit)


async def get_category(db: AsyncSession, context_id: str, category_id: str) -> RiskCategory:
    context = await load_context(db, context_id)
    return await load_category(db, context, category_id)


async def update_category(
    db: AsyncSession, caller: Caller, context_id: str, category_id: str, data: CategoryUpdate
) -> RiskCategory:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    category = await load_category(db, context, category_id)
    ensure_configurable(context)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")
    await _check_unique(
        db,
        context,
        changes.get("name") if changes.get("name") != category.name else None,
        changes.get("order") if changes.get("order") != category.order else None,
        exclude_id=category.id,
    )

    for field, value in changes.items():
        setattr(category, field, value)
    await db.commit()

    logger.info("category_updated", category_id=category.id, fields=sorted(changes), actor=caller.user_id)
    return category


async def delete_category(db: AsyncSession, caller: Caller, context_id: str, category_id: str) -> None:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    category = await load_category(db, context, category_id)
    ensure_configurable(context)

    await db.execute(delete(LikelihoodScale).where(LikelihoodScale.category_id == category.id))
    await db.execute(delete(ImpactScale).where(ImpactScale.category_id == category.id))
    await db.delete(category)
    await db.commit()

    logger.info("category_deleted", context_id=context.id, category_id=category_id, actor=caller.user_id)
