"""
Context Configuration Store — risk contexts and their lifecycle.

    create      → INACTIVE
    activate    INACTIVE → ACTIVE   (demotes every other ACTIVE context)
    deactivate  ACTIVE → INACTIVE
    archive     INACTIVE → ARCHIVED (terminal)

Activation is gated on a complete configuration: at least one category,
N likelihood and N impact scales per category, and N² matrix cells. Every
missing prerequisite is reported in a single ValidationError.

At most one context is ACTIVE at any time. ``activate_context`` demotes and
promotes inside one transaction; the partial unique index on ``status``
rejects a concurrent second activation at commit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.config import get_settings
from riskflow.core.errors import Conflict, Forbidden, ValidationError
from riskflow.core.metrics import record_transition
from riskflow.models.context import (
    ImpactScale, LikelihoodScale, RiskCategory, RiskContext, RiskMatrixCell,
)
from riskflow.schemas.context import ContextCreate, ContextUpdate
from riskflow.schemas.enums import ContextStatus
from riskflow.services.lookups import PageResult, count_rows, load_context, paginate
from riskflow.workflow.guards import CONFIG_WRITE, enforce, in_states
from riskflow.workflow.states import CONTEXT_MACHINE, Action

logger = structlog.get_logger()

UPDATABLE = (in_states(ContextStatus.INACTIVE, noun="context"),)


@dataclass
class CategoryCompleteness:
    category_id: str
    name: str
    likelihood_scales: int
    impact_scales: int


@dataclass
class Readiness:
    context: RiskContext
    categories: list[CategoryCompleteness]
    matrix_cells: int
    missing: list[str]

    @property
    def expected_matrix_cells(self) -> int:
        return self.context.matrix_size ** 2

    @property
    def is_complete(self) -> bool:
        return not self.missing


# ─── Validation helpers ───────────────────────────────────────────

def _check_matrix_size(matrix_size: int) -> None:
    upper = get_settings().max_matrix_size
    if not 2 <= matrix_size <= upper:
        raise ValidationError(f"Matrix size must be between 2 and {upper}.")


def _check_period(period_start: int, period_end: int) -> None:
    if period_end <= period_start:
        raise ValidationError("Period end must be greater than period start.")


async def _check_period_overlap(
    db: AsyncSession, period_start: int, period_end: int, exclude_id: Optional[str] = None
) -> None:
    # Periods are inclusive year ranges, so 2024-2025 and 2025-2026 overlap
    stmt = select(RiskContext).where(
        RiskContext.period_start <= period_end,
        RiskContext.period_end >= period_start,
    )
    if exclude_id is not None:
        stmt = stmt.where(RiskContext.id != exclude_id)
    other = (await db.scalars(stmt.limit(1))).first()
    if other is not None:
        raise Conflict(
            f"Context period overlaps with context {other.name} "
            f"({other.period_start}-{other.period_end})."
        )


def ensure_configurable(context: RiskContext) -> None:
    """Categories, scales and matrix cells only change on an INACTIVE context."""
    if context.status == ContextStatus.ACTIVE:
        raise Forbidden("Context is active. Deactivate it before changing its configuration.")
    if context.status == ContextStatus.ARCHIVED:
        raise Forbidden("Context is archived. Its configuration can no longer be changed.")


# ─── CRUD ─────────────────────────────────────────────────────────

async def create_context(db: AsyncSession, caller: Caller, data: ContextCreate) -> RiskContext:
    enforce(caller, None, CONFIG_WRITE)
    _check_matrix_size(data.matrix_size)
    _check_period(data.period_start, data.period_end)

    if await db.scalar(select(RiskContext.id).where(RiskContext.code == data.code)):
        raise Conflict(f"Context code {data.code} is already in use.")
    await _check_period_overlap(db, data.period_start, data.period_end)

    context = RiskContext(
        **data.model_dump(),
        status=ContextStatus.INACTIVE,
        created_by=caller.user_id,
        updated_by=caller.user_id,
    )
    db.add(context)
    await db.commit()

    logger.info("context_created", context_id=context.id, code=context.code, actor=caller.user_id)
    return context


async def list_contexts(
    db: AsyncSession,
    name: Optional[str] = None,
    code: Optional[str] = None,
    status: Optional[ContextStatus] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> PageResult:
    stmt = select(RiskContext)
    if name:
        stmt = stmt.where(RiskContext.name.ilike(f"%{name}%"))
    if code:
        stmt = stmt.where(RiskContext.code.ilike(f"%{code}%"))
    if status is not None:
        stmt = stmt.where(RiskContext.status == status)
    stmt = stmt.order_by(RiskContext.period_start.desc(), RiskContext.created_at.desc())
    return await paginate(db, stmt, page, limit)


async def get_context(db: AsyncSession, context_id: str) -> RiskContext:
    return await load_context(db, context_id)


async def update_context(
    db: AsyncSession, caller: Caller, context_id: str, data: ContextUpdate
) -> RiskContext:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    enforce(caller, context, UPDATABLE)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")

    new_size = changes.get("matrix_size")
    if new_size is not None and new_size != context.matrix_size:
        _check_matrix_size(new_size)
        if await _has_levels(db, context.id):
            raise Forbidden("Matrix size cannot change once scales or matrix cells exist.")

    if "period_start" in changes or "period_end" in changes:
        start = changes.get("period_start") or context.period_start
        end = changes.get("period_end") or context.period_end
        _check_period(start, end)
        await _check_period_overlap(db, start, end, exclude_id=context.id)

    for field, value in changes.items():
        setattr(context, field, value)
    context.updated_by = caller.user_id
    await db.commit()

    logger.info("context_updated", context_id=context.id, fields=sorted(changes), actor=caller.user_id)
    return context


async def _has_levels(db: AsyncSession, context_id: str) -> bool:
    category_ids = select(RiskCategory.id).where(RiskCategory.context_id == context_id)
    scales = await count_rows(db, LikelihoodScale, LikelihoodScale.category_id.in_(category_ids))
    scales += await count_rows(db, ImpactScale, ImpactScale.category_id.in_(category_ids))
    cells = await count_rows(db, RiskMatrixCell, RiskMatrixCell.context_id == context_id)
    return bool(scales or cells)


# ─── Readiness ────────────────────────────────────────────────────

async def _scale_counts(db: AsyncSession, model, category_ids: list[str]) -> dict[str, int]:
    if not category_ids:
        return {}
    rows = await db.execute(
        select(model.category_id, func.count())
        .where(model.category_id.in_(category_ids))
        .group_by(model.category_id)
    )
    return dict(rows.all())


async def check_readiness(db: AsyncSession, context: RiskContext) -> Readiness:
    n = context.matrix_size
    categories = (
        await db.scalars(
            select(RiskCategory)
            .where(RiskCategory.context_id == context.id)
            .order_by(RiskCategory.order)
        )
    ).all()
    ids = [c.id for c in categories]
    likelihood = await _scale_counts(db, LikelihoodScale, ids)
    impact = await _scale_counts(db, ImpactScale, ids)

    missing: list[str] = []
    report: list[CategoryCompleteness] = []
    if not categories:
        missing.append("Context has no risk categories, needs at least 1")
    for category in categories:
        entry = CategoryCompleteness(
            category_id=category.id,
            name=category.name,
            likelihood_scales=likelihood.get(category.id, 0),
            impact_scales=impact.get(category.id, 0),
        )
        report.append(entry)
        if entry.likelihood_scales != n:
            missing.append(
                f'Category "{category.name}" has {entry.likelihood_scales} likelihood scales, needs {n}'
            )
        if entry.impact_scales != n:
            missing.append(
                f'Category "{category.name}" has {entry.impact_scales} impact scales, needs {n}'
            )

    cells = (
        await db.execute(
            select(RiskMatrixCell.likelihood_level, RiskMatrixCell.impact_level)
            .where(RiskMatrixCell.context_id == context.id)
        )
    ).all()
    covered = {(l, i) for l, i in cells if 1 <= l <= n and 1 <= i <= n}
    if len(cells) != n * n or len(covered) != n * n:
        missing.append(f"Risk matrix has {len(cells)} cells, needs {n * n}")

    return Readiness(context=context, categories=report, matrix_cells=len(cells), missing=missing)


async def get_readiness(db: AsyncSession, context_id: str) -> Readiness:
    context = await load_context(db, context_id)
    return await check_readiness(db, context)


# ─── Lifecycle ────────────────────────────────────────────────────

async def activate_context(db: AsyncSession, caller: Caller, context_id: str) -> RiskContext:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    if context.status == ContextStatus.ACTIVE:
        raise Conflict("Context is already active.")
    target = CONTEXT_MACHINE.next_state(context.status, Action.ACTIVATE)

    readiness = await check_readiness(db, context)
    if not readiness.is_complete:
        raise ValidationError(
            "Context configuration is incomplete: " + "; ".join(readiness.missing) + ".",
            details=readiness.missing,
        )

    demoted = (
        await db.scalars(
            select(RiskContext).where(
                RiskContext.status == ContextStatus.ACTIVE, RiskContext.id != context.id
            )
        )
    ).all()
    for other in demoted:
        other.status = CONTEXT_MACHINE.next_state(other.status, Action.DEACTIVATE)
        other.updated_by = caller.user_id
    # Demotions must reach the database before the promotion
    await db.flush()

    context.status = target
    context.updated_by = caller.user_id
    await db.commit()

    record_transition("context", Action.ACTIVATE.value)
    logger.info(
        "context_activated",
        context_id=context.id,
        demoted=[c.id for c in demoted],
        actor=caller.user_id,
    )
    return context


async def deactivate_context(db: AsyncSession, caller: Caller, context_id: str) -> RiskContext:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    context.status = CONTEXT_MACHINE.next_state(context.status, Action.DEACTIVATE)
    context.updated_by = caller.user_id
    await db.commit()

    record_transition("context", Action.DEACTIVATE.value)
    logger.info("context_deactivated", context_id=context.id, actor=caller.user_id)
    return context


async def archive_context(db: AsyncSession, caller: Caller, context_id: str) -> RiskContext:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    if context.status == ContextStatus.ACTIVE:
        raise Forbidden("Context is active. Deactivate it before archiving.")
    context.status = CONTEXT_MACHINE.next_state(context.status, Action.ARCHIVE)
    context.updated_by = caller.user_id
    await db.commit()

    record_transition("context", Action.ARCHIVE.value)
    logger.info("context_archived", context_id=context.id, actor=caller.user_id)
    return context

