"""
Likelihood×impact matrix cells of a context.

Bulk create validates the whole batch before writing anything: every
in-request duplicate and out-of-range level is reported (ValidationError),
then every clash with stored cells (Conflict).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.auth import Caller
from riskflow.core.errors import Conflict, NotFound, ValidationError
from riskflow.models.context import RiskContext, RiskMatrixCell
from riskflow.schemas.context import MatrixBulkCreate, MatrixCellCreate, MatrixCellUpdate
from riskflow.services.context_service import ensure_configurable
from riskflow.services.lookups import count_rows, load_context
from riskflow.workflow.guards import CONFIG_WRITE, enforce

logger = structlog.get_logger()


@dataclass
class BulkResult:
    created: list[RiskMatrixCell]
    total_cells: int
    expected_cells: int

    @property
    def is_complete(self) -> bool:
        return self.total_cells == self.expected_cells


def _level_errors(context: RiskContext, likelihood: int, impact: int) -> list[str]:
    n = context.matrix_size
    errors = []
    if not 1 <= likelihood <= n:
        errors.append(f"likelihood level {likelihood} is outside 1..{n}")
    if not 1 <= impact <= n:
        errors.append(f"impact level {impact} is outside 1..{n}")
    return errors


async def _cell_exists(
    db: AsyncSession, context: RiskContext, likelihood: int, impact: int, exclude_id: Optional[str] = None
) -> bool:
    stmt = select(RiskMatrixCell.id).where(
        RiskMatrixCell.context_id == context.id,
        RiskMatrixCell.likelihood_level == likelihood,
        RiskMatrixCell.impact_level == impact,
    )
    if exclude_id is not None:
        stmt = stmt.where(RiskMatrixCell.id != exclude_id)
    return bool(await db.scalar(stmt))


async def _load_cell(db: AsyncSession, context: RiskContext, cell_id: str) -> RiskMatrixCell:
    cell = await db.get(RiskMatrixCell, cell_id)
    if cell is None or cell.context_id != context.id:
        raise NotFound("Risk matrix cell not found in this context.")
    return cell


async def create_cell(
    db: AsyncSession, caller: Caller, context_id: str, data: MatrixCellCreate
) -> RiskMatrixCell:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    ensure_configurable(context)

    errors = _level_errors(context, data.likelihood_level, data.impact_level)
    if errors:
        raise ValidationError("Risk matrix levels exceed the matrix size.", details=errors)
    if await _cell_exists(db, context, data.likelihood_level, data.impact_level):
        raise Conflict(
            f"Risk matrix cell for likelihood {data.likelihood_level} and "
            f"impact {data.impact_level} already exists."
        )

    cell = RiskMatrixCell(context_id=context.id, **data.model_dump())
    db.add(cell)
    await db.commit()

    logger.info("matrix_cell_created", context_id=context.id, cell_id=cell.id, actor=caller.user_id)
    return cell


async def bulk_create_cells(
    db: AsyncSession, caller: Caller, context_id: str, data: MatrixBulkCreate
) -> BulkResult:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    ensure_configurable(context)

    errors: list[str] = []
    seen: dict[tuple[int, int], int] = {}
    for index, cell in enumerate(data.cells):
        pair = (cell.likelihood_level, cell.impact_level)
        if pair in seen:
            errors.append(
                f"cells[{index}]: duplicate of cells[{seen[pair]}] "
                f"(likelihood {pair[0]}, impact {pair[1]})"
            )
        else:
            seen[pair] = index
        errors.extend(f"cells[{index}]: {e}" for e in _level_errors(context, *pair))
    if errors:
        raise ValidationError("Invalid risk matrix cells.", details=errors)

    stored = {
        (l, i)
        for l, i in (
            await db.execute(
                select(RiskMatrixCell.likelihood_level, RiskMatrixCell.impact_level)
                .where(RiskMatrixCell.context_id == context.id)
            )
        ).all()
    }
    clashes = [pair for pair in seen if pair in stored]
    if clashes:
        raise Conflict(
            "Risk matrix cells already exist.",
            details=[f"likelihood {l}, impact {i}" for l, i in clashes],
        )

    created = [RiskMatrixCell(context_id=context.id, **cell.model_dump()) for cell in data.cells]
    db.add_all(created)
    await db.commit()

    total = len(stored) + len(created)
    logger.info(
        "matrix_cells_bulk_created",
        context_id=context.id,
        created=len(created),
        total=total,
        actor=caller.user_id,
    )
    return BulkResult(created=created, total_cells=total, expected_cells=context.matrix_size ** 2)


async def list_cells(
    db: AsyncSession, context_id: str, risk_level=None
) -> list[RiskMatrixCell]:
    context = await load_context(db, context_id)
    stmt = select(RiskMatrixCell).where(RiskMatrixCell.context_id == context.id)
    if risk_level is not None:
        stmt = stmt.where(RiskMatrixCell.risk_level == risk_level)
    rows = await db.scalars(
        stmt.order_by(RiskMatrixCell.likelihood_level, RiskMatrixCell.impact_level)
    )
    return list(rows.all())


async def get_cell(db: AsyncSession, context_id: str, cell_id: str) -> RiskMatrixCell:
    context = await load_context(db, context_id)
    return await _load_cell(db, context, cell_id)


async def update_cell(
    db: AsyncSession, caller: Caller, context_id: str, cell_id: str, data: MatrixCellUpdate
) -> RiskMatrixCell:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    cell = await _load_cell(db, context, cell_id)
    ensure_configurable(context)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("At least one field must be provided.")
    likelihood = changes.get("likelihood_level", cell.likelihood_level)
    impact = changes.get("impact_level", cell.impact_level)
    errors = _level_errors(context, likelihood, impact)
    if errors:
        raise ValidationError("Risk matrix levels exceed the matrix size.", details=errors)
    if (likelihood, impact) != (cell.likelihood_level, cell.impact_level):
        if await _cell_exists(db, context, likelihood, impact, exclude_id=cell.id):
            raise Conflict(
                f"Risk matrix cell for likelihood {likelihood} and impact {impact} already exists."
            )

    for field, value in changes.items():
        setattr(cell, field, value)
    await db.commit()

    logger.info("matrix_cell_updated", cell_id=cell.id, fields=sorted(changes), actor=caller.user_id)
    return cell


async def delete_cell(db: AsyncSession, caller: Caller, context_id: str, cell_id: str) -> None:
    enforce(caller, None, CONFIG_WRITE)
    context = await load_context(db, context_id)
    cell = await _load_cell(db, context, cell_id)
    ensure_configurable(context)

    await db.delete(cell)
    await db.commit()

    remaining = await count_rows(db, RiskMatrixCell, RiskMatrixCell.context_id == context.id)
    logger.info("matrix_cell_deleted", cell_id=cell_id, remaining=remaining, actor=caller.user_id)
