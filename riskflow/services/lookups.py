"""
Shared loaders, pagination and small checks for the workflow services.

Child documents are always loaded through their claimed parent; a child that
exists but hangs off another parent is reported as NotFound.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from riskflow.core.config import get_settings
from riskflow.core.errors import NotFound, ValidationError
from riskflow.models.context import RiskCategory, RiskContext
from riskflow.models.reference import OrgUnit
from riskflow.models.risk_assessment import RiskAssessment, RiskAssessmentItem, RiskMitigation
from riskflow.models.worksheet import RiskWorksheet


@dataclass
class PageResult:
    items: Sequence[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def page_window(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    settings = get_settings()
    page = max(page or 1, 1)
    limit = min(max(limit or settings.default_page_size, 1), settings.max_page_size)
    return page, limit


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    scalars: bool = True,
) -> PageResult:
    """Count the filtered statement, then fetch one page of it.

    With ``scalars=False`` the page holds full result rows (for joined
    selects) instead of the first entity of each row.
    """
    page, limit = page_window(page, limit)
    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    windowed = stmt.offset((page - 1) * limit).limit(limit)
    if scalars:
        items = (await db.scalars(windowed)).all()
    else:
        items = (await db.execute(windowed)).all()
    return PageResult(items=items, total=total or 0, page=page, limit=limit)


async def get_or_404(db: AsyncSession, model, ident: str, noun: str):
    obj = await db.get(model, ident)
    if obj is None:
        raise NotFound(f"{noun} not found.")
    return obj


async def load_context(db: AsyncSession, context_id: str) -> RiskContext:
    return await get_or_404(db, RiskContext, context_id, "Risk context")


async def load_category(db: AsyncSession, context: RiskContext, category_id: str) -> RiskCategory:
    category = await db.get(RiskCategory, category_id)
    if category is None or category.context_id != context.id:
        raise NotFound("Risk category not found in this context.")
    return category


async def load_unit(db: AsyncSession, unit_id: str) -> OrgUnit:
    return await get_or_404(db, OrgUnit, unit_id, "Unit kerja")


async def load_worksheet(db: AsyncSession, unit_id: str, worksheet_id: str) -> RiskWorksheet:
    worksheet = await db.get(RiskWorksheet, worksheet_id)
    if worksheet is None or worksheet.unit_id != unit_id:
        raise NotFound("Risk worksheet not found in this unit.")
    return worksheet


async def load_assessment(
    db: AsyncSession, worksheet: RiskWorksheet, assessment_id: str
) -> RiskAssessment:
    assessment = await db.get(RiskAssessment, assessment_id)
    if assessment is None or assessment.worksheet_id != worksheet.id:
        raise NotFound("Risk assessment not found in this worksheet.")
    return assessment


async def load_item(db: AsyncSession, worksheet: RiskWorksheet, item_id: str) -> RiskAssessmentItem:
    item = await db.get(RiskAssessmentItem, item_id)
    if item is None or item.worksheet_id != worksheet.id:
        raise NotFound("Risk item not found in this worksheet.")
    return item


async def load_mitigation(
    db: AsyncSession, item: RiskAssessmentItem, mitigation_id: str
) -> RiskMitigation:
    mitigation = await db.get(RiskMitigation, mitigation_id)
    if mitigation is None or mitigation.item_id != item.id:
        raise NotFound("Risk mitigation not found for this item.")
    return mitigation


async def count_rows(db: AsyncSession, model, *criteria) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(*criteria)) or 0


def check_reason(text: Optional[str], label: str = "Rejection reason") -> str:
    minimum = get_settings().min_rejection_reason_length
    text = (text or "").strip()
    if len(text) < minimum:
        raise ValidationError(f"{label} must be at least {minimum} characters.")
    return text
