"""
Shared fixtures: an in-memory SQLite database with the ``risk_workflow``
schema translated away, the standard callers, and a ``seed`` helper that
builds configuration through the real services.
"""
from __future__ import annotations

from typing import Callable, Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from riskflow.core.auth import Caller
from riskflow.models import context as _context_tables  # noqa: F401
from riskflow.models import risk_assessment as _assessment_tables  # noqa: F401
from riskflow.models import worksheet as _worksheet_tables  # noqa: F401
from riskflow.models.base import SCHEMA, Base
from riskflow.models.reference import Asset, OrgUnit
from riskflow.schemas.assessment import AssessmentCreate, ItemCreate
from riskflow.schemas.context import (
    CategoryCreate, ContextCreate, MatrixBulkCreate, MatrixCellCreate, ScaleCreate,
)
from riskflow.schemas.enums import RiskLevel
from riskflow.schemas.mitigation import MitigationCreate
from riskflow.schemas.worksheet import WorksheetCreate
from riskflow.services import (
    assessment_service,
    category_service,
    context_service,
    item_service,
    matrix_service,
    mitigation_service,
    scale_service,
    worksheet_service,
)

UNIT_ID = "unit-0001"
UNIT_CODE = "UK01"
OTHER_UNIT_ID = "unit-0002"

ADMIN = Caller("admin-1", None, frozenset({"ADMINISTRATOR"}))
REVIEWER = Caller("reviewer-1", None, frozenset({"KOMITE_PUSAT"}))
OWNER = Caller("owner-1", UNIT_ID, frozenset({"PENGELOLA_RISIKO_UKER"}))
COLLEAGUE = Caller("owner-2", UNIT_ID, frozenset({"PENGELOLA_RISIKO_UKER"}))
OUTSIDER = Caller("owner-9", OTHER_UNIT_ID, frozenset({"PENGELOLA_RISIKO_UKER"}))


def default_grid(matrix_size: int) -> Callable[[int, int], RiskLevel]:
    """l·i / N²: ≤¼ LOW, ≤½ MEDIUM, ≤¾ HIGH, else CRITICAL. For N=3, (3,3) is CRITICAL."""
    def level(likelihood: int, impact: int) -> RiskLevel:
        ratio = likelihood * impact / matrix_size ** 2
        if ratio <= 0.25:
            return RiskLevel.LOW
        if ratio <= 0.5:
            return RiskLevel.MEDIUM
        if ratio <= 0.75:
            return RiskLevel.HIGH
        return RiskLevel.CRITICAL
    return level


class Seed:
    def __init__(self, db):
        self.db = db
        self.categories: dict[str, list[str]] = {}
        self._periods = iter(range(2001, 2100, 2))

    async def unit(self, unit_id: str = UNIT_ID, code: str = UNIT_CODE) -> OrgUnit:
        unit = OrgUnit(id=unit_id, code=code, name=f"Unit {code}")
        self.db.add(unit)
        await self.db.commit()
        return unit

    async def asset(self, unit_id: str = UNIT_ID, name: str = "Core banking server") -> Asset:
        asset = Asset(unit_id=unit_id, name=name)
        self.db.add(asset)
        await self.db.commit()
        return asset

    async def context(
        self,
        matrix_size: int = 3,
        appetite: Optional[RiskLevel] = RiskLevel.LOW,
        categories: tuple[str, ...] = ("Operational",),
        complete: bool = True,
        activate: bool = False,
        code: Optional[str] = None,
    ):
        start = next(self._periods)
        context = await context_service.create_context(
            self.db,
            ADMIN,
            ContextCreate(
                name=f"Risk context {start}",
                code=code or f"CTX-{start}",
                period_start=start,
                period_end=start + 1,
                matrix_size=matrix_size,
                risk_appetite_level=appetite,
            ),
        )
        self.categories[context.id] = []
        for order, name in enumerate(categories):
            category = await category_service.create_category(
                self.db, ADMIN, context.id, CategoryCreate(name=name, order=order)
            )
            self.categories[context.id].append(category.id)
            if complete:
                await self.scales(context.id, category.id, "likelihood", matrix_size)
                await self.scales(context.id, category.id, "impact", matrix_size)
        if complete:
            await self.matrix(context.id, matrix_size)
        if activate:
            context = await context_service.activate_context(self.db, ADMIN, context.id)
        return context

    async def scales(self, context_id: str, category_id: str, kind: str, count: int) -> None:
        for level in range(1, count + 1):
            await scale_service.create_scale(
                self.db,
                ADMIN,
                kind,
                context_id,
                category_id,
                ScaleCreate(level=level, label=f"{kind} {level}"),
            )

    async def matrix(self, context_id: str, matrix_size: int, grid=None) -> None:
        grid = grid or default_grid(matrix_size)
        cells = [
            MatrixCellCreate(likelihood_level=l, impact_level=i, risk_level=grid(l, i))
            for l in range(1, matrix_size + 1)
            for i in range(1, matrix_size + 1)
        ]
        await matrix_service.bulk_create_cells(self.db, ADMIN, context_id, MatrixBulkCreate(cells=cells))

    async def worksheet(self, context, caller: Caller = OWNER, name: str = "Register 2025"):
        return await worksheet_service.create_worksheet(
            self.db, caller, caller.unit_id, WorksheetCreate(context_id=context.id, name=name)
        )

    async def item(self, worksheet, caller: Caller = OWNER, **overrides):
        fields = {
            "risk_name": "Core system outage",
            "risk_category_id": self.categories[worksheet.context_id][0],
            "inherent_likelihood": 2,
            "inherent_impact": 2,
        }
        fields.update(overrides)
        return await item_service.create_item(
            self.db, caller, worksheet.unit_id, worksheet.id, ItemCreate(**fields)
        )

    async def assessment(self, worksheet, caller: Caller = OWNER, name: str = "Q1 assessment"):
        return await assessment_service.create_assessment(
            self.db, caller, worksheet.unit_id, worksheet.id, AssessmentCreate(name=name)
        )

    async def mitigation(self, worksheet, item, caller: Caller = OWNER, **overrides):
        fields = {"name": "Add a standby data centre"}
        fields.update(overrides)
        return await mitigation_service.create_mitigation(
            self.db, caller, worksheet.unit_id, worksheet.id, item.id, MitigationCreate(**fields)
        )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(db):
    seed = Seed(db)
    await seed.unit()
    await seed.unit(OTHER_UNIT_ID, "UK02")
    return seed


@pytest.fixture
async def active_context(seed):
    """N=3, appetite LOW, one complete category, ACTIVE."""
    return await seed.context(activate=True)


@pytest.fixture
async def worksheet(seed, active_context):
    return await seed.worksheet(active_context)
