"""
Tests for context configuration: creation rules, activation readiness,
the single-active rule and the configuration lock on live contexts.
"""
import pytest

from conftest import ADMIN, OWNER, REVIEWER
from riskflow.core.errors import Conflict, Forbidden, NotFound, ValidationError
from riskflow.schemas.context import (
    CategoryCreate,
    ContextCreate,
    ContextUpdate,
    MatrixBulkCreate,
    MatrixCellCreate,
    ScaleCreate,
)
from riskflow.schemas.enums import ContextStatus, RiskLevel
from riskflow.services import (
    category_service,
    context_service,
    matrix_service,
    scale_service,
)


def _make_context(**overrides):
    fields = {
        "name": "Risk context 2030",
        "code": "CTX-2030",
        "period_start": 2030,
        "period_end": 2031,
        "matrix_size": 5,
    }
    fields.update(overrides)
    return ContextCreate(**fields)


def _cell(l, i, level=RiskLevel.LOW):
    return MatrixCellCreate(likelihood_level=l, impact_level=i, risk_level=level)


class TestCreateContext:

    async def test_new_context_is_inactive(self, db):
        context = await context_service.create_context(db, ADMIN, _make_context())
        assert context.status == ContextStatus.INACTIVE
        assert context.created_by == ADMIN.user_id
        assert context.version == 1

    async def test_reviewer_may_configure(self, db):
        await context_service.create_context(db, REVIEWER, _make_context())

    async def test_owner_may_not_configure(self, db):
        with pytest.raises(Forbidden):
            await context_service.create_context(db, OWNER, _make_context())

    async def test_duplicate_code(self, db):
        await context_service.create_context(db, ADMIN, _make_context())
        with pytest.raises(Conflict, match="CTX-2030"):
            await context_service.create_context(
                db, ADMIN, _make_context(period_start=2040, period_end=2041)
            )

    async def test_overlapping_period(self, db):
        """Year ranges are inclusive: 2030-2031 and 2031-2032 overlap."""
        await context_service.create_context(db, ADMIN, _make_context())
        with pytest.raises(Conflict, match="overlaps"):
            await context_service.create_context(
                db, ADMIN, _make_context(code="CTX-2031", period_start=2031, period_end=2032)
            )

    async def test_period_end_before_start(self, db):
        with pytest.raises(ValidationError, match="Period end"):
            await context_service.create_context(
                db, ADMIN, _make_context(period_start=2031, period_end=2030)
            )


class TestReadiness:

    async def test_missing_impact_scales_are_named(self, seed, db):
        """N=5 with 5 likelihood but only 2 impact scales: activation lists exactly what's missing."""
        context = await seed.context(matrix_size=5, complete=False)
        category_id = seed.categories[context.id][0]
        await seed.scales(context.id, category_id, "likelihood", 5)
        await seed.scales(context.id, category_id, "impact", 2)
        await seed.matrix(context.id, 5)

        with pytest.raises(ValidationError) as exc:
            await context_service.activate_context(db, ADMIN, context.id)
        assert exc.value.details == ['Category "Operational" has 2 impact scales, needs 5']
        assert "has 2 impact scales, needs 5" in exc.value.message

        reloaded = await context_service.get_context(db, context.id)
        assert reloaded.status == ContextStatus.INACTIVE

    async def test_every_gap_reported(self, seed, db):
        context = await seed.context(matrix_size=3, complete=False, categories=())
        readiness = await context_service.get_readiness(db, context.id)
        assert not readiness.is_complete
        assert readiness.missing == [
            "Context has no risk categories, needs at least 1",
            "Risk matrix has 0 cells, needs 9",
        ]

    async def test_complete_context(self, seed, db):
        context = await seed.context(categories=("Operational", "IT"))
        readiness = await context_service.get_readiness(db, context.id)
        assert readiness.is_complete
        assert readiness.matrix_cells == readiness.expected_matrix_cells == 9
        assert [c.impact_scales for c in readiness.categories] == [3, 3]


class TestActivation:

    async def test_single_active_context(self, seed, db):
        """Activating B demotes A; exactly one context stays ACTIVE."""
        first = await seed.context(activate=True)
        second = await seed.context()

        await context_service.activate_context(db, ADMIN, second.id)

        assert (await context_service.get_context(db, first.id)).status == ContextStatus.INACTIVE
        assert (await context_service.get_context(db, second.id)).status == ContextStatus.ACTIVE
        active = await context_service.list_contexts(db, status=ContextStatus.ACTIVE)
        assert active.total == 1

    async def test_activate_twice_conflicts(self, seed, db):
        context = await seed.context(activate=True)
        with pytest.raises(Conflict, match="already active"):
            await context_service.activate_context(db, ADMIN, context.id)

    async def test_archived_cannot_activate(self, seed, db):
        context = await seed.context()
        await context_service.archive_context(db, ADMIN, context.id)
        with pytest.raises(Forbidden):
            await context_service.activate_context(db, ADMIN, context.id)

    async def test_archive_active_is_forbidden(self, seed, db):
        context = await seed.context(activate=True)
        with pytest.raises(Forbidden, match="Deactivate it before archiving"):
            await context_service.archive_context(db, ADMIN, context.id)

    async def test_deactivate_then_archive(self, seed, db):
        context = await seed.context(activate=True)
        await context_service.deactivate_context(db, ADMIN, context.id)
        archived = await context_service.archive_context(db, ADMIN, context.id)
        assert archived.status == ContextStatus.ARCHIVED

    async def test_unknown_context(self, db):
        with pytest.raises(NotFound):
            await context_service.activate_context(db, ADMIN, "missing")


class TestConfigurationLock:

    async def test_active_context_rejects_new_category(self, seed, db):
        context = await seed.context(activate=True)
        with pytest.raises(Forbidden, match="Deactivate it"):
            await category_service.create_category(
                db, ADMIN, context.id, CategoryCreate(name="Fraud", order=5)
            )

    async def test_active_context_rejects_update(self, seed, db):
        context = await seed.context(activate=True)
        with pytest.raises(Forbidden):
            await context_service.update_context(db, ADMIN, context.id, ContextUpdate(name="Renamed"))

    async def test_matrix_size_locked_once_levels_exist(self, seed, db):
        context = await seed.context()
        with pytest.raises(Forbidden, match="Matrix size"):
            await context_service.update_context(db, ADMIN, context.id, ContextUpdate(matrix_size=4))

    async def test_matrix_size_changes_on_empty_context(self, seed, db):
        context = await seed.context(complete=False, categories=())
        updated = await context_service.update_context(db, ADMIN, context.id, ContextUpdate(matrix_size=4))
        assert updated.matrix_size == 4
        assert updated.version == 2

    async def test_empty_update(self, seed, db):
        context = await seed.context(complete=False)
        with pytest.raises(ValidationError, match="At least one field"):
            await context_service.update_context(db, ADMIN, context.id, ContextUpdate())


class TestScales:

    async def test_level_beyond_matrix_size(self, seed, db):
        context = await seed.context(complete=False)
        category_id = seed.categories[context.id][0]
        with pytest.raises(ValidationError):
            await scale_service.create_scale(
                db, ADMIN, "impact", context.id, category_id, ScaleCreate(level=4, label="Severe")
            )

    async def test_duplicate_level(self, seed, db):
        context = await seed.context(complete=False)
        category_id = seed.categories[context.id][0]
        await scale_service.create_scale(
            db, ADMIN, "likelihood", context.id, category_id, ScaleCreate(level=1, label="Rare")
        )
        with pytest.raises(Conflict):
            await scale_service.create_scale(
                db, ADMIN, "likelihood", context.id, category_id, ScaleCreate(level=1, label="Again")
            )

    async def test_category_of_another_context(self, seed, db):
        first = await seed.context(complete=False)
        second = await seed.context(complete=False)
        with pytest.raises(NotFound):
            await scale_service.create_scale(
                db, ADMIN, "impact", second.id, seed.categories[first.id][0], ScaleCreate(level=1, label="Minor")
            )

    async def test_unknown_kind(self, seed, db):
        context = await seed.context(complete=False)
        with pytest.raises(NotFound, match="Unknown scale kind"):
            await scale_service.list_scales(db, "severity", context.id, seed.categories[context.id][0])

    async def test_delete_category_removes_scales(self, seed, db):
        context = await seed.context()
        category_id = seed.categories[context.id][0]
        await category_service.delete_category(db, ADMIN, context.id, category_id)
        readiness = await context_service.get_readiness(db, context.id)
        assert readiness.categories == []


class TestBulkMatrix:

    async def test_reports_every_bad_cell(self, seed, db):
        context = await seed.context(complete=False)
        cells = [_cell(1, 1), _cell(1, 1), _cell(4, 1), _cell(2, 2)]
        with pytest.raises(ValidationError) as exc:
            await matrix_service.bulk_create_cells(db, ADMIN, context.id, MatrixBulkCreate(cells=cells))
        assert exc.value.details == [
            "cells[1]: duplicate of cells[0] (likelihood 1, impact 1)",
            "cells[2]: likelihood level 4 is outside 1..3",
        ]
        assert await matrix_service.list_cells(db, context.id) == []

    async def test_clash_with_stored_cells(self, seed, db):
        context = await seed.context(complete=False)
        await matrix_service.create_cell(db, ADMIN, context.id, _cell(1, 1))
        with pytest.raises(Conflict) as exc:
            await matrix_service.bulk_create_cells(
                db, ADMIN, context.id, MatrixBulkCreate(cells=[_cell(1, 1), _cell(1, 2)])
            )
        assert exc.value.details == ["likelihood 1, impact 1"]

    async def test_completeness_summary(self, seed, db):
        context = await seed.context(complete=False)
        result = await matrix_service.bulk_create_cells(
            db, ADMIN, context.id, MatrixBulkCreate(cells=[_cell(1, 1), _cell(1, 2)])
        )
        assert len(result.created) == 2
        assert (result.total_cells, result.expected_cells, result.is_complete) == (2, 9, False)

    async def test_filter_by_level(self, seed, db):
        context = await seed.context()
        critical = await matrix_service.list_cells(db, context.id, risk_level=RiskLevel.CRITICAL)
        assert [(c.likelihood_level, c.impact_level) for c in critical] == [(3, 3)]
