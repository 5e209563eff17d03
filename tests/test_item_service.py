"""
Tests for item scoring: derived risk levels, the appetite guard on the
treatment option, reference checks and code allocation.

The seeded context is 3×3 with appetite LOW; (3,3) is CRITICAL, (2,2)
MEDIUM, (1,1) LOW.
"""
import pytest

from conftest import COLLEAGUE, OTHER_UNIT_ID, OWNER, UNIT_ID
from riskflow.core.errors import Forbidden, NotFound, ValidationError
from riskflow.schemas.assessment import ItemUpdate
from riskflow.schemas.enums import RiskLevel, TreatmentOption
from riskflow.services import item_service


class TestScoring:

    async def test_levels_are_derived(self, seed, worksheet):
        item = await seed.item(
            worksheet,
            inherent_likelihood=3,
            inherent_impact=3,
            residual_likelihood=1,
            residual_impact=1,
        )
        assert item.inherent_risk_level == RiskLevel.CRITICAL
        assert item.residual_risk_level == RiskLevel.LOW

    async def test_residual_defaults_to_inherent(self, seed, worksheet):
        item = await seed.item(worksheet, inherent_likelihood=2, inherent_impact=2)
        assert (item.residual_likelihood, item.residual_impact) == (2, 2)
        assert item.residual_risk_level == item.inherent_risk_level == RiskLevel.MEDIUM

    async def test_level_above_matrix_size(self, seed, worksheet):
        with pytest.raises(ValidationError, match="Inherent likelihood must be between 1 and 3"):
            await seed.item(worksheet, inherent_likelihood=4)

    async def test_score_change_recomputes_both_levels(self, seed, db, worksheet):
        item = await seed.item(worksheet, inherent_likelihood=1, inherent_impact=1)
        updated = await item_service.update_item(
            db, OWNER, UNIT_ID, worksheet.id, item.id, ItemUpdate(inherent_likelihood=3, inherent_impact=3)
        )
        assert updated.inherent_risk_level == RiskLevel.CRITICAL
        assert updated.residual_risk_level == RiskLevel.LOW

    async def test_null_score_rejected(self, seed, db, worksheet):
        item = await seed.item(worksheet)
        with pytest.raises(ValidationError, match="Residual impact is required"):
            await item_service.update_item(
                db, OWNER, UNIT_ID, worksheet.id, item.id, ItemUpdate(residual_impact=None)
            )


class TestAppetiteGuard:

    async def test_accept_rejected_above_appetite(self, seed, worksheet):
        """CRITICAL residual against LOW appetite: ACCEPT fails and names both levels."""
        with pytest.raises(ValidationError) as exc:
            await seed.item(
                worksheet,
                inherent_likelihood=3,
                inherent_impact=3,
                treatment_option=TreatmentOption.ACCEPT,
            )
        assert "CRITICAL > LOW" in exc.value.message

    async def test_mitigate_allowed_above_appetite(self, seed, worksheet):
        item = await seed.item(
            worksheet,
            inherent_likelihood=3,
            inherent_impact=3,
            treatment_option=TreatmentOption.MITIGATE,
        )
        assert item.residual_risk_level == RiskLevel.CRITICAL

    async def test_accept_within_appetite(self, seed, worksheet):
        item = await seed.item(
            worksheet,
            inherent_likelihood=1,
            inherent_impact=1,
            treatment_option=TreatmentOption.ACCEPT,
        )
        assert item.treatment_option == TreatmentOption.ACCEPT

    async def test_raising_residual_rechecks_treatment(self, seed, db, worksheet):
        item = await seed.item(
            worksheet, inherent_likelihood=1, inherent_impact=1, treatment_option=TreatmentOption.ACCEPT
        )
        with pytest.raises(ValidationError, match="CRITICAL > LOW"):
            await item_service.update_item(
                db, OWNER, UNIT_ID, worksheet.id, item.id, ItemUpdate(residual_likelihood=3, residual_impact=3)
            )
        assert item.residual_risk_level == RiskLevel.LOW

    async def test_no_appetite_no_constraint(self, seed, db):
        context = await seed.context(appetite=None, activate=True)
        worksheet = await seed.worksheet(context)
        item = await seed.item(
            worksheet, inherent_likelihood=3, inherent_impact=3, treatment_option=TreatmentOption.ACCEPT
        )
        assert item.treatment_option == TreatmentOption.ACCEPT


class TestReferences:

    async def test_unknown_category(self, seed, worksheet):
        with pytest.raises(NotFound):
            await seed.item(worksheet, risk_category_id="missing")

    async def test_category_from_another_context(self, seed, db, active_context, worksheet):
        other = await seed.context(complete=False)
        with pytest.raises(ValidationError, match="worksheet's context"):
            await seed.item(worksheet, risk_category_id=seed.categories[other.id][0])

    async def test_asset_from_another_unit(self, seed, worksheet):
        asset = await seed.asset(unit_id=OTHER_UNIT_ID)
        with pytest.raises(ValidationError, match="worksheet's unit"):
            await seed.item(worksheet, asset_id=asset.id)

    async def test_asset_of_own_unit(self, seed, worksheet):
        asset = await seed.asset()
        item = await seed.item(worksheet, asset_id=asset.id)
        assert item.asset_id == asset.id

    async def test_colleague_cannot_add(self, seed, worksheet):
        with pytest.raises(Forbidden):
            await seed.item(worksheet, caller=COLLEAGUE)


class TestCodes:

    async def test_codes_are_never_reused(self, seed, db, worksheet):
        first = await seed.item(worksheet)
        second = await seed.item(worksheet, risk_name="Vendor failure")
        assert (first.risk_code, second.risk_code) == ("R001", "R002")

        await item_service.delete_item(db, OWNER, UNIT_ID, worksheet.id, second.id)
        third = await seed.item(worksheet, risk_name="Data leak")
        assert third.risk_code == "R003"

    async def test_filter_by_residual_level(self, seed, db, worksheet):
        await seed.item(worksheet, inherent_likelihood=1, inherent_impact=1)
        await seed.item(
            worksheet,
            risk_name="Ransomware",
            inherent_likelihood=3,
            inherent_impact=3,
            treatment_option=TreatmentOption.MITIGATE,
        )
        result = await item_service.list_items(
            db, OWNER, UNIT_ID, worksheet.id, residual_risk_level=RiskLevel.CRITICAL
        )
        assert [i.risk_name for i in result.items] == ["Ransomware"]
