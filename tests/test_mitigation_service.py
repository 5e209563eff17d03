"""
Tests for mitigation review: code allocation, immutability once
validated, residual carry-over onto the item and the reviewer queue.
"""
from datetime import date

import pytest

from conftest import OTHER_UNIT_ID, OUTSIDER, OWNER, REVIEWER, UNIT_ID
from riskflow.core.errors import Forbidden, ValidationError
from riskflow.schemas.enums import (
    MitigationPriority,
    MitigationReviewStatus,
    RiskLevel,
    TreatmentOption,
)
from riskflow.schemas.mitigation import MitigationUpdate
from riskflow.services import mitigation_service, worksheet_service

NOTES = "Timeline is unrealistic for this quarter."


@pytest.fixture
async def item(seed, worksheet):
    return await seed.item(
        worksheet, inherent_likelihood=3, inherent_impact=3, treatment_option=TreatmentOption.MITIGATE
    )


def _ids(worksheet, item, mitigation):
    return UNIT_ID, worksheet.id, item.id, mitigation.id


class TestCreateMitigation:

    async def test_codes_are_never_reused(self, seed, db, worksheet, item):
        """M001, M002, delete M001, next is M003."""
        first = await seed.mitigation(worksheet, item)
        second = await seed.mitigation(worksheet, item, name="Second supplier")
        assert (first.code, second.code) == ("M001", "M002")

        await mitigation_service.delete_mitigation(db, OWNER, *_ids(worksheet, item, first))
        third = await seed.mitigation(worksheet, item, name="Offsite backups")
        assert third.code == "M003"

    async def test_starts_pending(self, seed, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        assert mitigation.review_status == MitigationReviewStatus.PENDING
        assert mitigation.is_validated is False
        assert mitigation.priority == MitigationPriority.MEDIUM

    async def test_proposed_residual_is_scored(self, seed, worksheet, item):
        mitigation = await seed.mitigation(
            worksheet, item, proposed_residual_likelihood=1, proposed_residual_impact=1
        )
        assert mitigation.proposed_residual_risk_level == RiskLevel.LOW

    async def test_proposed_residual_needs_both_scores(self, seed, worksheet, item):
        with pytest.raises(ValidationError, match="together"):
            await seed.mitigation(worksheet, item, proposed_residual_likelihood=1)

    async def test_end_before_start(self, seed, worksheet, item):
        with pytest.raises(ValidationError, match="Planned end date"):
            await seed.mitigation(
                worksheet,
                item,
                planned_start_date=date(2025, 6, 1),
                planned_end_date=date(2025, 5, 1),
            )


class TestValidation:

    async def test_validate_copies_residual_onto_item(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(
            worksheet, item, proposed_residual_likelihood=1, proposed_residual_impact=1
        )
        validated = await mitigation_service.validate_mitigation(
            db, REVIEWER, *_ids(worksheet, item, mitigation), "Approved plan"
        )
        assert validated.review_status == MitigationReviewStatus.VALIDATED
        assert validated.is_validated is True
        assert validated.validated_by == REVIEWER.user_id
        assert (item.residual_likelihood, item.residual_impact) == (1, 1)
        assert item.residual_risk_level == RiskLevel.LOW

    async def test_validated_mitigation_is_immutable(self, seed, db, worksheet, item):
        """Update, delete, validate and reject all fail once VALIDATED."""
        mitigation = await seed.mitigation(worksheet, item)
        ids = _ids(worksheet, item, mitigation)
        await mitigation_service.validate_mitigation(db, REVIEWER, *ids)

        with pytest.raises(Forbidden, match="status VALIDATED"):
            await mitigation_service.update_mitigation(
                db, OWNER, *ids, MitigationUpdate(progress_percentage=50)
            )
        with pytest.raises(Forbidden):
            await mitigation_service.delete_mitigation(db, OWNER, *ids)
        with pytest.raises(Forbidden):
            await mitigation_service.validate_mitigation(db, REVIEWER, *ids)
        with pytest.raises(Forbidden):
            await mitigation_service.reject_mitigation(db, REVIEWER, *ids, NOTES)

    async def test_validation_rechecks_treatment(self, seed, db, worksheet):
        """An ACCEPTed item cannot take a proposed residual above appetite; nothing is written."""
        item = await seed.item(
            worksheet, inherent_likelihood=1, inherent_impact=1, treatment_option=TreatmentOption.ACCEPT
        )
        mitigation = await seed.mitigation(
            worksheet, item, proposed_residual_likelihood=3, proposed_residual_impact=3
        )
        with pytest.raises(ValidationError, match="CRITICAL > LOW"):
            await mitigation_service.validate_mitigation(db, REVIEWER, *_ids(worksheet, item, mitigation))
        assert mitigation.review_status == MitigationReviewStatus.PENDING
        assert item.residual_risk_level == RiskLevel.LOW

    async def test_owner_cannot_validate(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        with pytest.raises(Forbidden, match="KOMITE_PUSAT"):
            await mitigation_service.validate_mitigation(db, OWNER, *_ids(worksheet, item, mitigation))

    async def test_reject_and_resubmit(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        ids = _ids(worksheet, item, mitigation)

        rejected = await mitigation_service.reject_mitigation(db, REVIEWER, *ids, NOTES)
        assert rejected.review_status == MitigationReviewStatus.REJECTED
        assert rejected.validation_notes == NOTES

        resubmitted = await mitigation_service.resubmit_mitigation(db, OWNER, *ids)
        assert resubmitted.review_status == MitigationReviewStatus.PENDING
        assert resubmitted.validation_notes is None

    async def test_reject_needs_notes(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        with pytest.raises(ValidationError, match="Rejection notes"):
            await mitigation_service.reject_mitigation(db, REVIEWER, *_ids(worksheet, item, mitigation), "short")

    async def test_resubmit_needs_draft_worksheet(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        ids = _ids(worksheet, item, mitigation)
        await mitigation_service.reject_mitigation(db, REVIEWER, *ids, NOTES)
        await worksheet_service.submit_worksheet(db, OWNER, UNIT_ID, worksheet.id)

        with pytest.raises(Forbidden, match="status SUBMITTED"):
            await mitigation_service.resubmit_mitigation(db, OWNER, *ids)
        assert mitigation.review_status == MitigationReviewStatus.REJECTED

    async def test_resubmit_pending_is_forbidden(self, seed, db, worksheet, item):
        mitigation = await seed.mitigation(worksheet, item)
        with pytest.raises(Forbidden):
            await mitigation_service.resubmit_mitigation(db, OWNER, *_ids(worksheet, item, mitigation))


class TestPendingQueue:

    async def test_lists_unvalidated_across_units(self, seed, db, active_context, worksheet, item):
        first = await seed.mitigation(worksheet, item, priority=MitigationPriority.HIGH)
        await seed.mitigation(worksheet, item, name="Low priority fix", priority=MitigationPriority.LOW)
        done = await seed.mitigation(worksheet, item, name="Already done")
        await mitigation_service.validate_mitigation(db, REVIEWER, *_ids(worksheet, item, done))

        other_ws = await seed.worksheet(active_context, caller=OUTSIDER)
        other_item = await seed.item(other_ws, caller=OUTSIDER)
        await seed.mitigation(other_ws, other_item, caller=OUTSIDER)

        everything = await mitigation_service.list_pending(db, REVIEWER)
        assert everything.total == 3

        high = await mitigation_service.list_pending(db, REVIEWER, priority=MitigationPriority.HIGH)
        assert [m["code"] for m in high.items] == [first.code]
        assert high.items[0]["unit_id"] == UNIT_ID
        assert high.items[0]["risk_code"] == item.risk_code

        other = await mitigation_service.list_pending(db, REVIEWER, unit_id=OTHER_UNIT_ID)
        assert other.total == 1

    async def test_only_reviewers(self, db):
        with pytest.raises(Forbidden):
            await mitigation_service.list_pending(db, OWNER)
