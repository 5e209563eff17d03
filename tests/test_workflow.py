"""
Tests for the transition tables and authorization guards.
Pure functions, no database needed.
"""
import pytest

from riskflow.core.auth import Caller
from riskflow.core.errors import Forbidden
from riskflow.schemas.enums import (
    AssessmentStatus,
    ContextStatus,
    MitigationReviewStatus,
    WorksheetStatus,
)
from riskflow.workflow.guards import (
    REVIEW,
    enforce,
    has_role,
    in_states,
    is_owner,
    unit_member,
)
from riskflow.workflow.states import (
    ASSESSMENT_MACHINE,
    CONTEXT_MACHINE,
    MITIGATION_MACHINE,
    WORKSHEET_MACHINE,
    Action,
)


class _Doc:
    def __init__(self, **attrs):
        self.__dict__.update(attrs)


def _make_caller(roles=("PENGELOLA_RISIKO_UKER",), user_id="owner-1", unit_id="unit-1"):
    return Caller(user_id, unit_id, frozenset(roles))


# ═══════════════════════════════════════════════════════════════
# Transition tables
# ═══════════════════════════════════════════════════════════════

class TestContextMachine:

    def test_activate_and_deactivate(self):
        assert CONTEXT_MACHINE.next_state(ContextStatus.INACTIVE, Action.ACTIVATE) == ContextStatus.ACTIVE
        assert CONTEXT_MACHINE.next_state(ContextStatus.ACTIVE, Action.DEACTIVATE) == ContextStatus.INACTIVE

    def test_archive_only_from_inactive(self):
        assert CONTEXT_MACHINE.next_state(ContextStatus.INACTIVE, Action.ARCHIVE) == ContextStatus.ARCHIVED
        assert not CONTEXT_MACHINE.can(ContextStatus.ACTIVE, Action.ARCHIVE)

    def test_archived_is_terminal(self):
        """No action leaves ARCHIVED."""
        assert CONTEXT_MACHINE.allowed_actions(ContextStatus.ARCHIVED) == []


class TestWorksheetMachine:

    def test_happy_path(self):
        s = WORKSHEET_MACHINE.next_state(WorksheetStatus.DRAFT, Action.SUBMIT)
        assert s == WorksheetStatus.SUBMITTED
        assert WORKSHEET_MACHINE.next_state(s, Action.APPROVE) == WorksheetStatus.APPROVED

    def test_reject_returns_to_draft(self):
        assert WORKSHEET_MACHINE.next_state(WorksheetStatus.SUBMITTED, Action.REJECT) == WorksheetStatus.DRAFT

    def test_archive_from_every_live_state(self):
        for status in (WorksheetStatus.DRAFT, WorksheetStatus.SUBMITTED, WorksheetStatus.APPROVED):
            assert WORKSHEET_MACHINE.next_state(status, Action.ARCHIVE) == WorksheetStatus.ARCHIVED

    def test_archive_twice_is_forbidden(self):
        with pytest.raises(Forbidden, match="Cannot archive worksheet in status ARCHIVED"):
            WORKSHEET_MACHINE.next_state(WorksheetStatus.ARCHIVED, Action.ARCHIVE)

    def test_approve_draft_is_forbidden(self):
        with pytest.raises(Forbidden):
            WORKSHEET_MACHINE.next_state(WorksheetStatus.DRAFT, Action.APPROVE)


class TestAssessmentMachine:

    def test_review_may_be_skipped(self):
        """SUBMITTED can be approved or rejected without an IN_REVIEW step."""
        assert ASSESSMENT_MACHINE.can(AssessmentStatus.SUBMITTED, Action.APPROVE)
        assert ASSESSMENT_MACHINE.can(AssessmentStatus.SUBMITTED, Action.REJECT)

    def test_rejected_only_reopens_or_archives(self):
        assert set(ASSESSMENT_MACHINE.allowed_actions(AssessmentStatus.REJECTED)) == {
            Action.REOPEN,
            Action.ARCHIVE,
        }

    def test_start_review_message(self):
        with pytest.raises(Forbidden, match="Cannot start review assessment in status DRAFT"):
            ASSESSMENT_MACHINE.next_state(AssessmentStatus.DRAFT, Action.START_REVIEW)


class TestMitigationMachine:

    def test_validated_is_terminal(self):
        assert MITIGATION_MACHINE.allowed_actions(MitigationReviewStatus.VALIDATED) == []

    def test_rejected_can_be_validated_directly(self):
        assert (
            MITIGATION_MACHINE.next_state(MitigationReviewStatus.REJECTED, Action.VALIDATE)
            == MitigationReviewStatus.VALIDATED
        )

    def test_resubmit_only_from_rejected(self):
        assert not MITIGATION_MACHINE.can(MitigationReviewStatus.PENDING, Action.RESUBMIT)


# ═══════════════════════════════════════════════════════════════
# Guards
# ═══════════════════════════════════════════════════════════════

class TestGuards:

    def test_has_role(self):
        guard = has_role("KOMITE_PUSAT")
        assert guard(_make_caller(roles=("KOMITE_PUSAT",)), None) is None
        assert "Requires role: KOMITE_PUSAT" in guard(_make_caller(), None)

    def test_is_owner_compares_attribute(self):
        guard = is_owner(attr="created_by", noun="assessment creator")
        doc = _Doc(created_by="owner-1")
        assert guard(_make_caller(), doc) is None
        assert "assessment creator" in guard(_make_caller(user_id="owner-2"), doc)

    def test_in_states_lists_allowed(self):
        guard = in_states(WorksheetStatus.DRAFT, noun="worksheet")
        failure = guard(_make_caller(), _Doc(status=WorksheetStatus.SUBMITTED))
        assert failure == "The worksheet cannot be changed in status SUBMITTED (allowed: DRAFT)."

    def test_unit_member(self):
        guard = unit_member()
        assert guard(_make_caller(), _Doc(unit_id="unit-1")) is None
        assert guard(_make_caller(unit_id="unit-2"), _Doc(unit_id="unit-1")) is not None

    def test_unit_member_without_unit_is_denied(self):
        guard = unit_member()
        assert guard(_make_caller(unit_id=None), _Doc(unit_id=None)) is not None

    def test_reviewer_reads_across_units(self):
        reviewer = _make_caller(roles=("KOMITE_PUSAT",), unit_id=None)
        assert unit_member(allow_reviewer=True)(reviewer, _Doc(unit_id="unit-1")) is None
        assert unit_member()(reviewer, _Doc(unit_id="unit-1")) is not None

    def test_enforce_raises_first_failure(self):
        guards = REVIEW + (is_owner(),)
        with pytest.raises(Forbidden, match="Requires role"):
            enforce(_make_caller(), _Doc(owner_id="someone"), guards)

    def test_enforce_passes(self):
        enforce(_make_caller(), _Doc(owner_id="owner-1"), (is_owner(),))
