"""
Transition tables for every workflow document.

Each machine maps (current state, action) → next state. Any pair missing
from the table is illegal and raises Forbidden, so the legality rules live
here and nowhere else. Role and ownership rules are separate
(see ``riskflow.workflow.guards``).

Context      INACTIVE ⇄ ACTIVE,  INACTIVE → ARCHIVED
Worksheet    DRAFT → SUBMITTED → APPROVED,  SUBMITTED → DRAFT (reject),
             * → ARCHIVED
Assessment   DRAFT → SUBMITTED → IN_REVIEW → APPROVED | REJECTED,
             SUBMITTED → APPROVED | REJECTED,  REJECTED → DRAFT (reopen),
             * → ARCHIVED
Mitigation   PENDING | REJECTED → VALIDATED (terminal),
             PENDING | REJECTED → REJECTED,  REJECTED → PENDING (resubmit)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Mapping, TypeVar

from riskflow.core.errors import Forbidden
from riskflow.schemas.enums import (
    AssessmentStatus,
    ContextStatus,
    MitigationReviewStatus,
    WorksheetStatus,
)

S = TypeVar("S", bound=Enum)


class Action(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    REOPEN = "reopen"
    ARCHIVE = "archive"
    VALIDATE = "validate"
    RESUBMIT = "resubmit"


@dataclass(frozen=True)
class StateMachine(Generic[S]):
    entity: str
    transitions: Mapping[tuple[S, Action], S]

    def can(self, current: S, action: Action) -> bool:
        return (current, action) in self.transitions

    def next_state(self, current: S, action: Action) -> S:
        try:
            return self.transitions[(current, action)]
        except KeyError:
            raise Forbidden(
                f"Cannot {action.value.replace('_', ' ')} {self.entity} in status {current.value}."
            ) from None

    def allowed_actions(self, current: S) -> list[Action]:
        return [a for (s, a) in self.transitions if s == current]


def _archive_from_all(states: type[S], archived: S) -> dict:
    return {(s, Action.ARCHIVE): archived for s in states if s != archived}


CONTEXT_MACHINE: StateMachine[ContextStatus] = StateMachine(
    entity="context",
    transitions={
        (ContextStatus.INACTIVE, Action.ACTIVATE): ContextStatus.ACTIVE,
        (ContextStatus.ACTIVE, Action.DEACTIVATE): ContextStatus.INACTIVE,
        (ContextStatus.INACTIVE, Action.ARCHIVE): ContextStatus.ARCHIVED,
    },
)

WORKSHEET_MACHINE: StateMachine[WorksheetStatus] = StateMachine(
    entity="worksheet",
    transitions={
        (WorksheetStatus.DRAFT, Action.SUBMIT): WorksheetStatus.SUBMITTED,
        (WorksheetStatus.SUBMITTED, Action.APPROVE): WorksheetStatus.APPROVED,
        (WorksheetStatus.SUBMITTED, Action.REJECT): WorksheetStatus.DRAFT,
        **_archive_from_all(WorksheetStatus, WorksheetStatus.ARCHIVED),
    },
)

ASSESSMENT_MACHINE: StateMachine[AssessmentStatus] = StateMachine(
    entity="assessment",
    transitions={
        (AssessmentStatus.DRAFT, Action.SUBMIT): AssessmentStatus.SUBMITTED,
        (AssessmentStatus.SUBMITTED, Action.START_REVIEW): AssessmentStatus.IN_REVIEW,
        (AssessmentStatus.SUBMITTED, Action.APPROVE): AssessmentStatus.APPROVED,
        (AssessmentStatus.IN_REVIEW, Action.APPROVE): AssessmentStatus.APPROVED,
        (AssessmentStatus.SUBMITTED, Action.REJECT): AssessmentStatus.REJECTED,
        (AssessmentStatus.IN_REVIEW, Action.REJECT): AssessmentStatus.REJECTED,
        (AssessmentStatus.REJECTED, Action.REOPEN): AssessmentStatus.DRAFT,
        **_archive_from_all(AssessmentStatus, AssessmentStatus.ARCHIVED),
    },
)

MITIGATION_MACHINE: StateMachine[MitigationReviewStatus] = StateMachine(
    entity="mitigation",
    transitions={
        (MitigationReviewStatus.PENDING, Action.VALIDATE): MitigationReviewStatus.VALIDATED,
        (MitigationReviewStatus.REJECTED, Action.VALIDATE): MitigationReviewStatus.VALIDATED,
        (MitigationReviewStatus.PENDING, Action.REJECT): MitigationReviewStatus.REJECTED,
        (MitigationReviewStatus.REJECTED, Action.REJECT): MitigationReviewStatus.REJECTED,
        (MitigationReviewStatus.REJECTED, Action.RESUBMIT): MitigationReviewStatus.PENDING,
    },
)

# States in which the owner may edit the document's own fields / children
WORKSHEET_EDITABLE = frozenset({WorksheetStatus.DRAFT})
ASSESSMENT_EDITABLE = frozenset({AssessmentStatus.DRAFT, AssessmentStatus.REJECTED})
MITIGATION_EDITABLE = frozenset({MitigationReviewStatus.PENDING, MitigationReviewStatus.REJECTED})
