"""
Fixed enumerations exposed at the API boundary and stored as strings.
"""
from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    KOMITE_PUSAT = "KOMITE_PUSAT"                     # central committee, the reviewer
    PENGELOLA_RISIKO_UKER = "PENGELOLA_RISIKO_UKER"   # unit risk manager, the owner
    USER = "USER"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def ordinal(self) -> int:
        return _RISK_LEVEL_ORDER[self]


_RISK_LEVEL_ORDER = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class TreatmentOption(str, Enum):
    ACCEPT = "ACCEPT"
    MITIGATE = "MITIGATE"
    TRANSFER = "TRANSFER"
    AVOID = "AVOID"


class ControlEffectiveness(str, Enum):
    EFFECTIVE = "EFFECTIVE"
    PARTIALLY_EFFECTIVE = "PARTIALLY_EFFECTIVE"
    INEFFECTIVE = "INEFFECTIVE"


class ContextStatus(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class WorksheetStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    ARCHIVED = "ARCHIVED"


class AssessmentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class MitigationReviewStatus(str, Enum):
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    VALIDATED = "VALIDATED"


class MitigationStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MitigationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
