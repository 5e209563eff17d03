"""
Risk assessments, the risk items scored inside a worksheet, and the
mitigations attached to each item.
"""
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint,
)

from riskflow.models.base import AuthorMixin, Base, TimestampMixin, fk, new_id
from riskflow.schemas.enums import (
    AssessmentStatus,
    ControlEffectiveness,
    MitigationPriority,
    MitigationReviewStatus,
    MitigationStatus,
    RiskLevel,
    TreatmentOption,
)


class RiskAssessment(TimestampMixin, AuthorMixin, Base):
    __tablename__ = "risk_assessment"
    __table_args__ = (UniqueConstraint("worksheet_id", "code", name="uq_risk_assessment_code"),)

    id = Column(String(36), primary_key=True, default=new_id)
    worksheet_id = Column(
        String(36), ForeignKey(fk("risk_worksheet.id"), ondelete="CASCADE"), nullable=False, index=True,
    )
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    assessment_date = Column(Date, nullable=True)
    status = Column(
        Enum(AssessmentStatus, native_enum=False, length=20),
        nullable=False,
        default=AssessmentStatus.DRAFT,
    )

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(100), nullable=True)
    review_notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<RiskAssessment {self.code} status={self.status}>"


class RiskAssessmentItem(TimestampMixin, AuthorMixin, Base):
    __tablename__ = "risk_assessment_item"
    __table_args__ = (UniqueConstraint("worksheet_id", "risk_code", name="uq_risk_item_code"),)

    id = Column(String(36), primary_key=True, default=new_id)
    worksheet_id = Column(
        String(36), ForeignKey(fk("risk_worksheet.id"), ondelete="CASCADE"), nullable=False, index=True,
    )
    assessment_id = Column(
        String(36), ForeignKey(fk("risk_assessment.id"), ondelete="SET NULL"), nullable=True, index=True,
    )
    risk_code = Column(String(20), nullable=False)
    risk_name = Column(String(255), nullable=False)
    risk_description = Column(Text, nullable=True)
    weakness_description = Column(Text, nullable=True)
    threat_description = Column(Text, nullable=True)
    impact_description = Column(Text, nullable=True)

    risk_category_id = Column(String(36), ForeignKey(fk("risk_category.id")), nullable=False)
    asset_id = Column(String(36), ForeignKey(fk("asset.id")), nullable=True)

    # ── Inherent risk ──
    inherent_likelihood = Column(Integer, nullable=False)
    inherent_impact = Column(Integer, nullable=False)
    inherent_risk_level = Column(Enum(RiskLevel, native_enum=False, length=20), nullable=False)

    # ── Controls ──
    existing_controls = Column(Text, nullable=True)
    control_effectiveness = Column(Enum(ControlEffectiveness, native_enum=False, length=30), nullable=True)

    # ── Residual risk ──
    residual_likelihood = Column(Integer, nullable=False)
    residual_impact = Column(Integer, nullable=False)
    residual_risk_level = Column(Enum(RiskLevel, native_enum=False, length=20), nullable=False)

    # ── Treatment ──
    treatment_option = Column(Enum(TreatmentOption, native_enum=False, length=20), nullable=True)
    treatment_rationale = Column(Text, nullable=True)
    risk_priority_rank = Column(Integer, nullable=True)
    order = Column(Integer, nullable=False, default=0)

    mitigation_sequence = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<RiskAssessmentItem {self.risk_code} residual={self.residual_risk_level}>"


class RiskMitigation(TimestampMixin, AuthorMixin, Base):
    __tablename__ = "risk_mitigation"
    __table_args__ = (UniqueConstraint("item_id", "code", name="uq_risk_mitigation_code"),)

    id = Column(String(36), primary_key=True, default=new_id)
    item_id = Column(
        String(36), ForeignKey(fk("risk_assessment_item.id"), ondelete="CASCADE"), nullable=False, index=True,
    )
    code = Column(String(20), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(
        Enum(MitigationPriority, native_enum=False, length=20),
        nullable=False,
        default=MitigationPriority.MEDIUM,
    )
    status = Column(
        Enum(MitigationStatus, native_enum=False, length=20),
        nullable=False,
        default=MitigationStatus.PLANNED,
    )

    planned_start_date = Column(Date, nullable=True)
    planned_end_date = Column(Date, nullable=True)
    actual_start_date = Column(Date, nullable=True)
    actual_end_date = Column(Date, nullable=True)
    responsible_person = Column(String(255), nullable=True)
    responsible_unit = Column(String(255), nullable=True)
    progress_percentage = Column(Integer, nullable=False, default=0)
    progress_notes = Column(Text, nullable=True)

    # ── Proposed residual risk once the action is done ──
    proposed_residual_likelihood = Column(Integer, nullable=True)
    proposed_residual_impact = Column(Integer, nullable=True)
    proposed_residual_risk_level = Column(Enum(RiskLevel, native_enum=False, length=20), nullable=True)

    # ── Central validation ──
    review_status = Column(
        Enum(MitigationReviewStatus, native_enum=False, length=20),
        nullable=False,
        default=MitigationReviewStatus.PENDING,
        index=True,
    )
    is_validated = Column(Boolean, nullable=False, default=False, index=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    validated_by = Column(String(100), nullable=True)
    validation_notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<RiskMitigation {self.code} review={self.review_status}>"
