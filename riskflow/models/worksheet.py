"""
Risk worksheet — the per-unit, per-context container of assessed risks.
"""
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint

from riskflow.models.base import AuthorMixin, Base, TimestampMixin, fk, new_id
from riskflow.schemas.enums import WorksheetStatus


class RiskWorksheet(TimestampMixin, AuthorMixin, Base):
    __tablename__ = "risk_worksheet"
    __table_args__ = (
        UniqueConstraint("unit_id", "context_id", "name", name="uq_risk_worksheet_name"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    unit_id = Column(String(36), ForeignKey(fk("unit_kerja.id")), nullable=False, index=True)
    context_id = Column(String(36), ForeignKey(fk("konteks.id")), nullable=False, index=True)
    owner_id = Column(String(100), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(WorksheetStatus, native_enum=False, length=20),
        nullable=False,
        default=WorksheetStatus.DRAFT,
    )

    # ── Submission / review stamps ──
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String(100), nullable=True)
    submission_notes = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approval_notes = Column(Text, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(100), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # ── Code counters (monotonic, never decremented) ──
    item_sequence = Column(Integer, nullable=False, default=0)
    assessment_sequence = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<RiskWorksheet {self.name} status={self.status}>"
