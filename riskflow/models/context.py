"""
Risk context configuration: the context itself, its categories, the
per-category likelihood/impact scales and the likelihood×impact matrix.
"""
from sqlalchemy import (
    Column, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text,
)

from riskflow.models.base import AuthorMixin, Base, TimestampMixin, fk, new_id
from riskflow.schemas.enums import ContextStatus, RiskLevel


class RiskContext(TimestampMixin, AuthorMixin, Base):
    __tablename__ = "konteks"
    __table_args__ = (
        # At most one ACTIVE context system-wide; a racing second activation fails on commit
        Index(
            "uq_konteks_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    code = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    period_start = Column(Integer, nullable=False)
    period_end = Column(Integer, nullable=False)
    matrix_size = Column(Integer, nullable=False)
    risk_appetite_level = Column(Enum(RiskLevel, native_enum=False, length=20), nullable=True)
    risk_appetite_description = Column(Text, nullable=True)
    status = Column(
        Enum(ContextStatus, native_enum=False, length=20),
        nullable=False,
        default=ContextStatus.INACTIVE,
    )
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<RiskContext {self.code} status={self.status}>"


class RiskCategory(TimestampMixin, Base):
    __tablename__ = "risk_category"
    __table_args__ = (
        UniqueConstraint("context_id", "name", name="uq_risk_category_name"),
        UniqueConstraint("context_id", "order", name="uq_risk_category_order"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    context_id = Column(
        String(36), ForeignKey(fk("konteks.id"), ondelete="CASCADE"), nullable=False, index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=0)


class _ScaleColumns:
    id = Column(String(36), primary_key=True, default=new_id)
    level = Column(Integer, nullable=False)
    label = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)


class LikelihoodScale(_ScaleColumns, TimestampMixin, Base):
    __tablename__ = "likelihood_scale"
    __table_args__ = (UniqueConstraint("category_id", "level", name="uq_likelihood_scale_level"),)

    category_id = Column(
        String(36), ForeignKey(fk("risk_category.id"), ondelete="CASCADE"), nullable=False, index=True,
    )


class ImpactScale(_ScaleColumns, TimestampMixin, Base):
    __tablename__ = "impact_scale"
    __table_args__ = (UniqueConstraint("category_id", "level", name="uq_impact_scale_level"),)

    category_id = Column(
        String(36), ForeignKey(fk("risk_category.id"), ondelete="CASCADE"), nullable=False, index=True,
    )


class RiskMatrixCell(TimestampMixin, Base):
    __tablename__ = "risk_matrix"
    __table_args__ = (
        UniqueConstraint("context_id", "likelihood_level", "impact_level", name="uq_risk_matrix_cell"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    context_id = Column(
        String(36), ForeignKey(fk("konteks.id"), ondelete="CASCADE"), nullable=False, index=True,
    )
    likelihood_level = Column(Integer, nullable=False)
    impact_level = Column(Integer, nullable=False)
    risk_level = Column(Enum(RiskLevel, native_enum=False, length=20), nullable=False)

    def __repr__(self):
        return f"<RiskMatrixCell L{self.likelihood_level}xI{self.impact_level}={self.risk_level}>"
