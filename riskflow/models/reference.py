"""
Reference data owned by other services (organisational units and their
assets). The workflow core only reads these tables.
"""
from sqlalchemy import Column, ForeignKey, String

from riskflow.models.base import Base, TimestampMixin, fk, new_id


class OrgUnit(TimestampMixin, Base):
    __tablename__ = "unit_kerja"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<OrgUnit {self.code}>"


class Asset(TimestampMixin, Base):
    __tablename__ = "asset"

    id = Column(String(36), primary_key=True, default=new_id)
    unit_id = Column(String(36), ForeignKey(fk("unit_kerja.id")), nullable=False, index=True)
    code = Column(String(50), nullable=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Asset {self.name} unit={self.unit_id}>"
