"""
LeadMatrixEntry model — one row per (report, category).

Seeded once at finalization, then only mutated (interest / partner).
"""
from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from leadrouter.database import Base
from leadrouter.models.lead_profile import _uuid


class LeadMatrixEntry(Base):
    __tablename__ = 'lead_matrix'

    id = Column(Text, primary_key=True, default=_uuid)
    report_id = Column(Text, nullable=False, index=True)
    category_key = Column(Text, nullable=False)
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=True)
    is_interested = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('report_id', 'category_key', name='uq_report_category'),
    )
