"""
Partner registry models — partners per category/region and the
(region, category) → partner default mappings.
"""
from sqlalchemy import (
    Column, Integer, Float, Text, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint,
    event, select,
)
from sqlalchemy.orm import object_session
from sqlalchemy.sql import func

from leadrouter.database import Base
from leadrouter.models.lead_profile import _uuid


class Partner(Base):
    __tablename__ = 'partners'

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, index=True)
    region = Column(Text, nullable=True)
    endpoint = Column(Text, nullable=True)              # None → manual onboarding, no HTTP call
    auth_type = Column(Text, nullable=True)             # api_key / bearer / basic
    auth_config = Column(JSON, nullable=True)
    allowed_channels = Column(JSON, default=list)       # ['email', 'phone', 'sms']
    payout_amount = Column(Float, nullable=True)
    payout_terms = Column(Text, nullable=True)          # net_30 / net_60 / net_90
    consent_text_version = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    # Distribution bookkeeping
    rating = Column(Float, default=0.0)                 # 0-5
    is_priority = Column(Boolean, default=False)
    last_assigned_at = Column(DateTime, nullable=True)
    total_leads = Column(Integer, default=0)
    converted_leads = Column(Integer, default=0)
    seq = Column(Integer, nullable=True, index=True)    # insertion order, set on insert

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def service_regions(self):
        return [self.region] if self.region else []

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'region': self.region,
            'allowedChannels': self.allowed_channels or [],
            'hasEndpoint': bool(self.endpoint),
            'payoutAmount': self.payout_amount,
            'payoutTerms': self.payout_terms,
            'isActive': bool(self.is_active),
        }


@event.listens_for(Partner, 'before_insert')
def _assign_seq(mapper, connection, target):
    if target.seq is not None:
        return
    # Partners pending in the same flush are not in the table yet
    session = object_session(target)
    pending = [
        p.seq for p in (session.new if session is not None else ())
        if isinstance(p, Partner) and p.seq is not None
    ]
    stored = connection.scalar(select(func.max(Partner.seq))) or 0
    target.seq = max([stored] + pending) + 1


class StatePartnerMapping(Base):
    __tablename__ = 'state_partner_mappings'

    id = Column(Text, primary_key=True, default=_uuid)
    region = Column(Text, nullable=False)
    category_key = Column(Text, nullable=False)
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=False)
    priority = Column(Integer, default=1)               # lowest wins
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('region', 'category_key', 'priority', name='uq_state_category_priority'),
    )
