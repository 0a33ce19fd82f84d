"""
LeadProfile model — one row per finalized inspection report, upserted by report_id.

LeadAsset rows hold the evidence photos attached to the profile; they are
replaced wholesale on every finalization.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from leadrouter.database import Base


def _uuid():
    return str(uuid.uuid4())


class LeadProfile(Base):
    __tablename__ = 'lead_profiles'

    id = Column(Text, primary_key=True, default=_uuid)
    report_id = Column(Text, nullable=False, unique=True)
    address = Column(Text, default='')
    region = Column(Text, nullable=False)              # two-letter state code
    client_name = Column(Text, default='')
    client_email = Column(Text, default='')
    client_phone = Column(Text, default='')
    issues = Column(JSON, default=list)                # [{title, severity?, tags?}]
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'reportId': self.report_id,
            'address': self.address,
            'region': self.region,
            'clientName': self.client_name,
            'clientEmail': self.client_email,
            'clientPhone': self.client_phone,
            'issues': self.issues or [],
        }


class LeadAsset(Base):
    __tablename__ = 'lead_assets'

    id = Column(Text, primary_key=True, default=_uuid)
    lead_profile_id = Column(Text, ForeignKey('lead_profiles.id'), nullable=False, index=True)
    kind = Column(Text, nullable=False, default='photo')
    url = Column(Text, nullable=False)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
