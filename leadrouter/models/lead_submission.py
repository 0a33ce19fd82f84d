"""
LeadSubmission model — one row per (report, category, partner) delivery lineage.

idempotency_key is unique, so the insert itself is the guard against
double-delivery.
"""
from sqlalchemy import Column, Integer, Float, Text, Date, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from leadrouter.database import Base
from leadrouter.models.lead_profile import _uuid


def make_idempotency_key(report_id, category_key, partner_id):
    return f'{report_id}:{category_key}:{partner_id}'


class LeadSubmission(Base):
    __tablename__ = 'lead_submissions'

    id = Column(Text, primary_key=True, default=_uuid)
    report_id = Column(Text, nullable=False, index=True)
    category_key = Column(Text, nullable=False)
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=False)
    idempotency_key = Column(Text, nullable=False, unique=True)
    payload = Column(JSON, nullable=True)
    status = Column(Text, nullable=False, default='queued', index=True)  # queued / sent / failed
    external_id = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    payout_expected = Column(Float, nullable=True)
    payout_due_date = Column(Date, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    claimed_at = Column(DateTime, nullable=True)         # delivery lease, cleared after each attempt
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'reportId': self.report_id,
            'categoryKey': self.category_key,
            'partnerId': self.partner_id,
            'idempotencyKey': self.idempotency_key,
            'status': self.status,
            'externalId': self.external_id,
            'retryCount': self.retry_count or 0,
            'errorMessage': self.error_message,
            'payoutExpected': self.payout_expected,
            'payoutDueDate': self.payout_due_date.isoformat() if self.payout_due_date else None,
            'sentAt': self.sent_at.isoformat() if self.sent_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
