"""
Consent ledger models.

Consent rows are append-only: revocation flips is_revoked/revoked_at and
writes a Revocation audit row, it never deletes.
"""
from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from leadrouter.database import Base
from leadrouter.models.lead_profile import _uuid


class Consent(Base):
    __tablename__ = 'consents'

    id = Column(Text, primary_key=True, default=_uuid)
    report_id = Column(Text, nullable=False, index=True)
    category_key = Column(Text, nullable=False)
    partner_id = Column(Text, ForeignKey('partners.id'), nullable=False)  # seller named at capture time
    channel = Column(Text, nullable=False)              # email / phone / sms
    consent_type = Column(Text, nullable=False)         # global_email / one_to_one
    consent_text_version = Column(Text, nullable=False)
    signature = Column(Text, nullable=True)
    ip = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    timezone = Column(Text, nullable=True)
    gpc_signal = Column(Boolean, default=False)
    portal_session_id = Column(Text, nullable=True)
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'reportId': self.report_id,
            'categoryKey': self.category_key,
            'partnerId': self.partner_id,
            'channel': self.channel,
            'consentType': self.consent_type,
            'consentTextVersion': self.consent_text_version,
            'signature': self.signature,
            'gpcSignal': bool(self.gpc_signal),
            'isRevoked': bool(self.is_revoked),
            'revokedAt': self.revoked_at.isoformat() if self.revoked_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Revocation(Base):
    __tablename__ = 'revocations'

    id = Column(Text, primary_key=True, default=_uuid)
    consent_id = Column(Text, ForeignKey('consents.id'), nullable=False, index=True)
    revoked_at = Column(DateTime, server_default=func.now())
    reason = Column(Text, nullable=True)
    method = Column(Text, nullable=True)                # unsubscribe_link / opt_out_request / admin_action
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
