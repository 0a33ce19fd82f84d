"""
Consent ledger — append-only record of who agreed to be contacted, by whom,
over which channel.

Nothing in here updates a consent except revoke(), and revoke() only flips the
flag. History of both the grant and the revocation must stay provable.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from leadrouter.config import CONSENT_CHANNELS, CONSENT_TYPES, REVOCATION_METHODS
from leadrouter.database import utcnow
from leadrouter.errors import ValidationError, NotFoundError
from leadrouter.models.consent import Consent, Revocation

logger = logging.getLogger('services.consent')


@dataclass(frozen=True)
class CaptureMetadata:
    """Request context captured alongside a consent for compliance."""
    ip: Optional[str] = None
    user_agent: str = ''
    referrer: str = ''
    timezone: str = 'UTC'
    gpc_signal: bool = False
    portal_session_id: str = ''


def record_consent(session, report_id, category_key, partner_id, channel,
                   consent_type, signature, metadata=None, text_version='v1.0'):
    """Append one Consent row. Caller commits."""
    if channel not in CONSENT_CHANNELS:
        raise ValidationError(f'Unknown consent channel: {channel}')
    if consent_type not in CONSENT_TYPES:
        raise ValidationError(f'Unknown consent type: {consent_type}')

    metadata = metadata or CaptureMetadata()
    consent = Consent(
        report_id=report_id,
        category_key=category_key,
        partner_id=partner_id,
        channel=channel,
        consent_type=consent_type,
        consent_text_version=text_version,
        signature=signature,
        ip=metadata.ip,
        user_agent=metadata.user_agent,
        referrer=metadata.referrer,
        timezone=metadata.timezone,
        gpc_signal=metadata.gpc_signal,
        portal_session_id=metadata.portal_session_id,
    )
    session.add(consent)
    session.flush()
    logger.info("Consent %s recorded: report=%s category=%s partner=%s channel=%s",
                consent.id, report_id, category_key, partner_id, channel)
    return consent


def revoke(session, consent_id, reason=None, method='unsubscribe_link',
           ip=None, user_agent=None):
    """
    Mark a consent revoked and write the audit row. Caller commits.

    Revoking twice keeps the first revoked_at but still records the second
    request in the audit trail.
    """
    if method not in REVOCATION_METHODS:
        raise ValidationError(f'Unknown revocation method: {method}')

    consent = session.get(Consent, consent_id)
    if consent is None:
        raise NotFoundError('Consent not found')

    now = utcnow()
    if not consent.is_revoked:
        consent.is_revoked = True
        consent.revoked_at = now

    session.add(Revocation(
        consent_id=consent.id,
        revoked_at=now,
        reason=reason or 'User request',
        method=method,
        ip_address=ip,
        user_agent=user_agent,
    ))
    session.flush()
    logger.info("Consent %s revoked via %s", consent.id, method)
    return consent


def consents_for(session, report_id, category_key=None) -> List[Consent]:
    """All consents (revoked included) for a report, optionally one category."""
    query = session.query(Consent).filter_by(report_id=report_id)
    if category_key is not None:
        query = query.filter_by(category_key=category_key)
    return query.order_by(Consent.created_at, Consent.id).all()


def active_consents(session, report_id, category_key) -> List[Consent]:
    return (
        session.query(Consent)
        .filter_by(report_id=report_id, category_key=category_key, is_revoked=False)
        .all()
    )
