"""
Lead matrix edits — the operations behind the operator and homeowner
portal endpoints.

Every edit re-reads the consent ledger for the pairing and applies the lock
rules before touching the row:
  - interest is editable only while no consent of any kind exists
  - the partner is changeable only while no active phone/sms consent exists
"""
import logging
from typing import Dict, List, Optional

from leadrouter.config import LEAD_CATEGORIES, CATEGORY_LABELS, CONSENT_TEXT_VERSION
from leadrouter.errors import ValidationError, NotFoundError, ConsentLockedError
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_profile import LeadProfile
from leadrouter.models.lead_submission import LeadSubmission
from leadrouter.models.partner import Partner
from leadrouter.pipeline.distribution import LeadDistributor, default_partner_for
from leadrouter.pipeline.eligibility import edit_permissions
from leadrouter.services.consent import consents_for, record_consent

logger = logging.getLogger('services.lead_matrix')

INTEREST_LOCKED = 'Cannot change interest after consent has been given'
PARTNER_LOCKED = 'Cannot change partner after phone/SMS consent has been given'


def validate_category(category_key):
    if category_key not in LEAD_CATEGORIES:
        raise ValidationError(f'Unknown category: {category_key}')


def get_entry(session, report_id, category_key) -> LeadMatrixEntry:
    validate_category(category_key)
    entry = session.query(LeadMatrixEntry).filter_by(
        report_id=report_id, category_key=category_key,
    ).first()
    if entry is None:
        raise NotFoundError('Lead matrix entry not found')
    return entry


def get_partner(session, partner_id) -> Partner:
    partner = session.get(Partner, partner_id) if partner_id else None
    if partner is None:
        raise NotFoundError('Partner not found')
    return partner


def _ensure_partner_unlocked(session, entry):
    _, can_change_partner = edit_permissions(
        consents_for(session, entry.report_id, entry.category_key)
    )
    if not can_change_partner:
        raise ConsentLockedError(PARTNER_LOCKED)


# ── Operator edits ───────────────────────────────────────────────────────────

def set_interest(session, report_id, category_key, is_interested) -> LeadMatrixEntry:
    entry = get_entry(session, report_id, category_key)
    can_edit_interest, _ = edit_permissions(consents_for(session, report_id, category_key))
    if not can_edit_interest:
        raise ConsentLockedError(INTEREST_LOCKED)

    entry.is_interested = bool(is_interested)
    session.commit()
    logger.info("Interest for %s/%s set to %s", report_id, category_key, entry.is_interested)
    return entry


def set_partner(session, report_id, category_key, partner_id) -> LeadMatrixEntry:
    entry = get_entry(session, report_id, category_key)
    partner = get_partner(session, partner_id)
    _ensure_partner_unlocked(session, entry)

    entry.partner_id = partner.id
    session.commit()
    logger.info("Partner for %s/%s set to %s", report_id, category_key, partner.id)
    return entry


def auto_assign(session, report_id, category_key, distributor=None) -> Optional[Partner]:
    """Let the distribution engine pick the partner. None when no partner is active."""
    entry = get_entry(session, report_id, category_key)
    _ensure_partner_unlocked(session, entry)

    profile = session.query(LeadProfile).filter_by(report_id=report_id).first()
    regions = [profile.region] if profile and profile.region else None

    distributor = distributor or LeadDistributor(session, lane='partner')
    partner = distributor.assign(category_key, regions)
    if partner is None and regions:
        # Nothing serves this region; fall back to any active partner in the category
        partner = distributor.assign(category_key)

    if partner is not None:
        entry.partner_id = partner.id
    session.commit()
    return partner


# ── Homeowner portal ─────────────────────────────────────────────────────────

def record_opt_in(session, report_id, category_key, partner_id, email_opt_in,
                  phone_sms_opt_in, signature, metadata=None,
                  text_version=CONSENT_TEXT_VERSION) -> List:
    """
    Apply a homeowner opt-in: interest + partner on the matrix row, then one
    global_email consent and/or a one_to_one phone + sms pair. Returns the
    new consent rows.
    """
    entry = get_entry(session, report_id, category_key)
    partner = get_partner(session, partner_id)
    if not signature:
        raise ValidationError('signature is required')

    allowed = set(partner.allowed_channels or [])
    if allowed:
        if email_opt_in and 'email' not in allowed:
            raise ValidationError(f'{partner.name} does not accept email contact')
        if phone_sms_opt_in and not {'phone', 'sms'} <= allowed:
            raise ValidationError(f'{partner.name} does not accept phone/SMS contact')

    if entry.partner_id != partner.id:
        _ensure_partner_unlocked(session, entry)

    entry.is_interested = bool(email_opt_in or phone_sms_opt_in)
    entry.partner_id = partner.id

    version = partner.consent_text_version or text_version
    consents = []
    if email_opt_in:
        consents.append(record_consent(
            session, report_id, category_key, partner.id, 'email', 'global_email',
            signature, metadata, version,
        ))
    if phone_sms_opt_in:
        for channel in ('phone', 'sms'):
            consents.append(record_consent(
                session, report_id, category_key, partner.id, channel, 'one_to_one',
                signature, metadata, version,
            ))

    session.commit()
    logger.info("Opt-in for %s/%s with %s: %d consents",
                report_id, category_key, partner.id, len(consents))
    return consents


def portal_partners(session, report_id) -> Dict[str, Optional[Dict]]:
    """Default partner per category for the report's region."""
    profile = session.query(LeadProfile).filter_by(report_id=report_id).first()
    if profile is None:
        raise NotFoundError('Report not found')

    partners = {}
    for category_key in LEAD_CATEGORIES:
        partner = default_partner_for(session, profile.region, category_key)
        partners[category_key] = partner.to_dict() if partner else None
    return partners


# ── Read view ────────────────────────────────────────────────────────────────

def matrix_view(session, report_id) -> List[Dict]:
    entries = (
        session.query(LeadMatrixEntry)
        .filter_by(report_id=report_id)
        .all()
    )
    if not entries:
        raise NotFoundError('Lead matrix not found for report')

    order = {key: i for i, key in enumerate(LEAD_CATEGORIES)}
    entries.sort(key=lambda e: order.get(e.category_key, len(order)))

    consents = consents_for(session, report_id)
    submissions = session.query(LeadSubmission).filter_by(report_id=report_id).all()
    partner_ids = {e.partner_id for e in entries if e.partner_id}
    partners = {
        p.id: p for p in session.query(Partner).filter(Partner.id.in_(partner_ids)).all()
    } if partner_ids else {}

    rows = []
    for entry in entries:
        row_consents = [c for c in consents if c.category_key == entry.category_key]
        can_edit_interest, can_change_partner = edit_permissions(row_consents)
        partner = partners.get(entry.partner_id)
        rows.append({
            'id': entry.id,
            'categoryKey': entry.category_key,
            'categoryLabel': CATEGORY_LABELS.get(entry.category_key, entry.category_key),
            'isInterested': bool(entry.is_interested),
            'partnerId': entry.partner_id,
            'partner': partner.to_dict() if partner else None,
            'consents': [c.to_dict() for c in row_consents],
            'submissions': [
                s.to_dict() for s in submissions if s.category_key == entry.category_key
            ],
            'canEditInterest': can_edit_interest,
            'canChangePartner': can_change_partner,
        })
    return rows
