"""
Eligibility gate + edit permissions for the lead matrix.

evaluate_eligibility() and edit_permissions() are pure functions over consent
rows. check_eligibility() loads the current ledger state and must be called
right before a submission is created or delivered. Never cache its result:
consent can be revoked in between.
"""
import logging
from typing import Iterable, Optional, Tuple

from leadrouter.models.consent import Consent
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.pipeline.base import Eligibility
from leadrouter.services.consent import active_consents

logger = logging.getLogger('pipeline.eligibility')

NO_PARTNER = 'No partner assigned for this category'
INSUFFICIENT_CONSENT = 'Insufficient consent - need email OR phone+SMS consent'

LOCKING_CHANNELS = ('phone', 'sms')


def evaluate_eligibility(partner_id: Optional[str], consents: Iterable[Consent]) -> Eligibility:
    """
    Eligible iff a partner is assigned and the non-revoked consents include
    email, or both phone and sms. Revoked rows in `consents` are ignored.
    """
    if not partner_id:
        return Eligibility(eligible=False, reason=NO_PARTNER)

    channels = {c.channel for c in consents if not c.is_revoked}
    email = 'email' in channels
    phone = 'phone' in channels
    sms = 'sms' in channels

    eligible = email or (phone and sms)
    return Eligibility(
        eligible=eligible,
        reason=None if eligible else INSUFFICIENT_CONSENT,
        partner_id=partner_id,
        email_consent=email,
        phone_consent=phone,
        sms_consent=sms,
    )


def check_eligibility(session, report_id: str, category_key: str) -> Eligibility:
    """Evaluate eligibility against the current matrix row and ledger."""
    entry = session.query(LeadMatrixEntry).filter_by(
        report_id=report_id, category_key=category_key,
    ).first()
    if entry is None or not entry.partner_id:
        return Eligibility(eligible=False, reason=NO_PARTNER)

    result = evaluate_eligibility(
        entry.partner_id, active_consents(session, report_id, category_key),
    )
    logger.debug("Eligibility %s/%s: %s", report_id, category_key, result)
    return result


def edit_permissions(consents: Iterable[Consent]) -> Tuple[bool, bool]:
    """
    (can_edit_interest, can_change_partner) for one pairing.

    Any consent, revoked or not, freezes interest. Only an active phone or
    sms consent freezes the partner; email consent is not partner-exclusive.
    """
    consents = list(consents)
    can_edit_interest = len(consents) == 0
    can_change_partner = not any(
        c.channel in LOCKING_CHANNELS and not c.is_revoked for c in consents
    )
    return can_edit_interest, can_change_partner
