"""
Report finalization handler.

When an inspection report is finalized:
  1. upsert the LeadProfile keyed by report_id
  2. seed one LeadMatrixEntry per category (existence check first, never re-seeded)
  3. replace the evidence assets wholesale

Nothing is sent to a partner here, this only prepares routing state. The
whole handler is one transaction; a failure rolls back and re-raises, and a
retry is safe because seeding is idempotent per category.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from leadrouter.config import LEAD_CATEGORIES
from leadrouter.errors import ValidationError
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_profile import LeadProfile, LeadAsset
from leadrouter.pipeline.distribution import default_partner_for

logger = logging.getLogger('pipeline.finalization')


@dataclass
class ReportFinalizedEvent:
    report_id: str
    address: str
    region: str
    client_name: str = ''
    client_email: str = ''
    client_phone: str = ''
    issues: List[Dict[str, Any]] = field(default_factory=list)
    photo_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> 'ReportFinalizedEvent':
        """Build from the JSON event body (camelCase keys)."""
        if not isinstance(data, dict):
            raise ValidationError('JSON object body required')
        report_id = str(data.get('reportId') or '').strip()
        region = str(data.get('state') or data.get('region') or '').strip().upper()
        if not report_id:
            raise ValidationError('reportId is required')
        if not region:
            raise ValidationError('state is required')

        address = data.get('address') or ''
        if not isinstance(address, str):
            raise ValidationError('address must be a string')

        client = data.get('client') or {}
        if not isinstance(client, dict):
            raise ValidationError('client must be an object')

        issues = data.get('issues') or []
        if not isinstance(issues, list) or not all(isinstance(i, dict) for i in issues):
            raise ValidationError('issues must be a list of objects')

        photo_urls = data.get('photoUrls') or []
        if not isinstance(photo_urls, list):
            raise ValidationError('photoUrls must be a list')

        return cls(
            report_id=report_id,
            address=address,
            region=region,
            client_name=client.get('name') or '',
            client_email=client.get('email') or '',
            client_phone=client.get('phone') or '',
            issues=issues,
            photo_urls=[u for u in photo_urls if u],
        )


def on_report_finalized(session, event: ReportFinalizedEvent) -> LeadProfile:
    """Run the three finalization steps in one transaction and commit."""
    logger.info("Processing report finalization for %s", event.report_id)
    try:
        profile = upsert_lead_profile(session, event)
        created = seed_lead_matrix(session, event.report_id, event.region)
        attach_assets(session, profile, event.photo_urls)
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Report finalization failed for %s", event.report_id, exc_info=True)
        raise

    logger.info("Report %s finalized: %d matrix rows seeded, %d assets",
                event.report_id, created, len(event.photo_urls))
    return profile


def upsert_lead_profile(session, event: ReportFinalizedEvent) -> LeadProfile:
    profile = session.query(LeadProfile).filter_by(report_id=event.report_id).first()
    if profile is None:
        profile = LeadProfile(report_id=event.report_id)
        session.add(profile)

    profile.address = event.address
    profile.region = event.region
    profile.client_name = event.client_name
    profile.client_email = event.client_email
    profile.client_phone = event.client_phone
    profile.issues = event.issues
    session.flush()
    return profile


def seed_lead_matrix(session, report_id: str, region: str) -> int:
    """Create the missing (report, category) rows. Returns how many were created."""
    existing = {
        key for (key,) in session.query(LeadMatrixEntry.category_key)
        .filter_by(report_id=report_id).all()
    }

    created = 0
    for category_key in LEAD_CATEGORIES:
        if category_key in existing:
            continue
        partner = default_partner_for(session, region, category_key)
        session.add(LeadMatrixEntry(
            report_id=report_id,
            category_key=category_key,
            partner_id=partner.id if partner else None,
            is_interested=False,
        ))
        created += 1

    session.flush()
    return created


def attach_assets(session, profile: LeadProfile, photo_urls: List[str]):
    """Delete-then-insert; no diffing."""
    session.query(LeadAsset).filter_by(lead_profile_id=profile.id).delete()
    for url in photo_urls:
        session.add(LeadAsset(
            lead_profile_id=profile.id,
            kind='photo',
            url=url,
            meta={'originalSource': 'inspection_report'},
        ))
    session.flush()
