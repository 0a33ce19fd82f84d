"""
Partner catalog — YAML file of partners and their (region, category) mappings,
upserted into the registry by scripts/seed_partners.py.

    partners:
      - id: sunrun-tx
        name: Sunrun Texas
        category: solar
        region: TX
        endpoint: https://api.example.com/leads
        authType: bearer
        authConfig: {token: ...}
        allowedChannels: [email, phone, sms]
        payoutAmount: 75.0
        payoutTerms: net_30
        mappings:
          - {region: TX, priority: 1}
"""
import logging

import yaml

from leadrouter.config import LEAD_CATEGORIES, CONSENT_CHANNELS
from leadrouter.errors import ValidationError
from leadrouter.models.partner import Partner, StatePartnerMapping

logger = logging.getLogger('services.partner_catalog')

AUTH_TYPES = (None, 'api_key', 'bearer', 'basic')

PARTNER_FIELDS = {
    'name': 'name',
    'category': 'category',
    'region': 'region',
    'endpoint': 'endpoint',
    'authType': 'auth_type',
    'authConfig': 'auth_config',
    'allowedChannels': 'allowed_channels',
    'payoutAmount': 'payout_amount',
    'payoutTerms': 'payout_terms',
    'consentTextVersion': 'consent_text_version',
    'isActive': 'is_active',
    'rating': 'rating',
    'isPriority': 'is_priority',
}


def load_catalog(path):
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    partners = data.get('partners') or []
    if not isinstance(partners, list):
        raise ValidationError(f'{path}: "partners" must be a list')
    for entry in partners:
        validate_entry(entry)
    return partners


def validate_entry(entry):
    if not isinstance(entry, dict) or not entry.get('id') or not entry.get('name'):
        raise ValidationError(f'Catalog entry needs id and name: {entry!r}')
    if entry.get('category') not in LEAD_CATEGORIES:
        raise ValidationError(f"Partner {entry['id']}: unknown category {entry.get('category')!r}")
    if entry.get('authType') not in AUTH_TYPES:
        raise ValidationError(f"Partner {entry['id']}: unknown authType {entry.get('authType')!r}")
    unknown = set(entry.get('allowedChannels') or []) - set(CONSENT_CHANNELS)
    if unknown:
        raise ValidationError(f"Partner {entry['id']}: unknown channels {sorted(unknown)}")


def sync_catalog(session, partners):
    """Upsert partners and their mappings. Returns (partners_written, mappings_written)."""
    mappings_written = 0
    for entry in partners:
        partner = session.get(Partner, entry['id'])
        if partner is None:
            partner = Partner(id=entry['id'], total_leads=0, converted_leads=0)
            session.add(partner)
        for key, attr in PARTNER_FIELDS.items():
            if key in entry:
                setattr(partner, attr, entry[key])
        if partner.is_active is None:
            partner.is_active = True

        for mapping in entry.get('mappings') or []:
            region = str(mapping.get('region') or partner.region or '').upper()
            priority = int(mapping.get('priority', 1))
            row = session.query(StatePartnerMapping).filter_by(
                region=region, category_key=partner.category, priority=priority,
            ).first()
            if row is None:
                row = StatePartnerMapping(region=region, category_key=partner.category, priority=priority)
                session.add(row)
            row.partner_id = partner.id
            row.is_active = bool(mapping.get('isActive', True))
            mappings_written += 1

    session.commit()
    logger.info("Partner catalog synced: %d partners, %d mappings", len(partners), mappings_written)
    return len(partners), mappings_written
