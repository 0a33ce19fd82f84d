"""
Contractor marketplace — contractors, flagged/referral leads, status tracking
and the distribution rules administered per (lane, category).
"""
import logging

from leadrouter.config import (
    CONTRACTOR_CATEGORIES, CONTRACTOR_LEAD_STATUSES, CONTRACTOR_LEAD_SOURCES, LEAD_PRIORITIES,
    DISTRIBUTION_LANES, DISTRIBUTION_METHODS, LEAD_CATEGORIES,
)
from leadrouter.database import utcnow
from leadrouter.errors import ValidationError, NotFoundError
from leadrouter.models.contractor import Contractor, ContractorLead, DistributionRule
from leadrouter.pipeline.distribution import LeadDistributor

logger = logging.getLogger('services.marketplace')

# status → timestamp column set on first entry into that status
STATUS_TIMESTAMPS = {
    'contacted': 'contacted_at',
    'quoted': 'quoted_at',
    'won': 'won_at',
}

CONTRACTOR_FIELDS = {
    'companyName': 'company_name',
    'contactName': 'contact_name',
    'email': 'email',
    'phone': 'phone',
    'region': 'region',
    'category': 'category',
    'serviceAreas': 'service_areas',
    'rating': 'rating',
    'isActive': 'is_active',
    'isPriority': 'is_priority',
}


# ── Contractors ──────────────────────────────────────────────────────────────

def _apply_contractor_fields(contractor, data):
    for key, attr in CONTRACTOR_FIELDS.items():
        if key in data:
            setattr(contractor, attr, data[key])

    if contractor.category not in CONTRACTOR_CATEGORIES:
        raise ValidationError(f'Unknown contractor category: {contractor.category}')
    if contractor.rating is not None and not 0 <= float(contractor.rating) <= 5:
        raise ValidationError('rating must be between 0 and 5')
    if not isinstance(contractor.service_areas or [], list):
        raise ValidationError('serviceAreas must be a list')


def list_contractors(session, category=None, active_only=False):
    query = session.query(Contractor)
    if category:
        query = query.filter_by(category=category)
    if active_only:
        query = query.filter(Contractor.is_active.is_(True))
    return query.order_by(Contractor.company_name).all()


def create_contractor(session, data) -> Contractor:
    if not data.get('companyName'):
        raise ValidationError('companyName is required')
    contractor = Contractor(
        service_areas=[], rating=0.0, is_active=True, is_priority=False,
        total_leads=0, converted_leads=0,
    )
    _apply_contractor_fields(contractor, data)
    session.add(contractor)
    session.commit()
    logger.info("Contractor %s created (%s)", contractor.id, contractor.category)
    return contractor


def update_contractor(session, contractor_id, data) -> Contractor:
    contractor = session.get(Contractor, contractor_id)
    if contractor is None:
        raise NotFoundError('Contractor not found')
    _apply_contractor_fields(contractor, data)
    session.commit()
    return contractor


# ── Leads ────────────────────────────────────────────────────────────────────

def create_lead(session, data, source='inspection_flagged', distributor=None) -> ContractorLead:
    """
    Record a contractor lead and hand it to the distribution engine. A lead
    nobody can take stays unassigned with status 'new'.
    """
    for required in ('customerName', 'propertyAddress', 'category', 'serviceNeeded'):
        if not data.get(required):
            raise ValidationError(f'{required} is required')
    if data['category'] not in CONTRACTOR_CATEGORIES:
        raise ValidationError(f"Unknown contractor category: {data['category']}")
    priority = data.get('priority') or 'medium'
    if priority not in LEAD_PRIORITIES:
        raise ValidationError(f'Unknown priority: {priority}')
    if source not in CONTRACTOR_LEAD_SOURCES:
        raise ValidationError(f'Unknown lead source: {source}')

    lead = ContractorLead(
        report_id=data.get('reportId'),
        customer_name=data['customerName'],
        customer_email=data.get('customerEmail'),
        customer_phone=data.get('customerPhone'),
        property_address=data['propertyAddress'],
        region=data.get('region'),
        category=data['category'],
        service_needed=data['serviceNeeded'],
        description=data.get('description'),
        priority=priority,
        source=source,
        status='new',
        is_flagged=source == 'inspection_flagged',
        estimated_value=data.get('estimatedValue'),
    )
    session.add(lead)

    distributor = distributor or LeadDistributor(session, lane='contractor')
    areas = [a for a in (data.get('serviceAreas') or [data.get('region')]) if a]
    contractor = distributor.assign(lead.category, areas or None)
    if contractor is not None:
        lead.contractor_id = contractor.id
        lead.assigned_at = utcnow()

    session.commit()
    logger.info("Contractor lead %s (%s) assigned to %s", lead.id, source, lead.contractor_id)
    return lead


def update_lead(session, lead_id, data) -> ContractorLead:
    lead = session.get(ContractorLead, lead_id)
    if lead is None:
        raise NotFoundError('Contractor lead not found')

    status = data.get('status')
    if status is not None and status != lead.status:
        if status not in CONTRACTOR_LEAD_STATUSES:
            raise ValidationError(f'Unknown lead status: {status}')
        if lead.status in ('won', 'lost', 'closed'):
            raise ValidationError(f'Lead is already {lead.status}')

        lead.status = status
        column = STATUS_TIMESTAMPS.get(status)
        if column and getattr(lead, column) is None:
            setattr(lead, column, utcnow())
        if status == 'won' and lead.contractor_id is not None:
            contractor = session.get(Contractor, lead.contractor_id)
            if contractor is not None:
                contractor.converted_leads = (contractor.converted_leads or 0) + 1

    if 'quoteAmount' in data:
        lead.quote_amount = data['quoteAmount']
    if 'contractorId' in data and data['contractorId'] != lead.contractor_id:
        if session.get(Contractor, data['contractorId']) is None:
            raise NotFoundError('Contractor not found')
        lead.contractor_id = data['contractorId']
        lead.assigned_at = utcnow()

    session.commit()
    return lead


# ── Distribution rules ───────────────────────────────────────────────────────

def _check_lane_category(lane, category):
    if lane not in DISTRIBUTION_LANES:
        raise ValidationError(f'Unknown distribution lane: {lane}')
    categories = LEAD_CATEGORIES if lane == 'partner' else CONTRACTOR_CATEGORIES
    if category not in categories:
        raise ValidationError(f'Unknown {lane} category: {category}')


def get_rule(session, lane, category) -> DistributionRule:
    _check_lane_category(lane, category)
    rule = session.query(DistributionRule).filter_by(lane=lane, category=category).first()
    if rule is None:
        raise NotFoundError('Distribution rule not found')
    return rule


def put_rule(session, lane, category, data) -> DistributionRule:
    _check_lane_category(lane, category)
    method = data.get('method') or 'round_robin'
    if method not in DISTRIBUTION_METHODS:
        raise ValidationError(f'Unknown distribution method: {method}')

    weights = data.get('scoringWeights')
    if weights is not None:
        if not isinstance(weights, dict) or not all(
            isinstance(v, (int, float)) for v in weights.values()
        ):
            raise ValidationError('scoringWeights must map names to numbers')
    priority_ids = data.get('priorityIds')
    if priority_ids is not None and not isinstance(priority_ids, list):
        raise ValidationError('priorityIds must be a list')

    rule = session.query(DistributionRule).filter_by(lane=lane, category=category).first()
    if rule is None:
        rule = DistributionRule(lane=lane, category=category)
        session.add(rule)
    rule.method = method
    rule.scoring_weights = weights
    rule.priority_ids = priority_ids
    rule.is_active = bool(data.get('isActive', True))
    session.commit()
    logger.info("Distribution rule %s/%s set to %s", lane, category, method)
    return rule
