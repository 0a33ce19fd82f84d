"""
Marketplace routes — contractors, contractor leads, distribution rules.
"""
from flask import Blueprint, request, jsonify

from leadrouter import get_session
from leadrouter.errors import ValidationError
from leadrouter.services import marketplace

bp = Blueprint('marketplace', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')
    return data


# ── Contractors ──────────────────────────────────────────────────────────────

@bp.route('/contractors')
def list_contractors():
    contractors = marketplace.list_contractors(
        get_session(),
        category=request.args.get('category'),
        active_only=request.args.get('active') == 'true',
    )
    return jsonify({'contractors': [c.to_dict() for c in contractors]}), 200


@bp.route('/contractors', methods=['POST'])
def create_contractor():
    contractor = marketplace.create_contractor(get_session(), _json_body())
    return jsonify({'contractor': contractor.to_dict()}), 201


@bp.route('/contractors/<int:contractor_id>', methods=['PATCH'])
def update_contractor(contractor_id):
    contractor = marketplace.update_contractor(get_session(), contractor_id, _json_body())
    return jsonify({'contractor': contractor.to_dict()}), 200


# ── Contractor leads ─────────────────────────────────────────────────────────

@bp.route('/contractor-leads', methods=['POST'])
def create_flagged_lead():
    lead = marketplace.create_lead(get_session(), _json_body(), source='inspection_flagged')
    return jsonify({'lead': lead.to_dict()}), 201


@bp.route('/contractor-leads/referral', methods=['POST'])
def create_referral_lead():
    lead = marketplace.create_lead(get_session(), _json_body(), source='inspection_referral')
    return jsonify({'lead': lead.to_dict()}), 201


@bp.route('/contractor-leads/<int:lead_id>', methods=['PATCH'])
def update_lead(lead_id):
    lead = marketplace.update_lead(get_session(), lead_id, _json_body())
    return jsonify({'lead': lead.to_dict()}), 200


# ── Distribution rules ───────────────────────────────────────────────────────

@bp.route('/distribution-rules/<lane>/<category>')
def get_rule(lane, category):
    return jsonify({'rule': marketplace.get_rule(get_session(), lane, category).to_dict()}), 200


@bp.route('/distribution-rules/<lane>/<category>', methods=['PUT'])
def put_rule(lane, category):
    rule = marketplace.put_rule(get_session(), lane, category, _json_body())
    return jsonify({'rule': rule.to_dict()}), 200
