"""
Health routes — liveness check + per-partner circuit breaker state.
"""
from flask import Blueprint, jsonify

from leadrouter import get_service, get_session
from leadrouter.models.partner import Partner

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Circuit breaker state for every active partner with an endpoint."""
    breakers = get_service('breakers')
    partners = (
        get_session().query(Partner)
        .filter(Partner.is_active.is_(True), Partner.endpoint.isnot(None))
        .all()
    )
    services = {}
    for partner in partners:
        health = breakers.get(partner.id).get_health()
        health['partnerName'] = partner.name
        services[partner.id] = health
    return jsonify({'services': services}), 200


@bp.route('/api/health/<partner_id>/reset', methods=['POST'])
def reset_circuit(partner_id):
    if get_session().get(Partner, partner_id) is None:
        return jsonify({'error': f'Unknown partner: {partner_id}'}), 404
    breaker = get_service('breakers').get(partner_id)
    breaker.reset()
    return jsonify({'ok': True, 'partnerId': partner_id, 'state': breaker.state}), 200
