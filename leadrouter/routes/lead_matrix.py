"""
Lead matrix routes — operator view and edits of the per-report category grid,
plus manual submission.
"""
import logging

from flask import Blueprint, request, jsonify

from leadrouter import get_service, get_session
from leadrouter.errors import ValidationError
from leadrouter.pipeline.jobs import deliver_now
from leadrouter.pipeline.submission import queue_submission
from leadrouter.services import lead_matrix
from leadrouter.services.partners import partners_by_category

logger = logging.getLogger('routes.lead_matrix')

bp = Blueprint('lead_matrix', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')
    return data


@bp.route('/leads/<report_id>/matrix')
def get_matrix(report_id):
    return jsonify({'matrix': lead_matrix.matrix_view(get_session(), report_id)}), 200


@bp.route('/leads/<report_id>/matrix/<category>/interest', methods=['PUT'])
def update_interest(report_id, category):
    data = _json_body()
    if not isinstance(data.get('isInterested'), bool):
        raise ValidationError('isInterested must be a boolean')
    entry = lead_matrix.set_interest(get_session(), report_id, category, data['isInterested'])
    return jsonify({'success': True, 'isInterested': entry.is_interested}), 200


@bp.route('/leads/<report_id>/matrix/<category>/partner', methods=['PUT'])
def update_partner(report_id, category):
    data = _json_body()
    partner_id = data.get('partnerId')
    if not partner_id:
        raise ValidationError('partnerId is required')
    entry = lead_matrix.set_partner(get_session(), report_id, category, partner_id)
    return jsonify({'success': True, 'partnerId': entry.partner_id}), 200


@bp.route('/leads/<report_id>/matrix/<category>/auto-assign', methods=['POST'])
def auto_assign(report_id, category):
    partner = lead_matrix.auto_assign(get_session(), report_id, category)
    if partner is None:
        return jsonify({'success': False, 'error': 'No active partner for this category'}), 404
    return jsonify({'success': True, 'partner': partner.to_dict()}), 200


@bp.route('/leads/<report_id>/matrix/<category>/submit', methods=['POST'])
def submit(report_id, category):
    lead_matrix.validate_category(category)
    submission = queue_submission(get_session(), report_id, category)

    try:
        get_service('submission_queue').enqueue(deliver_now, submission.id, job_timeout=120)
    except Exception:
        # The next periodic pass picks the row up
        logger.warning("Could not enqueue immediate delivery for %s", submission.id, exc_info=True)

    return jsonify({
        'success': True,
        'submissionId': submission.id,
        'submission': submission.to_dict(),
    }), 201


@bp.route('/partners/by-category')
def list_partners_by_category():
    return jsonify(partners_by_category(get_session())), 200
