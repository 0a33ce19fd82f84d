"""
Event routes — inbound notifications from the inspection platform.
"""
from flask import Blueprint, request, jsonify

from leadrouter import get_session
from leadrouter.pipeline.finalization import ReportFinalizedEvent, on_report_finalized

bp = Blueprint('events', __name__)


@bp.route('/events/report-finalized', methods=['POST'])
def report_finalized():
    event = ReportFinalizedEvent.from_dict(request.get_json(silent=True))
    profile = on_report_finalized(get_session(), event)
    return jsonify({'ok': True, 'leadProfile': profile.to_dict()}), 200
