"""
Homeowner portal routes — partner preview, opt-in consent capture, unsubscribe.
"""
from flask import Blueprint, request, jsonify, current_app

from leadrouter import get_session
from leadrouter.errors import ValidationError
from leadrouter.services import lead_matrix
from leadrouter.services.consent import CaptureMetadata, revoke

bp = Blueprint('portal', __name__, url_prefix='/portal')

SESSION_HEADER = 'X-Portal-Session'
SESSION_COOKIE = 'portal_session'


def client_ip():
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr


def capture_metadata() -> CaptureMetadata:
    return CaptureMetadata(
        ip=client_ip(),
        user_agent=request.headers.get('User-Agent', ''),
        referrer=request.headers.get('Referer', ''),
        timezone=request.headers.get('Timezone', 'UTC'),
        gpc_signal=request.headers.get('Sec-GPC') == '1',
        portal_session_id=(request.headers.get(SESSION_HEADER)
                           or request.cookies.get(SESSION_COOKIE, '')),
    )


@bp.route('/reports/<report_id>/partners')
def report_partners(report_id):
    return jsonify({'partners': lead_matrix.portal_partners(get_session(), report_id)}), 200


@bp.route('/reports/<report_id>/optin', methods=['POST'])
def opt_in(report_id):
    data = request.get_json(silent=True) or {}
    category_key = data.get('categoryKey')
    partner_id = data.get('partnerId')
    if not category_key or not partner_id:
        raise ValidationError('categoryKey and partnerId are required')

    consents = lead_matrix.record_opt_in(
        get_session(),
        report_id,
        category_key,
        partner_id,
        email_opt_in=bool(data.get('emailOptIn')),
        phone_sms_opt_in=bool(data.get('phoneSmsOptIn')),
        signature=data.get('signature') or '',
        metadata=capture_metadata(),
        text_version=current_app.config['CONSENT_TEXT_VERSION'],
    )
    return jsonify({'success': True, 'consents': [c.to_dict() for c in consents]}), 201


@bp.route('/unsubscribe', methods=['POST'])
def unsubscribe():
    data = request.get_json(silent=True) or {}
    consent_id = data.get('consentId')
    if not consent_id:
        raise ValidationError('consentId is required')

    session = get_session()
    consent = revoke(
        session,
        consent_id,
        reason=data.get('reason'),
        method=data.get('method') or 'unsubscribe_link',
        ip=client_ip(),
        user_agent=request.headers.get('User-Agent', ''),
    )
    session.commit()
    return jsonify({'success': True, 'consent': consent.to_dict()}), 200
