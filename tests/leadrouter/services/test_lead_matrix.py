"""Tests for leadrouter.services.lead_matrix — edit locks, opt-in, matrix view."""
from datetime import datetime, timedelta

import pytest

from leadrouter.errors import ConsentLockedError, NotFoundError, ValidationError
from leadrouter.models.consent import Consent
from leadrouter.models.partner import Partner
from leadrouter.services import lead_matrix
from leadrouter.services.consent import CaptureMetadata, revoke


@pytest.fixture
def report(finalized_report, make_partner, make_mapping):
    make_mapping(make_partner('sunpower'))
    make_partner('other-solar')
    return finalized_report()


class TestSetInterest:

    def test_editable_without_consent(self, db_session, report):
        entry = lead_matrix.set_interest(db_session, 'R1', 'solar', True)
        assert entry.is_interested is True

    def test_locked_by_any_consent_even_revoked(self, db_session, report, give_consent):
        consent, = give_consent('R1', 'solar', 'sunpower', 'email')
        revoke(db_session, consent.id)
        db_session.commit()
        with pytest.raises(ConsentLockedError):
            lead_matrix.set_interest(db_session, 'R1', 'solar', False)

    def test_unknown_category(self, db_session, report):
        with pytest.raises(ValidationError):
            lead_matrix.set_interest(db_session, 'R1', 'roof_repair', True)

    def test_unknown_report(self, db_session, report):
        with pytest.raises(NotFoundError):
            lead_matrix.set_interest(db_session, 'nope', 'solar', True)


class TestSetPartner:

    def test_email_consent_does_not_lock_partner(self, db_session, report, give_consent):
        give_consent('R1', 'solar', 'sunpower', 'email')
        entry = lead_matrix.set_partner(db_session, 'R1', 'solar', 'other-solar')
        assert entry.partner_id == 'other-solar'

    def test_phone_consent_locks_partner(self, db_session, report, give_consent):
        give_consent('R1', 'solar', 'sunpower', 'phone')
        with pytest.raises(ConsentLockedError):
            lead_matrix.set_partner(db_session, 'R1', 'solar', 'other-solar')

    def test_revoked_phone_consent_unlocks_partner(self, db_session, report, give_consent):
        consent, = give_consent('R1', 'solar', 'sunpower', 'sms')
        revoke(db_session, consent.id)
        db_session.commit()
        assert lead_matrix.set_partner(db_session, 'R1', 'solar', 'other-solar').partner_id == 'other-solar'

    def test_unknown_partner(self, db_session, report):
        with pytest.raises(NotFoundError):
            lead_matrix.set_partner(db_session, 'R1', 'solar', 'ghost')


class TestAutoAssign:

    def test_picks_least_recently_assigned(self, db_session, report):
        sunpower = db_session.get(Partner, 'sunpower')
        sunpower.last_assigned_at = datetime(2026, 1, 1) + timedelta(days=30)
        db_session.commit()

        partner = lead_matrix.auto_assign(db_session, 'R1', 'solar')
        assert partner.id == 'other-solar'
        assert partner.total_leads == 1

    def test_no_partner_in_category(self, db_session, report):
        assert lead_matrix.auto_assign(db_session, 'R1', 'lawn_service') is None

    def test_locked_by_phone_consent(self, db_session, report, give_consent):
        give_consent('R1', 'solar', 'sunpower', 'phone')
        with pytest.raises(ConsentLockedError):
            lead_matrix.auto_assign(db_session, 'R1', 'solar')


class TestOptIn:

    def test_email_opt_in(self, db_session, report):
        meta = CaptureMetadata(ip='198.51.100.4', gpc_signal=True)
        consents = lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'sunpower',
                                             True, False, 'Jane', meta)
        assert [(c.channel, c.consent_type) for c in consents] == [('email', 'global_email')]
        assert consents[0].gpc_signal is True
        entry = lead_matrix.get_entry(db_session, 'R1', 'solar')
        assert entry.is_interested is True

    def test_phone_sms_opt_in_creates_pair(self, db_session, report):
        consents = lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'sunpower',
                                             False, True, 'Jane')
        assert sorted(c.channel for c in consents) == ['phone', 'sms']
        assert {c.consent_type for c in consents} == {'one_to_one'}

    def test_opt_in_switches_partner(self, db_session, report):
        lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'other-solar', True, False, 'Jane')
        assert lead_matrix.get_entry(db_session, 'R1', 'solar').partner_id == 'other-solar'

    def test_partner_switch_blocked_by_phone_consent(self, db_session, report):
        lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'sunpower', False, True, 'Jane')
        with pytest.raises(ConsentLockedError):
            lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'other-solar', True, False, 'Jane')

    def test_channel_not_allowed_by_partner(self, db_session, report, make_partner):
        make_partner('email-only', allowed_channels=['email'])
        with pytest.raises(ValidationError):
            lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'email-only', False, True, 'Jane')
        assert db_session.query(Consent).count() == 0

    def test_signature_required(self, db_session, report):
        with pytest.raises(ValidationError):
            lead_matrix.record_opt_in(db_session, 'R1', 'solar', 'sunpower', True, False, '')


class TestMatrixView:

    def test_rows_in_category_order_with_flags(self, db_session, report, give_consent):
        give_consent('R1', 'solar', 'sunpower', 'phone')
        rows = lead_matrix.matrix_view(db_session, 'R1')

        assert rows[0]['categoryKey'] == 'utility_connect'
        solar = next(r for r in rows if r['categoryKey'] == 'solar')
        assert solar['categoryLabel'] == 'Solar Installation'
        assert solar['partner']['id'] == 'sunpower'
        assert solar['canEditInterest'] is False
        assert solar['canChangePartner'] is False
        pest = next(r for r in rows if r['categoryKey'] == 'pest_control')
        assert pest['partner'] is None
        assert pest['canEditInterest'] is True

    def test_unknown_report(self, db_session):
        with pytest.raises(NotFoundError):
            lead_matrix.matrix_view(db_session, 'nope')

    def test_portal_partners(self, db_session, report):
        partners = lead_matrix.portal_partners(db_session, 'R1')
        assert partners['solar']['id'] == 'sunpower'
        assert partners['pest_control'] is None
