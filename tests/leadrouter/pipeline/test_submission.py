"""Tests for leadrouter.pipeline.submission — idempotent creation and the retry policy."""
import json
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from leadrouter.database import utcnow
from leadrouter.errors import DuplicateSubmissionError, IneligibleError
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_submission import LeadSubmission
from leadrouter.pipeline import submission as submissions
from leadrouter.pipeline.submission import queue_submission, deliver_submission, NO_INTEREST
from leadrouter.services.circuit_breaker import BreakerRegistry
from leadrouter.services.partners import PartnerClient


def response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        resp.iter_content.return_value = []
    elif isinstance(body, str):
        resp.iter_content.return_value = [body.encode()]
    else:
        resp.iter_content.return_value = [json.dumps(body).encode()]
    return resp


@pytest.fixture
def http():
    mock = MagicMock()
    mock.post.return_value = response(200, {'id': 'ext-1'})
    return mock


@pytest.fixture
def partner_client(fake_redis, http):
    return PartnerClient(BreakerRegistry(fake_redis, failure_threshold=5), http=http)


@pytest.fixture
def pairing(db_session, finalized_report, make_partner, make_mapping, give_consent):
    """TX report, solar partner with an endpoint, interested, email consent given."""
    partner = make_partner('sunpower', endpoint='https://partner.example.com/leads',
                           auth_type='bearer', auth_config={'token': 'secret'})
    make_mapping(partner)
    finalized_report()
    entry = db_session.query(LeadMatrixEntry).filter_by(report_id='R1', category_key='solar').one()
    entry.is_interested = True
    db_session.commit()
    give_consent('R1', 'solar', 'sunpower', 'email')
    return partner


class TestQueueSubmission:

    def test_creates_queued_row(self, db_session, pairing):
        sub = queue_submission(db_session, 'R1', 'solar')
        assert sub.status == 'queued'
        assert sub.idempotency_key == 'R1:solar:sunpower'
        assert sub.retry_count == 0
        assert sub.payout_expected == 75.0
        assert sub.payout_due_date == date.today() + timedelta(days=30)

    def test_requires_interest(self, db_session, pairing):
        entry = db_session.query(LeadMatrixEntry).filter_by(report_id='R1', category_key='solar').one()
        entry.is_interested = False
        db_session.commit()
        with pytest.raises(IneligibleError) as exc:
            queue_submission(db_session, 'R1', 'solar')
        assert exc.value.message == NO_INTEREST

    def test_requires_consent(self, db_session, finalized_report, make_partner, make_mapping):
        make_mapping(make_partner('sunpower'))
        finalized_report()
        with pytest.raises(IneligibleError) as exc:
            queue_submission(db_session, 'R1', 'solar', require_interest=False)
        assert 'Insufficient consent' in exc.value.message

    def test_second_submit_is_duplicate(self, db_session, pairing):
        queue_submission(db_session, 'R1', 'solar')
        with pytest.raises(DuplicateSubmissionError):
            queue_submission(db_session, 'R1', 'solar')
        assert db_session.query(LeadSubmission).count() == 1

    def test_sent_submission_is_duplicate(self, db_session, pairing):
        sub = queue_submission(db_session, 'R1', 'solar')
        sub.status = 'sent'
        db_session.commit()
        with pytest.raises(DuplicateSubmissionError):
            queue_submission(db_session, 'R1', 'solar')

    def test_failed_submission_is_duplicate_and_keeps_error(self, db_session, pairing):
        sub = queue_submission(db_session, 'R1', 'solar')
        sub.status = 'failed'
        sub.retry_count = 3
        sub.error_message = 'boom'
        db_session.commit()

        with pytest.raises(DuplicateSubmissionError):
            queue_submission(db_session, 'R1', 'solar')

        db_session.refresh(sub)
        assert sub.status == 'failed'
        assert sub.retry_count == 3
        assert sub.error_message == 'boom'


class TestDeliverSubmission:

    def test_success_marks_sent(self, db_session, pairing, partner_client, http):
        sub = queue_submission(db_session, 'R1', 'solar')
        outcome = deliver_submission(db_session, sub.id, partner_client)

        assert outcome == submissions.SENT
        db_session.refresh(sub)
        assert sub.status == 'sent'
        assert sub.external_id == 'ext-1'
        assert sub.sent_at is not None
        assert sub.claimed_at is None
        assert sub.payload['leadId'] == sub.id
        assert sub.payload['roofType'] == 'needs_inspection'

        kwargs = http.post.call_args.kwargs
        assert kwargs['headers']['Authorization'] == 'Bearer secret'
        assert kwargs['timeout'] == (partner_client.connect_timeout, partner_client.read_timeout)

    def test_fails_twice_then_succeeds(self, db_session, pairing, partner_client, http):
        http.post.side_effect = [
            response(500, 'err'),
            requests.Timeout('read timed out'),
            response(201, {'leadId': 'ext-9'}),
        ]
        sub = queue_submission(db_session, 'R1', 'solar')

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.RETRY
        assert deliver_submission(db_session, sub.id, partner_client) == submissions.RETRY
        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SENT

        db_session.refresh(sub)
        assert sub.status == 'sent'
        assert sub.retry_count == 2
        assert sub.external_id == 'ext-9'

    def test_three_failures_mark_failed_and_notify(self, db_session, pairing, partner_client, http):
        http.post.return_value = response(503, 'unavailable')
        notifier = MagicMock()
        sub = queue_submission(db_session, 'R1', 'solar')

        outcomes = [
            deliver_submission(db_session, sub.id, partner_client, max_retries=3, notifier=notifier)
            for _ in range(3)
        ]

        assert outcomes == [submissions.RETRY, submissions.RETRY, submissions.FAILED]
        db_session.refresh(sub)
        assert sub.status == 'failed'
        assert sub.retry_count == 3
        assert '503' in sub.error_message
        notifier.submission_failed.assert_called_once()

        # Failed rows are not claimable any more
        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SKIPPED
        assert http.post.call_count == 3

    def test_non_json_success_has_no_external_id(self, db_session, pairing, partner_client, http):
        http.post.return_value = response(200)
        sub = queue_submission(db_session, 'R1', 'solar')
        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SENT
        db_session.refresh(sub)
        assert sub.external_id is None

    def test_open_circuit_defers_without_retry(self, db_session, pairing, partner_client, http, fake_redis):
        breaker = partner_client.breakers.get('sunpower')
        fake_redis.set(breaker._state_key, 'open')
        fake_redis.set(breaker._last_failure_key, str(9e12))
        sub = queue_submission(db_session, 'R1', 'solar')

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.DEFERRED_OUTCOME
        db_session.refresh(sub)
        assert sub.status == 'queued'
        assert sub.retry_count == 0
        http.post.assert_not_called()

    def test_revoked_consent_skips(self, db_session, pairing, partner_client, http):
        from leadrouter.services.consent import consents_for, revoke
        sub = queue_submission(db_session, 'R1', 'solar')
        for consent in consents_for(db_session, 'R1', 'solar'):
            revoke(db_session, consent.id)
        db_session.commit()

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SKIPPED
        db_session.refresh(sub)
        assert sub.status == 'queued'
        http.post.assert_not_called()

    def test_reassigned_partner_skips(self, db_session, pairing, partner_client, http, make_partner):
        sub = queue_submission(db_session, 'R1', 'solar')
        make_partner('other-solar')
        entry = db_session.query(LeadMatrixEntry).filter_by(report_id='R1', category_key='solar').one()
        entry.partner_id = 'other-solar'
        db_session.commit()

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SKIPPED
        http.post.assert_not_called()

    def test_no_endpoint_records_manual_id(self, db_session, pairing, partner_client, http):
        pairing.endpoint = None
        db_session.commit()
        sub = queue_submission(db_session, 'R1', 'solar')

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SENT
        db_session.refresh(sub)
        assert sub.external_id.startswith('manual_')
        http.post.assert_not_called()

    def test_claimed_submission_is_skipped(self, db_session, pairing, partner_client, http):
        sub = queue_submission(db_session, 'R1', 'solar')
        sub.claimed_at = utcnow()
        db_session.commit()

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SKIPPED
        http.post.assert_not_called()

    def test_stale_claim_is_taken_over(self, db_session, pairing, partner_client):
        sub = queue_submission(db_session, 'R1', 'solar')
        sub.claimed_at = utcnow() - timedelta(hours=1)
        db_session.commit()

        assert deliver_submission(db_session, sub.id, partner_client) == submissions.SENT
