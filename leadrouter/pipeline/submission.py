"""
Submission creation + single-submission delivery.

queue_submission() is the only way a LeadSubmission is created. The insert
against the unique idempotency key is the guard: a concurrent second insert
raises IntegrityError and is reported as a duplicate.

deliver_submission() runs one delivery attempt for one queued row and applies
the retry policy. Both the periodic worker pass and the immediate RQ job go
through it; a short lease on the row (claimed_at) keeps them from delivering
the same submission at the same time.
"""
import logging
from datetime import timedelta

from sqlalchemy import update, or_
from sqlalchemy.exc import IntegrityError

from leadrouter.config import SUBMISSION_MAX_RETRIES
from leadrouter.database import utcnow
from leadrouter.errors import DuplicateSubmissionError, IneligibleError, NotFoundError
from leadrouter.logging_config import lead_context
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_profile import LeadProfile
from leadrouter.models.lead_submission import LeadSubmission, make_idempotency_key
from leadrouter.models.partner import Partner
from leadrouter.pipeline.base import DEFERRED
from leadrouter.pipeline.eligibility import check_eligibility
from leadrouter.pipeline.payloads import build_payload
from leadrouter.services.partners import payout_due_date

logger = logging.getLogger('pipeline.submission')

NO_INTEREST = 'No interest indicated for this category'

# Outcomes of deliver_submission()
SENT = 'sent'
RETRY = 'retry'
FAILED = 'failed'
DEFERRED_OUTCOME = 'deferred'
SKIPPED = 'skipped'

CLAIM_LEASE = timedelta(minutes=5)


# ── Creation ─────────────────────────────────────────────────────────────────

def queue_submission(session, report_id, category_key, require_interest=True) -> LeadSubmission:
    """
    Create a queued submission for the pairing's current partner and commit.

    Raises IneligibleError when the pairing fails the interest or consent
    check, DuplicateSubmissionError when any submission already exists for
    the key. A `failed` submission is permanent and keeps its error.
    """
    entry = session.query(LeadMatrixEntry).filter_by(
        report_id=report_id, category_key=category_key,
    ).first()
    if entry is None:
        raise NotFoundError('Lead matrix entry not found')
    if require_interest and not entry.is_interested:
        raise IneligibleError(NO_INTEREST)

    eligibility = check_eligibility(session, report_id, category_key)
    if not eligibility.eligible:
        raise IneligibleError(eligibility.reason)

    partner = session.get(Partner, eligibility.partner_id)
    if partner is None:
        raise NotFoundError('Partner not found')

    key = make_idempotency_key(report_id, category_key, partner.id)
    submission = LeadSubmission(
        report_id=report_id,
        category_key=category_key,
        partner_id=partner.id,
        idempotency_key=key,
        status='queued',
        retry_count=0,
        payout_expected=partner.payout_amount,
        payout_due_date=payout_due_date(partner.payout_terms),
    )
    session.add(submission)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateSubmissionError(key)

    logger.info("Submission %s queued for %s -> %s", submission.id, key, partner.id,
                extra=lead_context(submission))
    return submission


# ── Delivery ─────────────────────────────────────────────────────────────────

def claim(session, submission_id, now=None) -> bool:
    """Take the delivery lease on a queued submission. False if someone holds it."""
    now = now or utcnow()
    result = session.execute(
        update(LeadSubmission)
        .where(
            LeadSubmission.id == submission_id,
            LeadSubmission.status == 'queued',
            or_(LeadSubmission.claimed_at.is_(None),
                LeadSubmission.claimed_at < now - CLAIM_LEASE),
        )
        .values(claimed_at=now)
    )
    session.commit()
    return result.rowcount == 1


def deliver_submission(session, submission_id, partner_client,
                       max_retries=SUBMISSION_MAX_RETRIES, notifier=None) -> str:
    """
    One delivery attempt: re-check eligibility, build payload, POST, apply the
    retry policy, commit. Returns one of SENT / RETRY / FAILED /
    DEFERRED_OUTCOME / SKIPPED.
    """
    if not claim(session, submission_id):
        logger.debug("Submission %s not claimable, skipping", submission_id)
        return SKIPPED

    submission = session.get(LeadSubmission, submission_id)
    try:
        outcome = _attempt(session, submission, partner_client, max_retries, notifier)
    finally:
        submission.claimed_at = None
        session.commit()
    return outcome


def _attempt(session, submission, partner_client, max_retries, notifier):
    # Consent may have been revoked since the row was queued
    eligibility = check_eligibility(session, submission.report_id, submission.category_key)
    if not eligibility.eligible:
        logger.info("Submission %s skipped: %s", submission.id, eligibility.reason,
                    extra=lead_context(submission))
        return SKIPPED
    if eligibility.partner_id != submission.partner_id:
        logger.info("Submission %s skipped: partner reassigned to %s",
                    submission.id, eligibility.partner_id, extra=lead_context(submission))
        return SKIPPED

    partner = session.get(Partner, submission.partner_id)
    if partner is None or not partner.is_active:
        logger.info("Submission %s skipped: partner %s inactive", submission.id, submission.partner_id,
                    extra=lead_context(submission))
        return SKIPPED

    profile = session.query(LeadProfile).filter_by(report_id=submission.report_id).first()
    payload = build_payload(submission, profile)
    submission.payload = payload

    result = partner_client.deliver(partner, payload)

    if result.success:
        submission.status = 'sent'
        submission.external_id = result.external_id
        submission.sent_at = utcnow()
        submission.error_message = None
        logger.info("Submission %s sent to %s", submission.id, partner.id,
                    extra=lead_context(submission))
        return SENT

    if result.status == DEFERRED:
        return DEFERRED_OUTCOME

    submission.retry_count = (submission.retry_count or 0) + 1
    submission.error_message = result.error
    if submission.retry_count >= max_retries:
        submission.status = 'failed'
        logger.error("Submission %s failed permanently after %d attempts: %s",
                     submission.id, submission.retry_count, result.error,
                     extra=lead_context(submission))
        if notifier is not None:
            notifier.submission_failed(submission, partner)
        return FAILED

    logger.warning("Submission %s attempt %d/%d failed: %s",
                   submission.id, submission.retry_count, max_retries, result.error,
                   extra=lead_context(submission))
    return RETRY
