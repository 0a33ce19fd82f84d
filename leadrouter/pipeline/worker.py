"""
Submission worker — periodic pass over the lead matrix and the submission queue.

A pass:
  1. enqueue phase:  interested rows with a partner and no submission yet
                     → eligibility → queue_submission
  2. delivery phase: every queued submission, sequentially, with a fixed
                     delay between deliveries

Runs once at startup and then every `interval` seconds. Failed submissions
are permanent and never picked up again.
"""
import logging
import threading
import time
from typing import Optional

import redis

from leadrouter.config import load_settings
from leadrouter.database import make_engine, make_session_factory, import_models
from leadrouter.errors import DuplicateSubmissionError, IneligibleError
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_submission import LeadSubmission, make_idempotency_key
from leadrouter.pipeline import submission as submissions
from leadrouter.pipeline.base import PassResult
from leadrouter.pipeline.eligibility import check_eligibility
from leadrouter.services.circuit_breaker import BreakerRegistry
from leadrouter.services.notifications import SlackNotifier
from leadrouter.services.partners import PartnerClient

logger = logging.getLogger('pipeline.worker')


class SubmissionWorker:

    def __init__(self, session_factory, partner_client, max_retries=3,
                 throttle_seconds=1.0, interval=900, notifier=None,
                 sleep=time.sleep, engine=None):
        self.session_factory = session_factory
        self.partner_client = partner_client
        self.max_retries = max_retries
        self.throttle_seconds = throttle_seconds
        self.interval = interval
        self.notifier = notifier
        self.sleep = sleep
        self.engine = engine
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── One pass ──────────────────────────────────────────────────────

    def run_pass(self) -> PassResult:
        result = PassResult()
        session = self.session_factory()
        try:
            self.enqueue_eligible(session, result)
            self.deliver_queued(session, result)
        finally:
            session.close()

        logger.info("Submission pass complete: %s", result.to_dict())
        return result

    def enqueue_eligible(self, session, result: PassResult):
        entries = (
            session.query(LeadMatrixEntry)
            .filter(LeadMatrixEntry.is_interested.is_(True),
                    LeadMatrixEntry.partner_id.isnot(None))
            .all()
        )
        existing = {key for (key,) in session.query(LeadSubmission.idempotency_key).all()}

        for entry in entries:
            key = make_idempotency_key(entry.report_id, entry.category_key, entry.partner_id)
            if key in existing:
                continue
            if not check_eligibility(session, entry.report_id, entry.category_key).eligible:
                continue
            try:
                submissions.queue_submission(session, entry.report_id, entry.category_key)
                result.queued += 1
            except (DuplicateSubmissionError, IneligibleError) as e:
                logger.debug("Not queuing %s: %s", key, e)
            except Exception as e:
                session.rollback()
                logger.error("Failed to queue %s", key, exc_info=True)
                result.errors.append(f'{key}: {e}')

    def deliver_queued(self, session, result: PassResult):
        queued_ids = [
            sid for (sid,) in session.query(LeadSubmission.id)
            .filter_by(status='queued')
            .order_by(LeadSubmission.created_at, LeadSubmission.id)
            .all()
        ]

        attempted = False
        for submission_id in queued_ids:
            if attempted and self.throttle_seconds > 0:
                self.sleep(self.throttle_seconds)
            outcome = self.process_submission(session, submission_id, result)
            attempted = outcome in (submissions.SENT, submissions.RETRY, submissions.FAILED)

    def process_submission(self, session, submission_id, result: PassResult = None) -> Optional[str]:
        """Deliver one submission, tallying the outcome into result. Never raises."""
        result = result if result is not None else PassResult()
        try:
            outcome = submissions.deliver_submission(
                session, submission_id, self.partner_client,
                max_retries=self.max_retries, notifier=self.notifier,
            )
        except Exception as e:
            session.rollback()
            logger.error("Delivery of submission %s crashed", submission_id, exc_info=True)
            result.errors.append(f'{submission_id}: {e}')
            return None

        if outcome == submissions.SENT:
            result.sent += 1
        elif outcome == submissions.RETRY:
            result.retried += 1
        elif outcome == submissions.FAILED:
            result.failed += 1
        elif outcome == submissions.DEFERRED_OUTCOME:
            result.deferred += 1
        else:
            result.skipped += 1
        return outcome

    def deliver_one(self, submission_id) -> Optional[str]:
        session = self.session_factory()
        try:
            return self.process_submission(session, submission_id)
        finally:
            session.close()

    # ── Scheduling ────────────────────────────────────────────────────

    def run_forever(self):
        """Pass immediately, then every `interval` seconds until stop()."""
        logger.info("Submission worker started (interval=%ss)", self.interval)
        while True:
            try:
                self.run_pass()
            except Exception:
                logger.error("Submission pass failed", exc_info=True)
            if self._stop.wait(self.interval):
                break
        logger.info("Submission worker stopped")

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name='submission-worker', daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def close(self):
        if self.engine is not None:
            self.engine.dispose()


def create_worker(config=None, redis_client=None, http=None) -> SubmissionWorker:
    """Wire a SubmissionWorker from settings. Owns its own engine and clients."""
    settings = load_settings(config)

    engine = make_engine(settings['DATABASE_URL'])
    import_models()
    session_factory = make_session_factory(engine)

    if redis_client is None:
        redis_client = redis.from_url(settings['REDIS_URL'], decode_responses=True)

    breakers = BreakerRegistry(
        redis_client,
        failure_threshold=settings['PARTNER_BREAKER_THRESHOLD'],
        reset_timeout=settings['PARTNER_BREAKER_RESET_SECONDS'],
    )
    client_kwargs = {'http': http} if http is not None else {}
    partner_client = PartnerClient(
        breakers,
        connect_timeout=settings['PARTNER_CONNECT_TIMEOUT'],
        read_timeout=settings['PARTNER_READ_TIMEOUT'],
        total_timeout=settings['PARTNER_TOTAL_TIMEOUT'],
        **client_kwargs,
    )

    return SubmissionWorker(
        session_factory,
        partner_client,
        max_retries=settings['SUBMISSION_MAX_RETRIES'],
        throttle_seconds=settings['SUBMISSION_THROTTLE_SECONDS'],
        interval=settings['SUBMISSION_INTERVAL_SECONDS'],
        notifier=SlackNotifier(settings['SLACK_WEBHOOK_URL']),
        engine=engine,
    )
