"""
RQ jobs. Enqueued by the manual submit endpoint so an operator's submission
goes out right away instead of waiting for the next worker pass.
"""
import logging

from leadrouter.logging_config import lead_context

logger = logging.getLogger('pipeline.jobs')


def deliver_now(submission_id):
    from leadrouter.pipeline.worker import create_worker

    worker = create_worker()
    try:
        outcome = worker.deliver_one(submission_id)
        logger.info("Immediate delivery of %s: %s", submission_id, outcome,
                    extra=lead_context(submission_id=submission_id))
        return outcome
    finally:
        worker.close()
