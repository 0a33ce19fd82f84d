"""
Error taxonomy for the lead routing pipeline.

Route handlers raise these; create_app() registers handlers that turn them
into JSON responses. Transient delivery problems are NOT exceptions; they
come back as DeliveryResult values.
"""


class LeadRoutingError(Exception):
    """Base class. status_code is the HTTP status the API surfaces."""
    status_code = 500

    def __init__(self, message):
        self.message = message
        super().__init__(message)


class ValidationError(LeadRoutingError):
    """Missing / malformed input, unknown category. Never retried."""
    status_code = 400


class NotFoundError(LeadRoutingError):
    status_code = 404


class BusinessRuleError(LeadRoutingError):
    """A well-formed request the current state does not allow."""
    status_code = 400


class ConsentLockedError(BusinessRuleError):
    """Interest or partner edit attempted after consent locked the pairing."""


class DuplicateSubmissionError(BusinessRuleError):
    """A submission already exists for the idempotency key."""

    def __init__(self, idempotency_key, message='Lead already submitted for this category'):
        self.idempotency_key = idempotency_key
        super().__init__(message)


class IneligibleError(BusinessRuleError):
    """Submission requested while the pairing fails the eligibility check."""
