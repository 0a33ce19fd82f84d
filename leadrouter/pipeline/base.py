"""
Pipeline result contracts.

Every step of the routing pipeline reports back through one of these
dataclasses instead of raising or returning bare dicts, so the worker and the
route handlers always see an explicit outcome.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any


@dataclass(frozen=True)
class Eligibility:
    """Outcome of the consent gate for one (report, category) pairing."""
    eligible: bool
    reason: Optional[str] = None
    partner_id: Optional[str] = None
    email_consent: bool = False
    phone_consent: bool = False
    sms_consent: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'eligible': self.eligible,
            'reason': self.reason,
            'partnerId': self.partner_id,
            'emailConsent': self.email_consent,
            'phoneConsent': self.phone_consent,
            'smsConsent': self.sms_consent,
        }


# DeliveryResult.status values
DELIVERED = 'delivered'
FAILED = 'failed'
DEFERRED = 'deferred'     # circuit open, nothing sent


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single POST to a partner endpoint."""
    status: str
    external_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == DELIVERED


@dataclass
class PassResult:
    """Counters for one worker pass."""
    queued: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'queued': self.queued,
            'sent': self.sent,
            'retried': self.retried,
            'failed': self.failed,
            'skipped': self.skipped,
            'deferred': self.deferred,
            'errors': self.errors[-20:],
        }
