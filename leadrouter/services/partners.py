"""
Partner registry lookups + the HTTP delivery client.

PartnerClient.deliver() never raises for a partner-side problem; network
errors, non-2xx responses and open circuits all come back as a DeliveryResult.
"""
import json
import logging
import secrets
import time
from datetime import date, timedelta
from typing import Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from leadrouter.config import (
    LEAD_CATEGORIES, PAYOUT_TERMS_DAYS, DEFAULT_PAYOUT_DAYS,
    PARTNER_CONNECT_TIMEOUT, PARTNER_READ_TIMEOUT, PARTNER_TOTAL_TIMEOUT,
)
from leadrouter.models.partner import Partner
from leadrouter.pipeline.base import DeliveryResult, DELIVERED, FAILED, DEFERRED
from leadrouter.services.circuit_breaker import CircuitOpenError

logger = logging.getLogger('services.partners')

EXTERNAL_ID_FIELDS = ('id', 'leadId', 'externalId')


# ── Registry ─────────────────────────────────────────────────────────────────

def partners_by_category(session) -> Dict[str, List[Dict]]:
    """Active partners grouped by category, every known category present."""
    grouped = {key: [] for key in LEAD_CATEGORIES}
    partners = (
        session.query(Partner)
        .filter(Partner.is_active.is_(True))
        .order_by(Partner.name)
        .all()
    )
    for partner in partners:
        grouped.setdefault(partner.category, []).append(partner.to_dict())
    return grouped


def payout_due_date(payout_terms: Optional[str], today: date = None) -> Optional[date]:
    """net_30/60/90 → today + N days; unknown terms → 30 days; no terms → None."""
    if not payout_terms:
        return None
    today = today or date.today()
    return today + timedelta(days=PAYOUT_TERMS_DAYS.get(payout_terms, DEFAULT_PAYOUT_DAYS))


def manual_external_id(now=None) -> str:
    """Synthetic id for partners onboarded without an endpoint."""
    millis = int((now if now is not None else time.time()) * 1000)
    return f'manual_{millis}_{secrets.token_hex(3)}'


# ── Delivery ─────────────────────────────────────────────────────────────────

def auth_for(partner):
    """(headers, auth) for requests, from the partner's auth_type/auth_config."""
    config = partner.auth_config or {}
    auth_type = (partner.auth_type or '').lower()

    if auth_type in ('api_key', 'bearer'):
        token = config.get('token') or config.get('apiKey') or config.get('api_key')
        if token:
            return {'Authorization': f'Bearer {token}'}, None
    elif auth_type == 'basic':
        username = config.get('username')
        if username:
            return {}, HTTPBasicAuth(username, config.get('password') or '')
    return {}, None


def extract_external_id(body) -> Optional[str]:
    try:
        data = json.loads(body or b'')
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for key in EXTERNAL_ID_FIELDS:
        if data.get(key):
            return str(data[key])
    return None


class PartnerRejected(Exception):
    """Partner endpoint answered with a non-2xx status."""


class DeliveryDeadlineExceeded(requests.Timeout):
    """The whole POST, body included, ran past the client's total timeout."""


def read_body(response, deadline, clock=time.monotonic) -> bytes:
    """Read a streamed response, giving up once the wall-clock deadline passes."""
    chunks = []
    for chunk in response.iter_content(chunk_size=8192):
        if clock() > deadline:
            raise DeliveryDeadlineExceeded('Partner response exceeded total timeout')
        chunks.append(chunk)
    return b''.join(chunks)


class PartnerClient:
    """
    POSTs payloads to partner endpoints through a per-partner circuit breaker.

    `http` is anything with a requests-compatible post(); tests pass a mock.
    The (connect, read) timeout bounds each socket wait; total_timeout bounds
    the whole call, so a partner trickling its response cannot stall a pass.
    """

    def __init__(self, breakers, connect_timeout=PARTNER_CONNECT_TIMEOUT,
                 read_timeout=PARTNER_READ_TIMEOUT, total_timeout=PARTNER_TOTAL_TIMEOUT,
                 http=requests, clock=time.monotonic):
        self.breakers = breakers
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.total_timeout = total_timeout
        self.http = http
        self.clock = clock

    def deliver(self, partner, payload) -> DeliveryResult:
        if not partner.endpoint:
            external_id = manual_external_id()
            logger.info("Partner %s has no endpoint, recorded as %s", partner.id, external_id)
            return DeliveryResult(status=DELIVERED, external_id=external_id)

        breaker = self.breakers.get(partner.id)
        try:
            body = breaker.call(self._post, partner, payload)
        except CircuitOpenError as e:
            error = f'Circuit open for partner {partner.id}'
            if e.retry_after is not None:
                error += f', retry in {int(e.retry_after)}s'
            logger.warning("%s, deferring delivery", error)
            return DeliveryResult(status=DEFERRED, error=error)
        except PartnerRejected as e:
            logger.warning("Partner %s rejected lead: %s", partner.id, e)
            return DeliveryResult(status=FAILED, error=str(e))
        except requests.RequestException as e:
            logger.warning("Delivery to partner %s failed: %s", partner.id, e)
            return DeliveryResult(status=FAILED, error=str(e)[:500])

        external_id = extract_external_id(body)
        logger.info("Lead delivered to partner %s (external id %s)", partner.id, external_id)
        return DeliveryResult(status=DELIVERED, external_id=external_id)

    def _post(self, partner, payload) -> bytes:
        headers, auth = auth_for(partner)
        headers['Content-Type'] = 'application/json'

        deadline = self.clock() + self.total_timeout
        response = self.http.post(
            partner.endpoint,
            json=payload,
            headers=headers,
            auth=auth,
            timeout=(self.connect_timeout, self.read_timeout),
            stream=True,
        )
        try:
            body = read_body(response, deadline, self.clock)
        finally:
            response.close()

        if not 200 <= response.status_code < 300:
            text = body[:200].decode('utf-8', errors='replace')
            raise PartnerRejected(f'Partner API error: {response.status_code} {text}')
        return body
