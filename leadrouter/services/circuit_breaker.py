"""
Circuit breaker pattern with Redis-backed state and health tracking.

One breaker per partner endpoint. States:
  - CLOSED    → normal operation, deliveries go out
  - OPEN      → too many consecutive failures, deliveries are deferred
  - HALF_OPEN → after reset_timeout, allows one probe delivery

Redis being unavailable fails open: the breaker reports CLOSED and delivery
proceeds, so a cache outage never stops submissions.
"""
import logging
import time

import redis

logger = logging.getLogger('services.circuit_breaker')

# State constants
CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN, partner unavailable")


def _text(value):
    if isinstance(value, bytes):
        return value.decode()
    return value


class CircuitBreaker:
    """
    Redis-backed circuit breaker.

    Usage:
        cb = CircuitBreaker('partner:acme-solar', redis_client, failure_threshold=5)
        cb.call(post_lead, partner, payload)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=300, clock=time.time):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout  # seconds before OPEN → HALF_OPEN
        self.clock = clock

    # ── Redis keys ────────────────────────────────────────────────────

    @property
    def _state_key(self):
        return f'{self.PREFIX}:{self.name}:state'

    @property
    def _failures_key(self):
        return f'{self.PREFIX}:{self.name}:failures'

    @property
    def _last_failure_key(self):
        return f'{self.PREFIX}:{self.name}:last_failure'

    @property
    def _health_key(self):
        return f'{self.PREFIX}:{self.name}:health'

    # ── State management ──────────────────────────────────────────────

    @property
    def state(self):
        try:
            s = _text(self.redis.get(self._state_key))
            if s is None:
                return CLOSED
            if s == OPEN and self._open_expired():
                self.redis.set(self._state_key, HALF_OPEN)
                return HALF_OPEN
            return s
        except redis.RedisError as e:
            logger.debug("Circuit '%s' state unavailable: %s", self.name, e)
            return CLOSED

    def _open_expired(self):
        last = _text(self.redis.get(self._last_failure_key))
        return bool(last) and (self.clock() - float(last)) > self.reset_timeout

    @property
    def failure_count(self):
        try:
            val = _text(self.redis.get(self._failures_key))
            return int(val) if val else 0
        except redis.RedisError:
            return 0

    def retry_after(self):
        try:
            last = _text(self.redis.get(self._last_failure_key))
        except redis.RedisError:
            return None
        if not last:
            return None
        return max(0.0, self.reset_timeout - (self.clock() - float(last)))

    # ── Health metrics ────────────────────────────────────────────────

    def get_health(self):
        """Return health metrics dict for this partner."""
        try:
            data = {_text(k): _text(v) for k, v in (self.redis.hgetall(self._health_key) or {}).items()}
        except redis.RedisError:
            data = None

        if data is None:
            return {
                'name': self.name,
                'state': 'unknown',
                'failure_count': 0,
                'failure_threshold': self.failure_threshold,
                'reset_timeout': self.reset_timeout,
                'total_success': 0,
                'total_failure': 0,
                'last_success': None,
                'last_failure': None,
                'last_error': '',
            }

        return {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }

    # ── Core call logic ───────────────────────────────────────────────

    def allow(self):
        """True unless the circuit is OPEN."""
        return self.state != OPEN

    def call(self, func, *args, **kwargs):
        """Execute func through the circuit breaker."""
        if not self.allow():
            raise CircuitOpenError(self.name, retry_after=self.retry_after())

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result

    def record_success(self):
        """Reset failure count, close circuit."""
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._state_key, CLOSED)
            pipe.set(self._failures_key, 0)
            pipe.hincrby(self._health_key, 'success', 1)
            pipe.hset(self._health_key, 'last_success', str(self.clock()))
            pipe.execute()
        except redis.RedisError as e:
            logger.debug("Circuit '%s' success not recorded: %s", self.name, e)

    def record_failure(self, error):
        """Increment failures, open circuit if threshold reached."""
        now = str(self.clock())
        try:
            new_count = self.redis.incr(self._failures_key)
            self.redis.set(self._last_failure_key, now)
            pipe = self.redis.pipeline()
            pipe.hincrby(self._health_key, 'failure', 1)
            pipe.hset(self._health_key, 'last_failure', now)
            pipe.hset(self._health_key, 'last_error', str(error)[:200])
            pipe.execute()
            if new_count >= self.failure_threshold:
                self.redis.set(self._state_key, OPEN)
        except redis.RedisError as e:
            logger.debug("Circuit '%s' failure not recorded: %s", self.name, e)
            return

        if new_count >= self.failure_threshold:
            logger.warning(
                "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                self.name, new_count, self.failure_threshold, error,
            )
        else:
            logger.info(
                "Circuit '%s' failure %d/%d: %s",
                self.name, new_count, self.failure_threshold, error,
            )

    def reset(self):
        """Manually reset the circuit breaker to closed state."""
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._state_key, CLOSED)
            pipe.set(self._failures_key, 0)
            pipe.delete(self._last_failure_key)
            pipe.execute()
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except redis.RedisError as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)


class BreakerRegistry:
    """Creates one breaker per partner on first use, all sharing one Redis client."""

    def __init__(self, redis_client, failure_threshold=5, reset_timeout=300):
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._breakers = {}

    @staticmethod
    def name_for(partner_id):
        return f'partner:{partner_id}'

    def get(self, partner_id):
        name = self.name_for(partner_id)
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name, self.redis,
                failure_threshold=self.failure_threshold,
                reset_timeout=self.reset_timeout,
            )
        return self._breakers[name]

    def all(self):
        return dict(self._breakers)
