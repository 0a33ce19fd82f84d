"""Shared test fixtures."""
from datetime import datetime

import pytest
from unittest.mock import MagicMock

from leadrouter.database import Base, make_engine, make_session_factory, import_models


class FakeRedis:
    """Minimal in-memory Redis fake for circuit breaker tests."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value):
        self.get_store[key] = value

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = value

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that executes on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def set(self, key, value):
        self._ops.append(('set', key, value))
        return self

    def delete(self, *keys):
        self._ops.append(('delete', keys))
        return self

    def hincrby(self, key, field, amount):
        self._ops.append(('hincrby', key, field, amount))
        return self

    def hset(self, key, field, value):
        self._ops.append(('hset', key, field, value))
        return self

    def execute(self):
        for op in self._ops:
            if op[0] == 'set':
                self._redis.set(op[1], op[2])
            elif op[0] == 'delete':
                self._redis.delete(*op[1])
            elif op[0] == 'hincrby':
                self._redis.hincrby(op[1], op[2], op[3])
            elif op[0] == 'hset':
                self._redis.hset(op[1], op[2], op[3])
        self._ops = []


@pytest.fixture
def fake_redis():
    """In-memory Redis fake with dict-backed storage."""
    return FakeRedis()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = make_engine('sqlite://')
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    """SQLAlchemy session bound to in-memory SQLite."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def app(db_engine, fake_redis):
    """Flask test app sharing the test engine, with a mocked RQ queue."""
    from leadrouter import create_app
    app = create_app(config={'DATABASE_URL': 'sqlite://'}, redis_client=fake_redis)
    app.config['TESTING'] = True
    services = app.extensions['leadrouter']
    services['engine'].dispose()
    services['engine'] = db_engine
    services['session_factory'] = make_session_factory(db_engine)
    services['submission_queue'] = MagicMock()
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Data factories ───────────────────────────────────────────────────────────

@pytest.fixture
def make_partner(db_session):
    from leadrouter.models.partner import Partner

    def _make(id='partner-1', category='solar', region='TX', **overrides):
        defaults = dict(
            name=f'Partner {id}',
            endpoint=None,
            allowed_channels=['email', 'phone', 'sms'],
            payout_amount=75.0,
            payout_terms='net_30',
            is_active=True,
            rating=0.0,
            is_priority=False,
            total_leads=0,
            converted_leads=0,
            created_at=datetime(2026, 1, 1),
        )
        defaults.update(overrides)
        partner = Partner(id=id, category=category, region=region, **defaults)
        db_session.add(partner)
        db_session.commit()
        return partner
    return _make


@pytest.fixture
def make_mapping(db_session):
    from leadrouter.models.partner import StatePartnerMapping

    def _make(partner, region='TX', category_key=None, priority=1, is_active=True):
        mapping = StatePartnerMapping(
            region=region,
            category_key=category_key or partner.category,
            partner_id=partner.id,
            priority=priority,
            is_active=is_active,
        )
        db_session.add(mapping)
        db_session.commit()
        return mapping
    return _make


@pytest.fixture
def finalized_report(db_session):
    """Finalize a TX report with a roof issue; returns the report id."""
    from leadrouter.pipeline.finalization import ReportFinalizedEvent, on_report_finalized

    def _finalize(report_id='R1', region='TX', issues=None, photo_urls=None):
        event = ReportFinalizedEvent(
            report_id=report_id,
            address='123 Main St, Austin, TX',
            region=region,
            client_name='Jane Homeowner',
            client_email='jane@example.com',
            client_phone='512-555-0100',
            issues=issues if issues is not None else [
                {'title': 'Roof shingles damaged', 'severity': 'major', 'tags': ['roofing']},
                {'title': 'Kitchen faucet drips', 'severity': 'minor'},
            ],
            photo_urls=photo_urls or [],
        )
        on_report_finalized(db_session, event)
        return report_id
    return _finalize


@pytest.fixture
def give_consent(db_session):
    from leadrouter.services.consent import record_consent

    def _give(report_id, category_key, partner_id, *channels):
        consents = []
        for channel in channels:
            consent_type = 'global_email' if channel == 'email' else 'one_to_one'
            consents.append(record_consent(
                db_session, report_id, category_key, partner_id, channel, consent_type, 'Jane',
            ))
        db_session.commit()
        return consents
    return _give
