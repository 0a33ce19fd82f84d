"""
Database engine + session factory.

Defaults to SQLite for local dev, Postgres in production. The engine and
session factory are built by whoever owns the process (create_app or
create_worker) and handed down; nothing here connects at import time.
"""
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def utcnow():
    """Naive UTC timestamp — what SQLite hands back, so comparisons stay consistent."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_engine(database_url):
    """Build an engine for the given URL."""
    # Railway injects postgres:// but SQLAlchemy 2.x requires postgresql://
    url = database_url.replace('postgres://', 'postgresql://', 1)

    if url in ('sqlite://', 'sqlite:///:memory:'):
        # One shared connection, otherwise every checkout sees an empty DB
        return create_engine(
            url,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    if url.startswith('sqlite'):
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


def make_session_factory(engine):
    """Return a sessionmaker bound to engine."""
    return sessionmaker(bind=engine)


def import_models():
    """Import every model module so Base.metadata knows about all tables."""
    import importlib
    for name in ('lead_profile', 'partner', 'lead_matrix', 'consent',
                 'lead_submission', 'contractor'):
        importlib.import_module(f'leadrouter.models.{name}')
