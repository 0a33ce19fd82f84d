"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints. The app owns
its clients (engine, session factory, Redis, breakers, partner client, RQ
queue); they live in app.extensions['leadrouter'] and route handlers reach
them through get_session() / get_service().
"""
import logging

import redis
from flask import Flask, jsonify, current_app, g
from rq import Queue

from leadrouter.config import load_settings
from leadrouter.database import make_engine, make_session_factory, import_models
from leadrouter.errors import LeadRoutingError

logger = logging.getLogger('leadrouter')


def get_service(name):
    return current_app.extensions['leadrouter'][name]


def get_session():
    """Request-scoped session, closed on teardown."""
    if 'db_session' not in g:
        g.db_session = get_service('session_factory')()
    return g.db_session


def create_app(config=None, redis_client=None):
    """Create and configure the Flask application."""
    from leadrouter.logging_config import configure_logging
    from leadrouter.services.circuit_breaker import BreakerRegistry
    from leadrouter.services.partners import PartnerClient

    app = Flask(__name__)
    settings = load_settings(config)
    app.config.update(settings)

    configure_logging(app)

    engine = make_engine(settings['DATABASE_URL'])
    if redis_client is None:
        redis_client = redis.from_url(settings['REDIS_URL'], decode_responses=True)

    breakers = BreakerRegistry(
        redis_client,
        failure_threshold=settings['PARTNER_BREAKER_THRESHOLD'],
        reset_timeout=settings['PARTNER_BREAKER_RESET_SECONDS'],
    )

    app.extensions['leadrouter'] = {
        'engine': engine,
        'session_factory': make_session_factory(engine),
        'redis': redis_client,
        'breakers': breakers,
        'partner_client': PartnerClient(
            breakers,
            connect_timeout=settings['PARTNER_CONNECT_TIMEOUT'],
            read_timeout=settings['PARTNER_READ_TIMEOUT'],
            total_timeout=settings['PARTNER_TOTAL_TIMEOUT'],
        ),
        'submission_queue': Queue(settings['SUBMISSION_QUEUE_NAME'], connection=redis_client),
    }

    @app.teardown_appcontext
    def close_session(exc):
        db_session = g.pop('db_session', None)
        if db_session is not None:
            if exc is not None:
                db_session.rollback()
            db_session.close()

    @app.errorhandler(LeadRoutingError)
    def handle_routing_error(e):
        if e.status_code >= 500:
            logger.error("Unhandled routing error: %s", e.message, exc_info=True)
        return jsonify({'error': e.message}), e.status_code

    # Register blueprints
    from leadrouter.routes.health import bp as health_bp
    from leadrouter.routes.events import bp as events_bp
    from leadrouter.routes.lead_matrix import bp as lead_matrix_bp
    from leadrouter.routes.portal import bp as portal_bp
    from leadrouter.routes.marketplace import bp as marketplace_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(lead_matrix_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(marketplace_bp)

    # Import models so Base.metadata knows about them.
    # Schema is managed by Alembic, no create_all() here.
    import_models()

    return app
