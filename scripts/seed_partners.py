#!/usr/bin/env python3
"""
Load the partner catalog into the registry.

Upserts every partner in the YAML file and its (region, category) mappings.
Safe to re-run; existing rows are updated in place.

Usage:
    python scripts/seed_partners.py                       # partners.yaml at repo root
    python scripts/seed_partners.py --file other.yaml
    python scripts/seed_partners.py --dry-run             # validate only

Requires: DATABASE_URL set (or defaults to sqlite:///local.db), schema
migrated with `alembic upgrade head`.
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadrouter.config import load_settings
from leadrouter.database import make_engine, make_session_factory, import_models
from leadrouter.logging_config import configure_logging
from leadrouter.services.partner_catalog import load_catalog, sync_catalog

logger = logging.getLogger('scripts.seed_partners')


def main(argv=None):
    settings = load_settings()
    parser = argparse.ArgumentParser(description='Seed partners from a YAML catalog')
    parser.add_argument('--file', default=settings['PARTNER_CATALOG_PATH'])
    parser.add_argument('--dry-run', action='store_true', help='Validate the file without writing')
    args = parser.parse_args(argv)

    configure_logging()
    partners = load_catalog(args.file)
    print(f"Loaded {len(partners)} partners from {args.file}")
    if args.dry_run:
        return 0

    engine = make_engine(settings['DATABASE_URL'])
    import_models()
    session = make_session_factory(engine)()
    try:
        written, mappings = sync_catalog(session, partners)
    finally:
        session.close()
        engine.dispose()

    print(f"Seeded {written} partners, {mappings} mappings")
    return 0


if __name__ == '__main__':
    sys.exit(main())
