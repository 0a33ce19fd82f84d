"""
Structured logging configuration.

Called once from create_app() and from the worker entry point. Supports text
(human-readable) and JSON formats via LOG_FORMAT. LOG_LEVEL defaults to INFO.

Routing code attaches the lead it is working on through `extra=`
(see lead_context()); both formats render those fields so one submission can
be followed across the web process, the RQ job and the periodic worker.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Record attributes set via extra=lead_context(...), in output order
CONTEXT_FIELDS = ('report_id', 'category_key', 'partner_id', 'submission_id')


def lead_context(submission=None, **fields):
    """extra= dict for a log call about a submission (or loose ids)."""
    context = {}
    if submission is not None:
        context = {
            'report_id': submission.report_id,
            'category_key': submission.category_key,
            'partner_id': submission.partner_id,
            'submission_id': submission.id,
        }
    context.update({k: v for k, v in fields.items() if k in CONTEXT_FIELDS})
    return context


def _context_of(record):
    return {name: getattr(record, name) for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'pid': record.process,
        }
        entry.update(_context_of(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    """Human-readable lines, lead context appended as key=value pairs."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(levelname)s %(name)s: %(message)s',
                         datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        context = _context_of(record)
        if context:
            pairs = ' '.join(f'{k}={v}' for k, v in context.items())
            first, sep, rest = line.partition('\n')
            line = f'{first} [{pairs}]{sep}{rest}'
        return line


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'requests',
    'rq.worker',
    'redis',
    'sqlalchemy.engine',
    'alembic.runtime.migration',
]


def configure_logging(app=None, level_name=None, log_format=None):
    """
    Set up root logger with format/level from env vars (or explicit args).

    Environment variables:
        LOG_LEVEL: Python log level name (default: INFO)
        LOG_FORMAT: "text" (default) or "json"
    """
    level_name = (level_name or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = (log_format or os.getenv('LOG_FORMAT', 'text')).lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if log_format == 'json' else TextFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
