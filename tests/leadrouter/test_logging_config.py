"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch, MagicMock

import pytest

from leadrouter.logging_config import configure_logging, lead_context, JSONFormatter


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_env_var_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_explicit_level_wins(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'DEBUG'}):
            configure_logging(level_name='WARNING')
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_text_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('pipeline.worker').info("pass complete")
        output = capsys.readouterr().err
        assert 'pipeline.worker' in output
        assert 'pass complete' in output
        assert 'INFO' in output

    def test_json_format_produces_parseable_json(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('services.partners').warning("partner rejected lead")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'WARNING'
        assert parsed['logger'] == 'services.partners'
        assert parsed['message'] == 'partner rejected lead'

    def test_no_duplicate_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_noisy_loggers_quieted(self):
        configure_logging()
        assert logging.getLogger('urllib3').level == logging.WARNING
        assert logging.getLogger('rq.worker').level == logging.WARNING


class TestJSONFormatter:

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = logging.LogRecord('x', logging.ERROR, __file__, 1, 'failed', None, sys.exc_info())
        parsed = json.loads(JSONFormatter().format(record))
        assert 'ValueError: boom' in parsed['exception']


class TestLeadContext:

    def test_from_submission(self):
        sub = MagicMock(report_id='R1', category_key='solar', partner_id='sunpower', id='sub-1')
        assert lead_context(sub) == {
            'report_id': 'R1', 'category_key': 'solar',
            'partner_id': 'sunpower', 'submission_id': 'sub-1',
        }

    def test_loose_ids_ignore_unknown_keys(self):
        assert lead_context(submission_id='sub-1', colour='red') == {'submission_id': 'sub-1'}

    def test_json_includes_context(self, capsys):
        configure_logging(log_format='json')
        logging.getLogger('pipeline.submission').info(
            "sent", extra=lead_context(submission_id='sub-1', partner_id='sunpower'))
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['submission_id'] == 'sub-1'
        assert parsed['partner_id'] == 'sunpower'
        assert 'report_id' not in parsed

    def test_text_appends_context(self, capsys):
        configure_logging(log_format='text')
        logging.getLogger('pipeline.submission').warning(
            "attempt failed", extra=lead_context(submission_id='sub-1'))
        line = capsys.readouterr().err.strip()
        assert line.endswith('attempt failed [submission_id=sub-1]')
