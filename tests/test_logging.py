import logging

import pytest
from pythonjsonlogger.json import JsonFormatter

from pp_app.core.config import settings
from pp_app.core.logging import setup_logging


@pytest.fixture(name="root_logger")
def root_logger_fixture():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_production_logs_are_json(root_logger, monkeypatch):
    monkeypatch.setattr(settings, "log_format", "json")
    setup_logging()
    (handler,) = root_logger.handlers
    assert isinstance(handler.formatter, JsonFormatter)


def test_dev_logs_are_plain_text(root_logger, monkeypatch):
    monkeypatch.setattr(settings, "log_format", "text")
    monkeypatch.setattr(settings, "log_level", "debug")
    setup_logging()
    (handler,) = root_logger.handlers
    assert not isinstance(handler.formatter, JsonFormatter)
    assert root_logger.level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
