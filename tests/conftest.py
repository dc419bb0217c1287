import logging
import time

import pytest

from ledgerlens.db import get_connection, init_db


@pytest.fixture
def db(tmp_path):
    """Provide an initialized temp DB connection."""
    db_path = tmp_path / "test.db"
    conn = get_connection(db_path)
    init_db(conn)
    yield conn
    conn.close()


class FakeRuleStore:
    """In-memory rule store that counts fetches and can fail or stall on demand."""

    def __init__(self, rules=None, error=None, delay=0.0):
        self.rules = rules or {}
        self.error = error
        self.delay = delay
        self.calls = 0

    def get_classification_rules(self, user_id):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.rules.get(user_id, [])


@pytest.fixture
def store():
    return FakeRuleStore()


@pytest.fixture
def reset_logging(monkeypatch):
    """Let configure_logging run again, then undo whatever it attached."""
    logger = logging.getLogger("ledgerlens")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    monkeypatch.setattr("ledgerlens.logging_setup._CONFIGURED", False)
    yield logger
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
    for h in handlers:
        if h not in logger.handlers:
            logger.addHandler(h)
    logger.setLevel(level)
    logger.propagate = propagate
