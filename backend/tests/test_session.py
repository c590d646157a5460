from __future__ import annotations

import pytest

from capex.core.config import settings
from capex.core.db import session


@pytest.fixture()
def memory_database(monkeypatch):
    monkeypatch.setattr(settings, "database_url", "sqlite+pysqlite://")
    session.get_engine.cache_clear()
    session.get_session_local.cache_clear()
    yield
    session.get_session_local.cache_clear()
    session.get_engine.cache_clear()


def test_session_factory_is_built_once(memory_database):
    factory = session.get_session_local()

    assert session.get_session_local() is factory
    assert factory.kw["bind"] is session.get_engine()


def test_get_db_closes_its_session(memory_database):
    gen = session.get_db()
    db = next(gen)
    assert db.get_bind() is session.get_engine()

    with pytest.raises(StopIteration):
        next(gen)
