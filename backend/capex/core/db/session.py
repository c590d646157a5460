from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache
import importlib

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from capex.core.config import settings
from capex.core.db.base import Base


MODEL_MODULES = (
    "capex.core.db.models",
    "capex.domain.investments.models.investments",
    "capex.domain.cashflows.models.cashflows",
    "capex.domain.notifications.models.notifications",
)


def import_model_modules() -> None:
    for module_name in MODEL_MODULES:
        importlib.import_module(module_name)


def build_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    # Lazy init so importing the app never opens a connection.
    engine = build_engine(settings.database_url)
    import_model_modules()
    Base.metadata.create_all(bind=engine)
    return engine


@lru_cache(maxsize=1)
def get_session_local() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()
