from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
import importlib

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from urs.core.db.base import Base


def import_model_modules() -> None:
    module_names = [
        "urs.core.db.models",
        "urs.domain.registry.models.references",
        "urs.domain.registry.models.transactions",
        "urs.domain.registry.models.navs",
        "urs.domain.registry.models.aum",
    ]
    for module_name in module_names:
        importlib.import_module(module_name)


def create_urs_engine(url: str, *, create_schema: bool = False) -> Engine:
    engine = create_engine(url, pool_pre_ping=True)
    import_model_modules()
    if create_schema:
        Base.metadata.create_all(bind=engine)
    return engine


def create_siar_engine(url: str) -> Engine:
    # SIAR is read-only for the migration; its schema is owned by the legacy system.
    importlib.import_module("urs.domain.siar.models")
    return create_engine(url, pool_pre_ping=True)


def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    db = factory()
    try:
        yield db
    finally:
        db.close()
