from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from .errors import PersistenceError
from .models import SETTINGS_ID, Base, Settings, User

log = logging.getLogger("cafepos.db")


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, future=True, **kwargs)
    return create_engine(url, future=True, pool_pre_ping=True)


def init_schema(engine: Engine, default_pin: Optional[str] = None) -> None:
    """Create missing tables and the settings singleton; seed a user when asked to."""
    Base.metadata.create_all(engine)
    with session_scope(engine, "bootstrap schema") as s:
        if s.get(Settings, SETTINGS_ID) is None:
            s.add(Settings(id=SETTINGS_ID))
        if default_pin and s.execute(select(User.id).limit(1)).first() is None:
            s.add(User(name="Admin", password=default_pin))
            log.info("seeded default user")
        s.commit()


@contextmanager
def session_scope(engine: Engine, operation: str) -> Iterator[Session]:
    """
    Yield a short-lived Session for one operation.

    SQLAlchemy failures that escape the block are logged with `operation`
    and re-raised as PersistenceError; domain errors raised inside the block
    pass through untouched.
    """
    with Session(engine) as s:
        try:
            yield s
        except SQLAlchemyError as e:
            s.rollback()
            log.error("%s failed: %s", operation, e)
            raise PersistenceError(f"{operation} failed: {e}") from e


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        log.warning("database ping failed: %s", e)
        return False
