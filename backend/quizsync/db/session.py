"""Engine and session helpers for the SQL-backed remote store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings, get_settings
from .base import Base


def build_engine(database_url: str, *, settings: Optional[Settings] = None) -> Engine:
    settings = settings or get_settings()
    kwargs: dict[str, object] = {
        "echo": settings.database_echo,
        "future": True,
        "pool_pre_ping": True,
    }

    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow

    return create_engine(database_url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@contextmanager
def session_scope(
    factory: sessionmaker[Session],
    *,
    commit: bool = True,
) -> Generator[Session, None, None]:
    session = factory()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def create_schema(engine: Engine) -> None:
    from . import models  # noqa: F401  # registers tables on Base.metadata

    Base.metadata.create_all(engine)


__all__ = [
    "build_engine",
    "build_session_factory",
    "create_schema",
    "session_scope",
]
