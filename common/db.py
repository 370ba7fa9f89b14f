from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _safe_url(url: str) -> str:
    # Never log credentials.
    return url.split("@")[-1]


def get_engine(settings: Settings | None = None) -> Engine:
    settings = settings or get_settings()
    url = settings.database_url

    logger.info("[DB] Creating engine url=%s", _safe_url(url))

    engine = create_engine(url, pool_pre_ping=True, future=True)

    # Connection test: shows in the logs whether the service actually reaches the DB
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Connection test OK")
    except Exception:
        logger.exception("[DB] Connection test FAILED")

    return engine


def make_session_factory(engine: Engine) -> SessionFactory:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def check_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Readiness check failed")
        return False


@contextmanager
def session_scope(factory: SessionFactory) -> Iterator[Session]:
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
