"""Shared plumbing for the SQLAlchemy repositories."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from common.db import SessionFactory, session_scope

T = TypeVar("T")


def to_db_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SqlRepository:
    """Runs one short-lived session per call in the thread pool."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def _run(self, work: Callable[[Session], T]) -> T:
        return await run_in_threadpool(self._execute, work)

    def _execute(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as db:
            return work(db)
