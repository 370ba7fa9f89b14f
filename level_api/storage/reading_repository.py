"""Append-only store of water level readings."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..domain.models import Reading
from .sql import SqlRepository, from_db_ts, to_db_ts

_COLUMNS = "id, level, unit, created_at"


def _row_to_reading(row) -> Reading:
    return Reading(
        id=int(row.id),
        level=float(row.level),
        unit=str(row.unit),
        observed_at=from_db_ts(row.created_at),
    )


class ReadingRepository(SqlRepository):
    async def create(self, reading: Reading) -> Reading:
        def work(db: Session) -> Reading:
            new_id = db.execute(
                text(
                    """
                    INSERT INTO water_levels (level, unit, created_at)
                    VALUES (:level, :unit, :created_at)
                    RETURNING id
                    """
                ),
                {
                    "level": reading.level,
                    "unit": reading.unit,
                    "created_at": to_db_ts(reading.observed_at),
                },
            ).scalar_one()
            return Reading(
                id=int(new_id),
                level=reading.level,
                unit=reading.unit,
                observed_at=reading.observed_at,
            )

        return await self._run(work)

    async def find_latest(self) -> Optional[Reading]:
        def work(db: Session) -> Optional[Reading]:
            row = db.execute(
                text(f"SELECT {_COLUMNS} FROM water_levels ORDER BY id DESC LIMIT 1")
            ).fetchone()
            return _row_to_reading(row) if row else None

        return await self._run(work)

    async def find_recent(self, limit: int) -> List[Reading]:
        def work(db: Session) -> List[Reading]:
            rows = db.execute(
                text(f"SELECT {_COLUMNS} FROM water_levels ORDER BY id DESC LIMIT :limit"),
                {"limit": int(limit)},
            ).fetchall()
            return [_row_to_reading(r) for r in rows]

        return await self._run(work)

    async def find_between(self, start: datetime, end: datetime) -> List[Reading]:
        def work(db: Session) -> List[Reading]:
            rows = db.execute(
                text(
                    f"""
                    SELECT {_COLUMNS} FROM water_levels
                    WHERE created_at >= :start AND created_at <= :end
                    ORDER BY id DESC
                    """
                ),
                {"start": to_db_ts(start), "end": to_db_ts(end)},
            ).fetchall()
            return [_row_to_reading(r) for r in rows]

        return await self._run(work)
