"""Pump log store.

An activation opens a row (is_active=1, start_time set). A deactivation
closes the open row (end_time, duration) and appends a marker row with
is_active=0, so the latest row by id always carries the last known edge.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..domain.models import PumpLog, PumpMode
from .sql import SqlRepository, from_db_ts, to_db_ts

_COLUMNS = (
    "id, is_active, start_time, end_time, duration, activated_by, "
    "water_level_at_activation, created_at"
)

_UPDATABLE = {"is_active", "start_time", "end_time", "duration", "water_level_at_activation"}
_TIMESTAMP_FIELDS = {"start_time", "end_time"}


def _row_to_log(row) -> PumpLog:
    return PumpLog(
        id=int(row.id),
        is_active=bool(row.is_active),
        activated_by=PumpMode(row.activated_by),
        start_time=from_db_ts(row.start_time),
        end_time=from_db_ts(row.end_time),
        duration=float(row.duration) if row.duration is not None else None,
        water_level_at_activation=(
            float(row.water_level_at_activation)
            if row.water_level_at_activation is not None
            else None
        ),
        created_at=from_db_ts(row.created_at),
    )


class PumpLogRepository(SqlRepository):
    async def create(self, log: PumpLog) -> PumpLog:
        def work(db: Session) -> PumpLog:
            new_id = db.execute(
                text(
                    """
                    INSERT INTO pump_logs (
                        is_active, start_time, end_time, duration,
                        activated_by, water_level_at_activation, created_at
                    )
                    VALUES (
                        :is_active, :start_time, :end_time, :duration,
                        :activated_by, :water_level_at_activation, :created_at
                    )
                    RETURNING id
                    """
                ),
                {
                    "is_active": int(log.is_active),
                    "start_time": to_db_ts(log.start_time),
                    "end_time": to_db_ts(log.end_time),
                    "duration": log.duration,
                    "activated_by": log.activated_by.value,
                    "water_level_at_activation": log.water_level_at_activation,
                    "created_at": to_db_ts(log.created_at),
                },
            ).scalar_one()
            log.id = int(new_id)
            return log

        return await self._run(work)

    async def find_latest_open(self) -> Optional[PumpLog]:
        def work(db: Session) -> Optional[PumpLog]:
            row = db.execute(
                text(
                    f"""
                    SELECT {_COLUMNS} FROM pump_logs
                    WHERE is_active = 1 AND start_time IS NOT NULL AND end_time IS NULL
                    ORDER BY id DESC
                    LIMIT 1
                    """
                )
            ).fetchone()
            return _row_to_log(row) if row else None

        return await self._run(work)

    async def find_latest(self) -> Optional[PumpLog]:
        def work(db: Session) -> Optional[PumpLog]:
            row = db.execute(
                text(f"SELECT {_COLUMNS} FROM pump_logs ORDER BY id DESC LIMIT 1")
            ).fetchone()
            return _row_to_log(row) if row else None

        return await self._run(work)

    async def find_latest_activation(self) -> Optional[PumpLog]:
        def work(db: Session) -> Optional[PumpLog]:
            row = db.execute(
                text(
                    f"""
                    SELECT {_COLUMNS} FROM pump_logs
                    WHERE start_time IS NOT NULL
                    ORDER BY id DESC
                    LIMIT 1
                    """
                )
            ).fetchone()
            return _row_to_log(row) if row else None

        return await self._run(work)

    async def find_recent(self, limit: int) -> List[PumpLog]:
        def work(db: Session) -> List[PumpLog]:
            rows = db.execute(
                text(f"SELECT {_COLUMNS} FROM pump_logs ORDER BY id DESC LIMIT :limit"),
                {"limit": int(limit)},
            ).fetchall()
            return [_row_to_log(r) for r in rows]

        return await self._run(work)

    async def update(self, log_id: int, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update pump log fields: {sorted(unknown)}")
        if not fields:
            return

        params: Dict[str, Any] = {"id": int(log_id)}
        assignments = []
        for name, value in fields.items():
            if name in _TIMESTAMP_FIELDS:
                value = to_db_ts(value)
            elif name == "is_active":
                value = int(bool(value))
            assignments.append(f"{name} = :{name}")
            params[name] = value

        def work(db: Session) -> None:
            db.execute(
                text(f"UPDATE pump_logs SET {', '.join(assignments)} WHERE id = :id"),
                params,
            )

        await self._run(work)
