"""Alert store: append-only rows with one mutable flag (`acknowledged`)."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..domain.models import Alert, AlertType
from .sql import SqlRepository, from_db_ts, to_db_ts

_COLUMNS = "id, level, type, message, acknowledged, created_at"


def _row_to_alert(row) -> Alert:
    return Alert(
        id=int(row.id),
        level=float(row.level),
        type=AlertType(row.type),
        message=str(row.message),
        acknowledged=bool(row.acknowledged),
        created_at=from_db_ts(row.created_at),
    )


class AlertRepository(SqlRepository):
    async def create(self, alert: Alert) -> Alert:
        def work(db: Session) -> Alert:
            new_id = db.execute(
                text(
                    """
                    INSERT INTO alerts (level, type, message, acknowledged, created_at)
                    VALUES (:level, :type, :message, :acknowledged, :created_at)
                    RETURNING id
                    """
                ),
                {
                    "level": alert.level,
                    "type": alert.type.value,
                    "message": alert.message,
                    "acknowledged": int(alert.acknowledged),
                    "created_at": to_db_ts(alert.created_at),
                },
            ).scalar_one()
            return Alert(
                id=int(new_id),
                level=alert.level,
                type=alert.type,
                message=alert.message,
                acknowledged=alert.acknowledged,
                created_at=alert.created_at,
            )

        return await self._run(work)

    async def find_latest_unacknowledged(self, alert_type: AlertType) -> Optional[Alert]:
        def work(db: Session) -> Optional[Alert]:
            row = db.execute(
                text(
                    f"""
                    SELECT {_COLUMNS} FROM alerts
                    WHERE type = :type AND acknowledged = 0
                    ORDER BY created_at DESC, id DESC
                    LIMIT 1
                    """
                ),
                {"type": alert_type.value},
            ).fetchone()
            return _row_to_alert(row) if row else None

        return await self._run(work)

    async def count_unacknowledged(self) -> int:
        def work(db: Session) -> int:
            return int(
                db.execute(text("SELECT COUNT(*) FROM alerts WHERE acknowledged = 0")).scalar_one()
            )

        return await self._run(work)

    async def get(self, alert_id: int) -> Optional[Alert]:
        def work(db: Session) -> Optional[Alert]:
            row = db.execute(
                text(f"SELECT {_COLUMNS} FROM alerts WHERE id = :id"),
                {"id": int(alert_id)},
            ).fetchone()
            return _row_to_alert(row) if row else None

        return await self._run(work)

    async def find(
        self,
        alert_type: Optional[AlertType] = None,
        acknowledged: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        def work(db: Session) -> List[Alert]:
            clauses = []
            params: dict = {}
            if alert_type is not None:
                clauses.append("type = :type")
                params["type"] = alert_type.value
            if acknowledged is not None:
                clauses.append("acknowledged = :acknowledged")
                params["acknowledged"] = int(acknowledged)
            where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            sql = f"SELECT {_COLUMNS} FROM alerts {where} ORDER BY created_at DESC, id DESC"
            if limit is not None:
                sql += " LIMIT :limit"
                params["limit"] = int(limit)
            rows = db.execute(text(sql), params).fetchall()
            return [_row_to_alert(r) for r in rows]

        return await self._run(work)

    async def find_between(self, start: datetime, end: datetime) -> List[Alert]:
        def work(db: Session) -> List[Alert]:
            rows = db.execute(
                text(
                    f"""
                    SELECT {_COLUMNS} FROM alerts
                    WHERE created_at >= :start AND created_at <= :end
                    ORDER BY created_at DESC, id DESC
                    """
                ),
                {"start": to_db_ts(start), "end": to_db_ts(end)},
            ).fetchall()
            return [_row_to_alert(r) for r in rows]

        return await self._run(work)

    async def acknowledge(self, alert_id: int) -> Optional[Alert]:
        """Sets `acknowledged` once. Returns the alert, or None if unknown."""

        def work(db: Session) -> Optional[Alert]:
            db.execute(
                text("UPDATE alerts SET acknowledged = 1 WHERE id = :id AND acknowledged = 0"),
                {"id": int(alert_id)},
            )
            row = db.execute(
                text(f"SELECT {_COLUMNS} FROM alerts WHERE id = :id"),
                {"id": int(alert_id)},
            ).fetchone()
            return _row_to_alert(row) if row else None

        return await self._run(work)

    async def acknowledge_all(self) -> List[Alert]:
        """Acknowledges every open alert and returns them in their new state."""

        def work(db: Session) -> List[Alert]:
            rows = db.execute(
                text(f"SELECT {_COLUMNS} FROM alerts WHERE acknowledged = 0 ORDER BY id")
            ).fetchall()
            if not rows:
                return []
            ids = [int(r.id) for r in rows]
            db.execute(
                text("UPDATE alerts SET acknowledged = 1 WHERE acknowledged = 0 AND id <= :max_id"),
                {"max_id": max(ids)},
            )
            return [
                Alert(
                    id=int(r.id),
                    level=float(r.level),
                    type=AlertType(r.type),
                    message=str(r.message),
                    acknowledged=True,
                    created_at=from_db_ts(r.created_at),
                )
                for r in rows
            ]

        return await self._run(work)
