"""Table definitions. Safe to run on every startup."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def _id_column(dialect: str) -> str:
    if dialect == "sqlite":
        return "id INTEGER PRIMARY KEY AUTOINCREMENT"
    if dialect == "postgresql":
        return "id SERIAL PRIMARY KEY"
    return "id INTEGER PRIMARY KEY"


def _statements(dialect: str) -> list[str]:
    pk = _id_column(dialect)
    return [
        f"""
        CREATE TABLE IF NOT EXISTS water_levels (
            {pk},
            level DOUBLE PRECISION NOT NULL,
            unit VARCHAR(16) NOT NULL,
            created_at VARCHAR(40) NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS alerts (
            {pk},
            level DOUBLE PRECISION NOT NULL,
            type VARCHAR(16) NOT NULL,
            message VARCHAR(512) NOT NULL,
            acknowledged INTEGER NOT NULL DEFAULT 0,
            created_at VARCHAR(40) NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS pump_logs (
            {pk},
            is_active INTEGER NOT NULL,
            start_time VARCHAR(40),
            end_time VARCHAR(40),
            duration DOUBLE PRECISION,
            activated_by VARCHAR(16) NOT NULL,
            water_level_at_activation DOUBLE PRECISION,
            created_at VARCHAR(40) NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY,
            warning_level DOUBLE PRECISION NOT NULL,
            danger_level DOUBLE PRECISION NOT NULL,
            min_level DOUBLE PRECISION NOT NULL,
            max_level DOUBLE PRECISION NOT NULL,
            pump_activation_level DOUBLE PRECISION NOT NULL,
            pump_deactivation_level DOUBLE PRECISION NOT NULL,
            unit VARCHAR(16) NOT NULL,
            email_enabled INTEGER NOT NULL DEFAULT 0,
            email_address VARCHAR(256) NOT NULL DEFAULT '',
            notify_on_warning INTEGER NOT NULL DEFAULT 1,
            notify_on_danger INTEGER NOT NULL DEFAULT 1,
            notify_on_pump_activation INTEGER NOT NULL DEFAULT 0,
            pump_mode VARCHAR(16) NOT NULL DEFAULT 'auto',
            updated_at VARCHAR(40)
        )
        """,
        "CREATE INDEX IF NOT EXISTS ix_alerts_type_ack ON alerts (type, acknowledged)",
        "CREATE INDEX IF NOT EXISTS ix_pump_logs_open ON pump_logs (is_active, end_time)",
    ]


def ensure_schema(engine: Engine) -> None:
    dialect = engine.dialect.name
    logger.info("[DB] Ensuring schema exists dialect=%s", dialect)
    with engine.begin() as conn:
        for statement in _statements(dialect):
            conn.execute(text(statement))
