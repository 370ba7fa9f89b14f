"""Single-row settings table (id = 1): thresholds, notification prefs and pump mode."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..domain.models import (
    DEFAULT_THRESHOLDS,
    NotificationSettings,
    PumpMode,
    ThresholdSettings,
)
from .sql import SqlRepository, to_db_ts

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def _row_to_thresholds(row) -> ThresholdSettings:
    return ThresholdSettings(
        warning_level=float(row.warning_level),
        danger_level=float(row.danger_level),
        min_level=float(row.min_level),
        max_level=float(row.max_level),
        pump_activation_level=float(row.pump_activation_level),
        pump_deactivation_level=float(row.pump_deactivation_level),
        unit=str(row.unit),
    )


def _row_to_notifications(row) -> NotificationSettings:
    return NotificationSettings(
        email_enabled=bool(row.email_enabled),
        email_address=str(row.email_address or ""),
        notify_on_warning=bool(row.notify_on_warning),
        notify_on_danger=bool(row.notify_on_danger),
        notify_on_pump_activation=bool(row.notify_on_pump_activation),
    )


class SettingsRepository(SqlRepository):
    def seed_defaults(
        self,
        thresholds: ThresholdSettings = DEFAULT_THRESHOLDS,
        notifications: NotificationSettings = NotificationSettings(),
        mode: PumpMode = PumpMode.AUTO,
        now: Optional[datetime] = None,
    ) -> bool:
        """Inserts the defaults row if it is missing. Sync: runs at startup."""

        def work(db: Session) -> bool:
            exists = db.execute(
                text("SELECT 1 FROM settings WHERE id = :id"), {"id": SETTINGS_ROW_ID}
            ).fetchone()
            if exists:
                return False
            db.execute(
                text(
                    """
                    INSERT INTO settings (
                        id, warning_level, danger_level, min_level, max_level,
                        pump_activation_level, pump_deactivation_level, unit,
                        email_enabled, email_address, notify_on_warning,
                        notify_on_danger, notify_on_pump_activation, pump_mode, updated_at
                    )
                    VALUES (
                        :id, :warning_level, :danger_level, :min_level, :max_level,
                        :pump_activation_level, :pump_deactivation_level, :unit,
                        :email_enabled, :email_address, :notify_on_warning,
                        :notify_on_danger, :notify_on_pump_activation, :pump_mode, :updated_at
                    )
                    """
                ),
                {
                    "id": SETTINGS_ROW_ID,
                    "warning_level": thresholds.warning_level,
                    "danger_level": thresholds.danger_level,
                    "min_level": thresholds.min_level,
                    "max_level": thresholds.max_level,
                    "pump_activation_level": thresholds.pump_activation_level,
                    "pump_deactivation_level": thresholds.pump_deactivation_level,
                    "unit": thresholds.unit,
                    "email_enabled": int(notifications.email_enabled),
                    "email_address": notifications.email_address,
                    "notify_on_warning": int(notifications.notify_on_warning),
                    "notify_on_danger": int(notifications.notify_on_danger),
                    "notify_on_pump_activation": int(notifications.notify_on_pump_activation),
                    "pump_mode": mode.value,
                    "updated_at": to_db_ts(now),
                },
            )
            return True

        created = self._execute(work)
        if created:
            logger.info("[SETTINGS] Seeded default settings row")
        return created

    async def get_threshold_settings(self) -> Optional[ThresholdSettings]:
        def work(db: Session) -> Optional[ThresholdSettings]:
            row = db.execute(
                text(
                    """
                    SELECT warning_level, danger_level, min_level, max_level,
                           pump_activation_level, pump_deactivation_level, unit
                    FROM settings WHERE id = :id
                    """
                ),
                {"id": SETTINGS_ROW_ID},
            ).fetchone()
            return _row_to_thresholds(row) if row else None

        return await self._run(work)

    async def get_notification_settings(self) -> NotificationSettings:
        def work(db: Session) -> NotificationSettings:
            row = db.execute(
                text(
                    """
                    SELECT email_enabled, email_address, notify_on_warning,
                           notify_on_danger, notify_on_pump_activation
                    FROM settings WHERE id = :id
                    """
                ),
                {"id": SETTINGS_ROW_ID},
            ).fetchone()
            return _row_to_notifications(row) if row else NotificationSettings()

        return await self._run(work)

    async def get_pump_mode(self) -> PumpMode:
        def work(db: Session) -> PumpMode:
            value = db.execute(
                text("SELECT pump_mode FROM settings WHERE id = :id"), {"id": SETTINGS_ROW_ID}
            ).scalar_one_or_none()
            return PumpMode(value) if value else PumpMode.AUTO

        return await self._run(work)

    async def set_pump_mode(self, mode: PumpMode) -> None:
        def work(db: Session) -> None:
            db.execute(
                text("UPDATE settings SET pump_mode = :mode WHERE id = :id"),
                {"mode": mode.value, "id": SETTINGS_ROW_ID},
            )

        await self._run(work)

    async def update_thresholds(
        self, thresholds: ThresholdSettings, now: Optional[datetime] = None
    ) -> ThresholdSettings:
        def work(db: Session) -> None:
            db.execute(
                text(
                    """
                    UPDATE settings SET
                        warning_level = :warning_level,
                        danger_level = :danger_level,
                        min_level = :min_level,
                        max_level = :max_level,
                        pump_activation_level = :pump_activation_level,
                        pump_deactivation_level = :pump_deactivation_level,
                        unit = :unit,
                        updated_at = :updated_at
                    WHERE id = :id
                    """
                ),
                {
                    "id": SETTINGS_ROW_ID,
                    "warning_level": thresholds.warning_level,
                    "danger_level": thresholds.danger_level,
                    "min_level": thresholds.min_level,
                    "max_level": thresholds.max_level,
                    "pump_activation_level": thresholds.pump_activation_level,
                    "pump_deactivation_level": thresholds.pump_deactivation_level,
                    "unit": thresholds.unit,
                    "updated_at": to_db_ts(now),
                },
            )

        await self._run(work)
        return thresholds

    async def update_notifications(
        self, notifications: NotificationSettings, now: Optional[datetime] = None
    ) -> NotificationSettings:
        def work(db: Session) -> None:
            db.execute(
                text(
                    """
                    UPDATE settings SET
                        email_enabled = :email_enabled,
                        email_address = :email_address,
                        notify_on_warning = :notify_on_warning,
                        notify_on_danger = :notify_on_danger,
                        notify_on_pump_activation = :notify_on_pump_activation,
                        updated_at = :updated_at
                    WHERE id = :id
                    """
                ),
                {
                    "id": SETTINGS_ROW_ID,
                    "email_enabled": int(notifications.email_enabled),
                    "email_address": notifications.email_address,
                    "notify_on_warning": int(notifications.notify_on_warning),
                    "notify_on_danger": int(notifications.notify_on_danger),
                    "notify_on_pump_activation": int(notifications.notify_on_pump_activation),
                    "updated_at": to_db_ts(now),
                },
            )

        await self._run(work)
        return notifications
