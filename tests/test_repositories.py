"""SQLAlchemy repositories against a temporary SQLite file."""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, text

from common.db import make_session_factory
from level_api.domain.models import (
    DEFAULT_THRESHOLDS,
    Alert,
    AlertType,
    NotificationSettings,
    PumpLog,
    PumpMode,
    Reading,
)
from level_api.storage import (
    AlertRepository,
    PumpLogRepository,
    ReadingRepository,
    SettingsRepository,
    ensure_schema,
)

from .conftest import STANDARD_THRESHOLDS, T0


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'repo.db'}", future=True)
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


def make_alert(alert_type=AlertType.DANGER, minutes=0, acknowledged=False) -> Alert:
    return Alert(
        level=85.0,
        type=alert_type,
        message=f"{alert_type.value} alert",
        created_at=T0 + timedelta(minutes=minutes),
        acknowledged=acknowledged,
    )


# =============================================================================
# SCHEMA
# =============================================================================

class TestSchema:
    def test_ensure_schema_is_idempotent(self, engine):
        ensure_schema(engine)
        with engine.connect() as conn:
            names = {
                row[0]
                for row in conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
            }
        assert {"water_levels", "alerts", "pump_logs", "settings"} <= names


# =============================================================================
# READINGS
# =============================================================================

class TestReadingRepository:
    @pytest.mark.asyncio
    async def test_create_and_find_latest(self, session_factory):
        repo = ReadingRepository(session_factory)
        assert await repo.find_latest() is None

        first = await repo.create(Reading(level=10.0, unit="cm", observed_at=T0))
        second = await repo.create(Reading(level=12.5, unit="cm", observed_at=T0 + timedelta(seconds=5)))

        latest = await repo.find_latest()
        assert first.id == 1 and second.id == 2
        assert latest == second
        assert latest.observed_at == T0 + timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_find_recent_newest_first(self, session_factory):
        repo = ReadingRepository(session_factory)
        for i in range(5):
            await repo.create(Reading(level=float(i), unit="cm", observed_at=T0 + timedelta(minutes=i)))

        recent = await repo.find_recent(3)
        assert [r.level for r in recent] == [4.0, 3.0, 2.0]

    @pytest.mark.asyncio
    async def test_find_between(self, session_factory):
        repo = ReadingRepository(session_factory)
        for day in range(10):
            await repo.create(Reading(level=float(day), unit="cm", observed_at=T0 + timedelta(days=day)))

        window = await repo.find_between(T0 + timedelta(days=2), T0 + timedelta(days=4))
        assert sorted(r.level for r in window) == [2.0, 3.0, 4.0]


# =============================================================================
# ALERTS
# =============================================================================

class TestAlertRepository:
    @pytest.mark.asyncio
    async def test_latest_unacknowledged_by_type(self, session_factory):
        repo = AlertRepository(session_factory)
        await repo.create(make_alert(AlertType.DANGER, minutes=0))
        newest = await repo.create(make_alert(AlertType.DANGER, minutes=5))
        await repo.create(make_alert(AlertType.WARNING, minutes=10))
        await repo.create(make_alert(AlertType.DANGER, minutes=20, acknowledged=True))

        found = await repo.find_latest_unacknowledged(AlertType.DANGER)
        assert found.id == newest.id
        assert found.created_at == T0 + timedelta(minutes=5)
        assert await repo.count_unacknowledged() == 3

    @pytest.mark.asyncio
    async def test_acknowledge_once(self, session_factory):
        repo = AlertRepository(session_factory)
        created = await repo.create(make_alert())

        acknowledged = await repo.acknowledge(created.id)
        again = await repo.acknowledge(created.id)

        assert acknowledged.acknowledged is True
        assert again.acknowledged is True
        assert await repo.count_unacknowledged() == 0
        assert await repo.acknowledge(999) is None

    @pytest.mark.asyncio
    async def test_acknowledge_all(self, session_factory):
        repo = AlertRepository(session_factory)
        await repo.create(make_alert(AlertType.WARNING))
        await repo.create(make_alert(AlertType.DANGER, minutes=1))
        await repo.create(make_alert(AlertType.DANGER, minutes=2, acknowledged=True))

        changed = await repo.acknowledge_all()

        assert len(changed) == 2
        assert all(a.acknowledged for a in changed)
        assert await repo.count_unacknowledged() == 0
        assert await repo.acknowledge_all() == []

    @pytest.mark.asyncio
    async def test_find_filters(self, session_factory):
        repo = AlertRepository(session_factory)
        await repo.create(make_alert(AlertType.WARNING, minutes=0))
        await repo.create(make_alert(AlertType.DANGER, minutes=1))
        await repo.create(make_alert(AlertType.DANGER, minutes=2, acknowledged=True))

        assert len(await repo.find()) == 3
        assert [a.type for a in await repo.find(alert_type=AlertType.WARNING)] == [AlertType.WARNING]
        assert len(await repo.find(alert_type=AlertType.DANGER, acknowledged=False)) == 1
        newest_first = await repo.find()
        assert newest_first[0].created_at > newest_first[-1].created_at


# =============================================================================
# PUMP LOGS
# =============================================================================

class TestPumpLogRepository:
    @pytest.mark.asyncio
    async def test_open_close_cycle(self, session_factory):
        repo = PumpLogRepository(session_factory)
        opened = await repo.create(
            PumpLog(
                is_active=True,
                activated_by=PumpMode.AUTO,
                start_time=T0,
                water_level_at_activation=45.0,
                created_at=T0,
            )
        )
        assert (await repo.find_latest_open()).id == opened.id

        end = T0 + timedelta(seconds=90)
        await repo.update(opened.id, {"is_active": False, "end_time": end, "duration": 90.0})
        await repo.create(PumpLog(is_active=False, activated_by=PumpMode.AUTO, created_at=end))

        assert await repo.find_latest_open() is None
        latest = await repo.find_latest()
        assert latest.is_active is False and latest.start_time is None

        activation = await repo.find_latest_activation()
        assert activation.id == opened.id
        assert activation.end_time == end
        assert activation.duration == 90.0
        assert activation.water_level_at_activation == 45.0

        recent = await repo.find_recent(10)
        assert [log.id for log in recent] == [2, 1]

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, session_factory):
        repo = PumpLogRepository(session_factory)
        with pytest.raises(ValueError):
            await repo.update(1, {"activated_by": "manual"})


# =============================================================================
# SETTINGS
# =============================================================================

class TestSettingsRepository:
    @pytest.mark.asyncio
    async def test_missing_row_reads_as_none(self, session_factory):
        repo = SettingsRepository(session_factory)
        assert await repo.get_threshold_settings() is None
        assert await repo.get_notification_settings() == NotificationSettings()
        assert await repo.get_pump_mode() == PumpMode.AUTO

    @pytest.mark.asyncio
    async def test_seed_defaults_once(self, session_factory):
        repo = SettingsRepository(session_factory)
        assert repo.seed_defaults() is True
        assert repo.seed_defaults() is False

        assert await repo.get_threshold_settings() == DEFAULT_THRESHOLDS
        notifications = await repo.get_notification_settings()
        assert notifications.email_enabled is False
        assert notifications.notify_on_warning and notifications.notify_on_danger
        assert notifications.notify_on_pump_activation is False

    @pytest.mark.asyncio
    async def test_updates(self, session_factory):
        repo = SettingsRepository(session_factory)
        repo.seed_defaults()

        await repo.update_thresholds(STANDARD_THRESHOLDS, now=T0)
        await repo.set_pump_mode(PumpMode.MANUAL)
        prefs = NotificationSettings(email_enabled=True, email_address="ops@example.com")
        await repo.update_notifications(prefs, now=T0)

        assert await repo.get_threshold_settings() == STANDARD_THRESHOLDS
        assert await repo.get_pump_mode() == PumpMode.MANUAL
        assert await repo.get_notification_settings() == prefs
