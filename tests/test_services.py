"""Application services and the composition root."""

import asyncio
from unittest.mock import patch

import pytest

from level_api.domain.models import AlertType, PumpMode, Reading
from level_api.engine.raw import LevelInput
from level_api.notifications.email_gateway import SmtpEmailGateway
from level_api.services import PumpService, build_services

from .conftest import InMemorySettings, build_harness, make_settings


# =============================================================================
# PUMP SERVICE
# =============================================================================

class TestPumpServiceMode:
    @pytest.mark.asyncio
    async def test_manual_mode_without_thresholds(self):
        h = build_harness(InMemorySettings(thresholds=None))
        service = PumpService(h.controller, h.settings, h.pump_logs, h.dispatcher)

        await h.dispatcher.start()
        try:
            change = await service.set_mode(PumpMode.MANUAL)
            await h.dispatcher.flush()
        finally:
            await h.dispatcher.stop()

        assert change.mode_changed
        assert change.state.mode == PumpMode.MANUAL
        assert h.settings.mode == PumpMode.MANUAL
        assert h.broadcaster.types == ["pumpStatus"]

    @pytest.mark.asyncio
    async def test_auto_mode_without_thresholds_skips_evaluation(self):
        h = build_harness(InMemorySettings(thresholds=None, mode=PumpMode.MANUAL))
        await h.controller.restore()
        await h.readings.create(Reading(level=95.0, unit="cm", observed_at=h.clock()))
        service = PumpService(h.controller, h.settings, h.pump_logs, h.dispatcher)

        change = await service.set_mode(PumpMode.AUTO)

        assert change.state.mode == PumpMode.AUTO
        assert change.transition is None
        assert h.pump_logs.rows == []


# =============================================================================
# SQL-BACKED SERVICES
# =============================================================================

class TestMonitorServices:
    @pytest.mark.asyncio
    async def test_concurrent_danger_readings_store_one_alert(self, tmp_path):
        services = build_services(make_settings(tmp_path))
        await services.start()
        try:
            await asyncio.gather(
                *[services.ingress.ingest(LevelInput(level=90.0)) for _ in range(5)]
            )
            open_alerts = await services.alerts.find(acknowledged=False)
            logs = await services.pump_logs.find_recent(10)
        finally:
            await services.stop()

        assert [a.type for a in open_alerts] == [AlertType.DANGER]
        assert len(logs) == 1
        assert logs[0].is_active

    @pytest.mark.asyncio
    async def test_start_verifies_configured_smtp(self, tmp_path):
        services = build_services(make_settings(tmp_path, smtp_host="smtp.example.com"))
        with patch.object(SmtpEmailGateway, "verify", return_value=False) as verify:
            await services.start()
            await services.stop()

        verify.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_skips_smtp_check_when_unconfigured(self, tmp_path):
        services = build_services(make_settings(tmp_path))
        with patch.object(SmtpEmailGateway, "verify") as verify:
            await services.start()
            await services.stop()

        verify.assert_not_called()
