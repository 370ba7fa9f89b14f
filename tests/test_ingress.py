"""One evaluation cycle per reading, end to end over in-memory stores."""

import asyncio
from datetime import timedelta

import pytest

from level_api.domain.errors import InvalidReading, SettingsUnavailable, ValidationError
from level_api.domain.models import AlertType, Classification, NotificationSettings, PumpMode
from level_api.engine.raw import DistanceInput, LevelInput


# =============================================================================
# HAPPY PATH
# =============================================================================

class TestEvaluationCycle:
    @pytest.mark.asyncio
    async def test_quiet_reading_only_broadcasts_level(self, harness):
        outcome = await harness.ingress.ingest(LevelInput(level=20.0))
        await harness.dispatcher.flush()

        assert outcome.reading.id == 1
        assert outcome.classification == Classification.NONE
        assert not outcome.alert.created
        assert not outcome.pump.transitioned
        assert harness.broadcaster.types == ["waterLevel"]

    @pytest.mark.asyncio
    async def test_alert_and_pump_broadcast_after_level(self, harness):
        outcome = await harness.ingress.ingest(LevelInput(level=85.0))
        await harness.dispatcher.flush()

        assert outcome.classification == Classification.DANGER
        assert outcome.alert.alert.type == AlertType.DANGER
        assert outcome.pump.activated is True
        assert harness.broadcaster.types == ["waterLevel", "alert", "pumpStatus"]
        # Everything broadcast was persisted first.
        assert len(harness.readings.rows) == 1
        assert len(harness.alerts.rows) == 1
        assert len(harness.pump_logs.rows) == 1

    @pytest.mark.asyncio
    async def test_mapping_payload_is_accepted(self, harness):
        outcome = await harness.ingress.ingest({"level": 65.0, "unit": "cm"})
        assert outcome.classification == Classification.WARNING
        assert outcome.reading.unit == "cm"

    @pytest.mark.asyncio
    async def test_distance_is_converted(self, harness):
        outcome = await harness.ingress.ingest(DistanceInput(distance=20.0))

        assert outcome.reading.level == 80.0
        assert outcome.raw_distance == 20.0
        assert outcome.classification == Classification.DANGER

    @pytest.mark.asyncio
    async def test_reading_uses_clock(self, harness):
        outcome = await harness.ingress.ingest(LevelInput(level=5.0))
        assert outcome.reading.observed_at == harness.clock.now


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", [-1.0, None, "high", True])
    async def test_invalid_level_has_no_side_effects(self, harness, level):
        with pytest.raises(InvalidReading):
            await harness.ingress.ingest(LevelInput(level=level))
        await harness.dispatcher.flush()

        assert harness.readings.rows == []
        assert harness.broadcaster.frames == []

    @pytest.mark.asyncio
    async def test_malformed_payload(self, harness):
        with pytest.raises(ValidationError):
            await harness.ingress.ingest({"temperature": 20})
        assert harness.readings.rows == []

    @pytest.mark.asyncio
    async def test_distance_needs_thresholds(self, harness):
        harness.settings.thresholds = None
        with pytest.raises(SettingsUnavailable):
            await harness.ingress.ingest(DistanceInput(distance=10.0))
        assert harness.readings.rows == []


# =============================================================================
# PARTIAL FAILURES
# =============================================================================

class TestPartialFailures:
    @pytest.mark.asyncio
    async def test_missing_thresholds_keeps_reading(self, harness):
        harness.settings.thresholds = None

        outcome = await harness.ingress.ingest(LevelInput(level=95.0))
        await harness.dispatcher.flush()

        assert not outcome.evaluated
        assert len(harness.readings.rows) == 1
        assert harness.alerts.rows == []
        assert harness.pump_logs.rows == []
        assert harness.broadcaster.types == ["waterLevel"]

    @pytest.mark.asyncio
    async def test_reading_write_failure_is_fatal(self, harness):
        harness.readings.fail_create = True
        with pytest.raises(RuntimeError):
            await harness.ingress.ingest(LevelInput(level=50.0))

    @pytest.mark.asyncio
    async def test_alert_write_failure_is_not_broadcast(self, harness):
        harness.alerts.fail_create = True

        outcome = await harness.ingress.ingest(LevelInput(level=85.0))
        await harness.dispatcher.flush()

        assert outcome.alert.error is not None
        assert outcome.pump.activated is True
        assert harness.broadcaster.types == ["waterLevel", "pumpStatus"]
        assert not harness.buzzer.is_active

    @pytest.mark.asyncio
    async def test_pump_log_failure_is_not_broadcast(self, harness):
        harness.pump_logs.fail_create = True

        outcome = await harness.ingress.ingest(LevelInput(level=85.0))
        await harness.dispatcher.flush()

        assert not outcome.pump.persisted
        assert harness.controller.snapshot().is_active is False
        assert harness.broadcaster.types == ["waterLevel", "alert"]

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_ingest(self, harness):
        harness.settings.notifications = NotificationSettings(
            email_enabled=True, email_address="ops@example.com"
        )
        harness.email.error = OSError("smtp down")

        outcome = await harness.ingress.ingest(LevelInput(level=85.0))
        await harness.dispatcher.flush()

        assert outcome.alert.created
        assert harness.dispatcher.metrics["email_errors"] == 1


# =============================================================================
# SCENARIOS
# =============================================================================

class TestScenarios:
    @pytest.mark.asyncio
    async def test_cooldown_across_readings(self, harness):
        await harness.ingress.ingest(LevelInput(level=85.0))
        harness.clock.advance(minutes=10)
        second = await harness.ingress.ingest(LevelInput(level=86.0))
        harness.clock.advance(minutes=21)
        third = await harness.ingress.ingest(LevelInput(level=87.0))

        assert second.alert.suppressed
        assert third.alert.created
        assert len(harness.alerts.of_type(AlertType.DANGER)) == 2

    @pytest.mark.asyncio
    async def test_buzzer_follows_alarm_state(self, harness):
        first = await harness.ingress.ingest(LevelInput(level=85.0))
        assert harness.buzzer.is_active

        # Still an open alert: the alarm stays on.
        await harness.ingress.ingest(LevelInput(level=10.0))
        assert harness.buzzer.is_active

        harness.alerts.acknowledge(first.alert.alert.id)
        await harness.ingress.ingest(LevelInput(level=10.0))
        assert not harness.buzzer.is_active

    @pytest.mark.asyncio
    async def test_manual_mode_skips_pump(self, harness):
        harness.settings.mode = PumpMode.MANUAL
        await harness.controller.restore()

        outcome = await harness.ingress.ingest(LevelInput(level=95.0))

        assert not outcome.pump.transitioned
        assert harness.pump_logs.rows == []

    @pytest.mark.asyncio
    async def test_pump_cycle_through_ingress(self, harness):
        await harness.ingress.ingest(LevelInput(level=75.0))
        harness.clock.advance(seconds=300)
        await harness.ingress.ingest(LevelInput(level=25.0))

        closed = harness.pump_logs.rows[0]
        assert closed.duration == 300.0
        assert closed.end_time - closed.start_time == timedelta(seconds=300)
        assert harness.controller.snapshot().is_active is False


# =============================================================================
# CONCURRENT READINGS
# =============================================================================

class TestConcurrentReadings:
    @pytest.mark.asyncio
    async def test_simultaneous_danger_readings_create_one_alert(self, harness):
        harness.interleave()

        outcomes = await asyncio.gather(
            *[harness.ingress.ingest(LevelInput(level=90.0)) for _ in range(5)]
        )
        await harness.dispatcher.flush()

        assert len(harness.alerts.of_type(AlertType.DANGER)) == 1
        assert sum(1 for o in outcomes if o.alert.created) == 1
        assert sum(1 for o in outcomes if o.alert.suppressed) == 4
        assert harness.broadcaster.types.count("alert") == 1

    @pytest.mark.asyncio
    async def test_simultaneous_high_readings_activate_once(self, harness):
        harness.interleave()

        outcomes = await asyncio.gather(
            *[harness.ingress.ingest(LevelInput(level=75.0)) for _ in range(5)]
        )
        await harness.dispatcher.flush()

        assert sum(1 for o in outcomes if o.pump.transitioned) == 1
        assert len(harness.pump_logs.rows) == 1
        assert harness.pump_logs.rows[0].is_open
        assert harness.controller.snapshot().is_active
        assert harness.broadcaster.types.count("pumpStatus") == 1

    @pytest.mark.asyncio
    async def test_interleaved_batches_give_one_full_cycle(self, harness):
        harness.interleave()

        await asyncio.gather(*[harness.ingress.ingest(LevelInput(level=75.0)) for _ in range(3)])
        harness.clock.advance(seconds=120)
        await asyncio.gather(*[harness.ingress.ingest(LevelInput(level=10.0)) for _ in range(3)])
        await harness.dispatcher.flush()

        closed, marker = harness.pump_logs.rows
        assert closed.duration == 120.0
        assert not closed.is_open
        assert not marker.is_active
        assert not harness.controller.snapshot().is_active
        assert harness.broadcaster.types.count("pumpStatus") == 2

    @pytest.mark.asyncio
    async def test_different_alert_types_do_not_block_each_other(self, harness):
        harness.interleave()

        await asyncio.gather(
            harness.ingress.ingest(LevelInput(level=65.0)),
            harness.ingress.ingest(LevelInput(level=85.0)),
            harness.ingress.ingest(LevelInput(level=66.0)),
        )

        assert len(harness.alerts.of_type(AlertType.WARNING)) == 1
        assert len(harness.alerts.of_type(AlertType.DANGER)) == 1
