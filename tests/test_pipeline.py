"""
End-to-end tests for RiskPipeline.

Covers:
- Readings through detection to alerts and deliveries
- Externally scored zones, deduplication and deferred dispatch
- Persistence failures
- Manual alerts, acknowledgment and resolution
"""

from datetime import timedelta

import pytest

from slopeguard.alerting.dedup import DedupCache
from slopeguard.errors import AlertNotFoundError, InputError, PersistenceError
from slopeguard.models.alerts import (
    AlertResolution,
    AlertStatus,
    AlertType,
    ManualAlertRequest,
    Severity,
)
from slopeguard.models.delivery import DeliveryStatus
from slopeguard.models.devices import NotificationChannel
from slopeguard.pipeline import create_pipeline
from slopeguard.storage.memory import InMemoryAlertStore, InMemoryDeviceRegistry

PUSH = NotificationChannel.PUSH
SMS = NotificationChannel.SMS


class FailingAlertStore(InMemoryAlertStore):
    async def create_alert(self, alert):
        raise ConnectionError("alerts table unavailable")


class ReadOnlyAlertStore(InMemoryAlertStore):
    """Creates alerts but cannot update them."""

    async def update_alert(self, alert_id, fields):
        raise ConnectionError("alerts table is read-only")


class UnavailableAlertStore(InMemoryAlertStore):
    async def create_alert(self, alert):
        raise ConnectionError("alerts table unavailable")

    async def get_alert(self, alert_id):
        raise ConnectionError("alerts table unavailable")

    async def update_alert(self, alert_id, fields):
        raise ConnectionError("alerts table unavailable")


@pytest.fixture
def registry(make_device):
    return InMemoryDeviceRegistry(
        [
            make_device("dev-1", zone="zone-1", channels=[PUSH, SMS]),
            make_device("dev-2", zone="zone-1"),
            make_device("dev-3", zone="zone-2"),
            make_device("dev-4", zone="zone-4"),
        ]
    )


@pytest.fixture
def pipeline(app_config, registry, channels, clock):
    return create_pipeline(app_config, registry=registry, channels=channels, clock=clock)


def _sent(channels):
    return sum(len(provider.sent) for provider in channels.values())


class TestReadings:
    @pytest.mark.asyncio
    async def test_calm_reading_raises_nothing(self, pipeline, make_reading, channels):
        prediction = await pipeline.process_reading("zone-1", make_reading())

        assert prediction.risk_level == Severity.LOW
        assert prediction.fallback is True
        assert await pipeline.get_active_alerts() == []
        assert _sent(channels) == 0

    @pytest.mark.asyncio
    async def test_raw_payload_accepted(self, pipeline, calm_values):
        prediction = await pipeline.process_reading("zone-2", calm_values)
        assert prediction.zone_id == "zone-2"

    @pytest.mark.asyncio
    async def test_invalid_reading_rejected(self, pipeline, calm_values):
        with pytest.raises(InputError):
            await pipeline.process_reading("zone-1", {**calm_values, "strain": 5000})

        assert pipeline.context.zone_ids == []

    @pytest.mark.asyncio
    async def test_extreme_reading_raises_alert_with_prediction_context(
        self, pipeline, make_reading, extreme_values
    ):
        for _ in range(10):
            await pipeline.process_reading("zone-1", make_reading())

        outcome = await pipeline.ingest("zone-1", make_reading(**extreme_values))

        assert outcome.prediction.risk_level == Severity.CRITICAL
        assert outcome.created is True
        alert = outcome.alert
        assert alert.severity in (Severity.HIGH, Severity.CRITICAL)
        assert alert.risk_score == pytest.approx(outcome.prediction.risk_score / 10)
        assert alert.confidence == outcome.prediction.confidence
        assert alert.factors[0] == "displacement"
        assert alert.zone_name == "North Pit Wall"
        assert outcome.deliveries

    @pytest.mark.asyncio
    async def test_tick_isolates_bad_zone(self, pipeline, calm_values):
        outcomes = await pipeline.process_tick(
            {
                "zone-1": calm_values,
                "zone-2": {**calm_values, "strain": 5000},
                "zone-4": calm_values,
            }
        )

        assert outcomes["zone-1"].ok
        assert outcomes["zone-4"].ok
        assert isinstance(outcomes["zone-2"].error, InputError)
        assert sorted(pipeline.context.zone_ids) == ["zone-1", "zone-4"]

    @pytest.mark.asyncio
    async def test_tick_rejects_non_mapping_payloads(self, pipeline, calm_values):
        outcomes = await pipeline.process_tick(
            {
                "zone-1": calm_values,
                "zone-2": None,
                "zone-3": "displacement=4.0",
                "zone-4": [calm_values],
            }
        )

        assert outcomes["zone-1"].ok
        for zone_id in ("zone-2", "zone-3", "zone-4"):
            assert isinstance(outcomes[zone_id].error, InputError)
        assert pipeline.context.zone_ids == ["zone-1"]

    @pytest.mark.asyncio
    async def test_store_failure_carries_reading_outcome(
        self, app_config, registry, channels, clock, make_reading, extreme_values
    ):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=FailingAlertStore(),
            channels=channels,
            clock=clock,
        )
        for _ in range(10):
            await pipeline.process_reading("zone-1", make_reading())

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_reading("zone-1", make_reading(**extreme_values))

        outcome = exc_info.value.result
        assert outcome.zone_id == "zone-1"
        assert outcome.prediction.risk_level == Severity.CRITICAL
        assert outcome.alert is exc_info.value.record
        assert len(outcome.deliveries) == _sent(channels)


class TestRiskAssessment:
    @pytest.mark.asyncio
    async def test_critical_broadcast(self, pipeline, channels):
        result = await pipeline.process_risk_assessment({"zone-1": 8.7})

        assert result.max_risk_score == 8.7
        [alert] = result.alerts
        assert alert.severity == Severity.CRITICAL
        assert len(result.outcomes["zone-1"].deliveries) == 5
        assert sorted(channels[PUSH].device_ids()) == ["dev-1", "dev-2", "dev-3", "dev-4"]
        assert channels[SMS].device_ids() == ["dev-1"]

        stored = (await pipeline.get_active_alerts("zone-1"))[0]
        assert stored.notifications_sent == 5
        assert stored.last_notification_at is not None
        summary = await pipeline.get_delivery_summary(alert.alert_id)
        assert summary["total"] == 5
        assert len(await pipeline.get_delivery_status(alert.alert_id)) == 5

    @pytest.mark.asyncio
    async def test_high_reaches_adjacent_zone(self, pipeline, channels):
        await pipeline.process_risk_assessment({"zone-1": 7.8})
        assert sorted(channels[PUSH].device_ids()) == ["dev-1", "dev-2", "dev-3"]

    @pytest.mark.asyncio
    async def test_repeat_within_window_is_deduplicated(self, pipeline, channels, clock):
        first = await pipeline.process_risk_assessment({"zone-1": 8.7})
        clock.advance(120)
        second = await pipeline.process_risk_assessment({"zone-1": 9.2})

        assert second.alerts[0].alert_id == first.alerts[0].alert_id
        assert second.outcomes["zone-1"].created is False
        assert _sent(channels) == 5

    @pytest.mark.asyncio
    async def test_repeat_after_window_creates_new_alert(self, pipeline, clock):
        first = await pipeline.process_risk_assessment({"zone-1": 8.7})
        clock.advance(301)
        second = await pipeline.process_risk_assessment({"zone-1": 8.7})

        assert second.alerts[0].alert_id != first.alerts[0].alert_id

    @pytest.mark.asyncio
    async def test_medium_is_deferred_until_flush(self, pipeline, channels):
        result = await pipeline.process_risk_assessment({"zone-1": 6.5})

        outcome = result.outcomes["zone-1"]
        assert outcome.deferred is True
        assert outcome.deliveries == []
        assert len(pipeline.pending_deferred) == 1
        assert _sent(channels) == 0

        flushed = await pipeline.flush_deferred()

        assert len(flushed[outcome.alert.alert_id]) == 2
        assert sorted(channels[PUSH].device_ids()) == ["dev-1", "dev-2"]
        assert pipeline.pending_deferred == []

    @pytest.mark.asyncio
    async def test_resolved_alert_is_not_flushed(self, pipeline, channels):
        result = await pipeline.process_risk_assessment({"zone-1": 6.5})

        await pipeline.resolve_alert(result.alerts[0].alert_id)

        assert await pipeline.flush_deferred() == {}
        assert _sent(channels) == 0

    @pytest.mark.asyncio
    async def test_low_scores_raise_nothing(self, pipeline):
        result = await pipeline.process_risk_assessment({"zone-1": 3.0, "zone-2": 7.8})

        assert result.max_risk_score == 7.8
        assert [a.zone_id for a in result.alerts] == ["zone-2"]

    @pytest.mark.asyncio
    async def test_out_of_range_score_rejected(self, pipeline):
        with pytest.raises(InputError):
            await pipeline.process_risk_assessment({"zone-1": 8.0, "zone-2": 10.5})

        assert await pipeline.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_failing_alert_store(self, app_config, registry, channels, clock):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=FailingAlertStore(),
            channels=channels,
            clock=clock,
        )

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_risk_assessment({"zone-1": 8.7})

        alert = exc_info.value.record
        assert alert.severity == Severity.CRITICAL
        # Still dispatched and still cached
        assert _sent(channels) == 5
        key = DedupCache.key_for("zone-1", Severity.CRITICAL.value)
        assert pipeline.context.dedup.get(key, clock()).alert_id == alert.alert_id

        retry = await pipeline.process_risk_assessment({"zone-1": 8.7})
        assert retry.alerts[0].alert_id == alert.alert_id
        assert _sent(channels) == 5

    @pytest.mark.asyncio
    async def test_injected_empty_store_is_used(self, app_config, registry, channels, clock):
        store = InMemoryAlertStore()
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=store,
            channels=channels,
            clock=clock,
        )

        result = await pipeline.process_risk_assessment({"zone-1": 8.7})

        assert len(store) == 1
        assert (await store.get_alert(result.alerts[0].alert_id)).notifications_sent == 5

    @pytest.mark.asyncio
    async def test_notification_count_failure_keeps_deliveries(
        self, app_config, registry, channels, clock
    ):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=ReadOnlyAlertStore(),
            channels=channels,
            clock=clock,
        )

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_risk_assessment({"zone-1": 8.7})

        error = exc_info.value
        assert len(error.record) == 5
        assert all(isinstance(d, DeliveryStatus) for d in error.record)
        assert isinstance(error.cause, PersistenceError)
        outcome = error.result.outcomes["zone-1"]
        assert outcome.deliveries == error.record
        assert len(await pipeline.get_delivery_status(outcome.alert.alert_id)) == 5

    @pytest.mark.asyncio
    async def test_partial_batch_failure_returns_every_zone(
        self, app_config, registry, channels, clock
    ):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=UnavailableAlertStore(),
            channels=channels,
            clock=clock,
        )

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_risk_assessment({"zone-1": 8.7, "zone-2": 3.0})

        result = exc_info.value.result
        assert result.max_risk_score == 8.7
        assert sorted(result.outcomes) == ["zone-1", "zone-2"]
        assert result.outcomes["zone-2"].ok
        assert result.outcomes["zone-1"].error is exc_info.value
        assert len(result.outcomes["zone-1"].deliveries) == 5
        assert _sent(channels) == 5

    @pytest.mark.asyncio
    async def test_flush_survives_unreadable_store(self, app_config, registry, channels, clock):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=UnavailableAlertStore(),
            channels=channels,
            clock=clock,
        )
        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_risk_assessment({"zone-1": 6.5})
        alert_id = exc_info.value.record.alert_id

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.flush_deferred()

        assert len(exc_info.value.result[alert_id]) == 2
        assert sorted(channels[PUSH].device_ids()) == ["dev-1", "dev-2"]
        assert pipeline.pending_deferred == []

    @pytest.mark.asyncio
    async def test_sweep_evicts_stale_entries(self, pipeline, clock):
        await pipeline.process_risk_assessment({"zone-1": 8.7, "zone-2": 6.2})

        assert await pipeline.sweep(clock() + timedelta(seconds=600)) == 0
        assert await pipeline.sweep(clock() + timedelta(seconds=3601)) == 2


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_manual_alert_to_targets(self, pipeline, channels):
        request = ManualAlertRequest(
            zone_id="zone-1",
            severity=Severity.HIGH,
            risk_score=7.6,
            message="Crack observed on bench 4",
            target_device_ids=["dev-3"],
        )

        outcome = await pipeline.process_manual_alert(request)

        assert outcome.alert.alert_type == AlertType.MANUAL
        assert outcome.alert.message == "Crack observed on bench 4"
        assert channels[PUSH].device_ids() == ["dev-3"]
        assert len(outcome.deliveries) == 1

    @pytest.mark.asyncio
    async def test_manual_alert_store_failure_carries_outcome(
        self, app_config, registry, channels, clock
    ):
        pipeline = create_pipeline(
            app_config,
            registry=registry,
            alert_store=ReadOnlyAlertStore(),
            channels=channels,
            clock=clock,
        )
        request = ManualAlertRequest(
            zone_id="zone-1",
            severity=Severity.HIGH,
            risk_score=7.6,
            target_device_ids=["dev-3"],
        )

        with pytest.raises(PersistenceError) as exc_info:
            await pipeline.process_manual_alert(request)

        outcome = exc_info.value.result
        assert outcome.alert.alert_type == AlertType.MANUAL
        assert [d.device_id for d in outcome.deliveries] == ["dev-3"]
        assert outcome.error is exc_info.value

    @pytest.mark.asyncio
    async def test_manual_alert_bypasses_dedup(self, pipeline):
        first = await pipeline.process_risk_assessment({"zone-1": 8.7})
        outcome = await pipeline.process_manual_alert(
            ManualAlertRequest(zone_id="zone-1", severity=Severity.CRITICAL, risk_score=9.0)
        )

        assert outcome.alert.alert_id != first.alerts[0].alert_id
        assert len(await pipeline.get_active_alerts("zone-1")) == 2

    @pytest.mark.asyncio
    async def test_acknowledge(self, pipeline, clock):
        result = await pipeline.process_risk_assessment({"zone-1": 8.7})

        acknowledged = await pipeline.acknowledge_alert(result.alerts[0].alert_id)

        assert acknowledged.status == AlertStatus.ACKNOWLEDGED
        assert acknowledged.acknowledged_at == clock()
        assert acknowledged.is_active

    @pytest.mark.asyncio
    async def test_resolve_with_notice(self, pipeline, channels):
        result = await pipeline.process_risk_assessment({"zone-1": 8.7})
        alert_id = result.alerts[0].alert_id

        resolved = await pipeline.resolve_alert(
            alert_id,
            AlertResolution(notes="Bench scaled", resolved_by="shift-supervisor", notify=True),
        )

        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolved_by == "shift-supervisor"
        notices = [s for s in channels[PUSH].sent if s[2] == "resolution_push"]
        assert sorted(device_id for device_id, _, _ in notices) == ["dev-1", "dev-2"]
        assert await pipeline.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_resolve_clears_dedup(self, pipeline):
        first = await pipeline.process_risk_assessment({"zone-1": 8.7})
        await pipeline.resolve_alert(first.alerts[0].alert_id)

        second = await pipeline.process_risk_assessment({"zone-1": 8.7})

        assert second.outcomes["zone-1"].created is True
        assert second.alerts[0].alert_id != first.alerts[0].alert_id

    @pytest.mark.asyncio
    async def test_unknown_alert(self, pipeline):
        with pytest.raises(AlertNotFoundError):
            await pipeline.resolve_alert("missing")
        with pytest.raises(AlertNotFoundError):
            await pipeline.acknowledge_alert("missing")
