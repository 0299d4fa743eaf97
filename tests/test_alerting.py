"""
Tests for severity classification, the dedup cache and the alert manager.
"""

from datetime import timedelta

import pytest

from slopeguard.alerting.dedup import DedupCache
from slopeguard.alerting.manager import AlertManager
from slopeguard.alerting.severity import SeverityClassifier
from slopeguard.alerting.storage import AlertStorage
from slopeguard.config.models import AlertsConfig, SeverityThresholds, ZoneConfig
from slopeguard.context import MonitoringContext
from slopeguard.errors import AlertNotFoundError, PersistenceError
from slopeguard.models.alerts import (
    AlertResolution,
    AlertStatus,
    AlertType,
    ManualAlertRequest,
    Severity,
)
from slopeguard.models.prediction import PredictionResult, RiskFactor
from slopeguard.storage.memory import InMemoryAlertStore

ZONES = {
    "zone-1": ZoneConfig(
        name="North Pit Wall",
        affected_personnel=12,
        equipment_at_risk=["Excavator EX-01", "Haul Truck HT-04"],
    ),
}


class FailingAlertStore(InMemoryAlertStore):
    """Alert store whose writes always fail."""

    async def create_alert(self, alert):
        raise ConnectionError("database unavailable")


class UnreadableAlertStore(InMemoryAlertStore):
    """Alert store whose reads always fail."""

    async def get_alert(self, alert_id):
        raise ConnectionError("replica unreachable")

    async def list_active_alerts(self, zone_id=None):
        raise ConnectionError("replica unreachable")


class TestSeverityClassifier:
    def setup_method(self):
        self.classifier = SeverityClassifier()

    @pytest.mark.parametrize(
        "score,severity",
        [
            (5.9, Severity.LOW),
            (6.0, Severity.MEDIUM),
            (7.4, Severity.MEDIUM),
            (7.5, Severity.HIGH),
            (8.49, Severity.HIGH),
            (8.5, Severity.CRITICAL),
            (10.0, Severity.CRITICAL),
        ],
    )
    def test_bands(self, score, severity):
        assert self.classifier.classify(score) == severity

    def test_custom_thresholds(self):
        classifier = SeverityClassifier(SeverityThresholds(medium=4.0, high=6.0, critical=9.0))
        assert classifier.classify(5.0) == Severity.MEDIUM
        assert classifier.classify(8.9) == Severity.HIGH

    def test_scale_conversion(self):
        assert self.classifier.to_alert_scale(82.0) == pytest.approx(8.2)
        assert self.classifier.classify(self.classifier.to_alert_scale(82.0)) == Severity.HIGH

    def test_probability_is_clamped(self):
        assert self.classifier.probability(0.2) == 0.05
        assert self.classifier.probability(7.0) == pytest.approx(0.7)
        assert self.classifier.probability(9.9) == 0.95

    @pytest.mark.parametrize(
        "score,timeline",
        [
            (9.0, "Immediate (0-15 minutes)"),
            (8.5, "Very Short (15-60 minutes)"),
            (7.2, "Short Term (1-6 hours)"),
            (6.5, "Medium Term (6-24 hours)"),
            (5.0, "Long Term (24+ hours)"),
        ],
    )
    def test_timeline(self, score, timeline):
        assert self.classifier.timeline(score) == timeline

    def test_critical_message(self):
        message = self.classifier.message("North Pit Wall", 8.7, Severity.CRITICAL)
        assert message == (
            "CRITICAL ROCKFALL RISK detected in North Pit Wall. Risk Score: 8.7/10. "
            "IMMEDIATE EVACUATION REQUIRED."
        )

    def test_recommended_actions_are_copies(self):
        actions = self.classifier.recommended_actions(Severity.CRITICAL)
        assert len(actions) == 6
        assert actions[0] == "EVACUATE ALL PERSONNEL IMMEDIATELY"

        actions.append("mutated")
        assert len(self.classifier.recommended_actions(Severity.CRITICAL)) == 6


class TestDedupCache:
    def setup_method(self):
        self.cache = DedupCache(window_seconds=300, max_age_seconds=3600)

    def test_hit_inside_window(self, make_alert):
        alert = make_alert()
        self.cache.put(alert, alert.created_at)

        later = alert.created_at + timedelta(seconds=299)
        assert self.cache.get(alert.dedup_key, later) is alert

    def test_miss_at_window_edge(self, make_alert):
        alert = make_alert()
        self.cache.put(alert, alert.created_at)

        edge = alert.created_at + timedelta(seconds=300)
        assert self.cache.get(alert.dedup_key, edge) is None
        # Still cached until swept
        assert alert.dedup_key in self.cache

    def test_sweep_evicts_old_entries(self, make_alert):
        old = make_alert(zone_id="zone-1")
        recent = make_alert(zone_id="zone-2")
        self.cache.put(old, old.created_at)
        self.cache.put(recent, old.created_at + timedelta(seconds=3000))

        removed = self.cache.sweep(old.created_at + timedelta(seconds=3601))

        assert removed == 1
        assert old.dedup_key not in self.cache
        assert recent.dedup_key in self.cache

    def test_sweep_restricted_to_zone(self, make_alert):
        first = make_alert(zone_id="zone-1")
        second = make_alert(zone_id="zone-2")
        self.cache.put(first, first.created_at)
        self.cache.put(second, first.created_at)

        removed = self.cache.sweep(first.created_at + timedelta(hours=2), zone_id="zone-2")

        assert removed == 1
        assert self.cache.zone_ids() == {"zone-1"}

    def test_remove_alert(self, make_alert):
        alert = make_alert()
        self.cache.put(alert, alert.created_at)

        assert self.cache.remove_alert(alert.alert_id) is True
        assert self.cache.remove_alert(alert.alert_id) is False
        assert len(self.cache) == 0


@pytest.mark.asyncio
async def test_context_sweep_per_zone(make_alert):
    context = MonitoringContext(dedup_window_seconds=300, cache_max_age_seconds=3600)
    alert = make_alert()
    context.dedup.put(alert, alert.created_at)

    assert await context.sweep(alert.created_at + timedelta(seconds=60)) == 0
    assert await context.sweep(alert.created_at + timedelta(seconds=3601)) == 1
    assert len(context.dedup) == 0


class TestAlertManager:
    def _manager(self, clock, store=None):
        self.store = store if store is not None else InMemoryAlertStore()
        self.dedup = DedupCache(window_seconds=300)
        return AlertManager(
            config=AlertsConfig(),
            dedup=self.dedup,
            storage=AlertStorage(self.store),
            zones=ZONES,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_low_score_creates_nothing(self, clock):
        manager = self._manager(clock)

        assert await manager.classify_and_maybe_create("zone-1", 5.9) is None
        assert len(self.store) == 0

    @pytest.mark.asyncio
    async def test_creates_alert_with_zone_context(self, clock):
        manager = self._manager(clock)

        alert, created = await manager.evaluate("zone-1", 8.7)

        assert created is True
        assert alert.severity == Severity.CRITICAL
        assert alert.zone_name == "North Pit Wall"
        assert alert.affected_personnel == 12
        assert alert.equipment_at_risk == ["Excavator EX-01", "Haul Truck HT-04"]
        assert alert.risk_probability == pytest.approx(0.87)
        assert alert.predicted_timeline == "Very Short (15-60 minutes)"
        assert len(alert.recommended_actions) == 6
        assert alert.created_at == clock.now
        assert await self.store.get_alert(alert.alert_id) == alert

    @pytest.mark.asyncio
    async def test_unknown_zone_named_after_id(self, clock):
        manager = self._manager(clock)
        alert = await manager.classify_and_maybe_create("zone-9", 7.6)
        assert alert.zone_name == "zone-9"
        assert alert.affected_personnel == 0

    @pytest.mark.asyncio
    async def test_duplicate_inside_window_returns_cached(self, clock):
        manager = self._manager(clock)
        first = await manager.classify_and_maybe_create("zone-1", 7.8)

        clock.advance(299)
        second, created = await manager.evaluate("zone-1", 8.0)

        assert created is False
        assert second.alert_id == first.alert_id
        assert len(self.store) == 1

    @pytest.mark.asyncio
    async def test_new_alert_after_window(self, clock):
        manager = self._manager(clock)
        first = await manager.classify_and_maybe_create("zone-1", 7.8)

        clock.advance(301)
        second, created = await manager.evaluate("zone-1", 7.8)

        assert created is True
        assert second.alert_id != first.alert_id
        assert len(self.store) == 2

    @pytest.mark.asyncio
    async def test_different_severity_not_deduplicated(self, clock):
        manager = self._manager(clock)
        high = await manager.classify_and_maybe_create("zone-1", 7.8)
        critical = await manager.classify_and_maybe_create("zone-1", 9.0)

        assert high.alert_id != critical.alert_id
        assert len(self.store) == 2

    @pytest.mark.asyncio
    async def test_prediction_context_carried(self, clock):
        manager = self._manager(clock)
        prediction = PredictionResult(
            zone_id="zone-1",
            risk_score=82.0,
            risk_level=Severity.CRITICAL,
            confidence=88.0,
            time_to_event_hours=12,
            factors=[
                RiskFactor(parameter="displacement", contribution=40.0),
                RiskFactor(parameter="strain", contribution=20.0),
            ],
        )

        alert = await manager.classify_and_maybe_create("zone-1", 8.2, prediction)

        assert alert.confidence == 88.0
        assert alert.time_to_event_hours == 12
        assert alert.factors == ["displacement", "strain"]

    @pytest.mark.asyncio
    async def test_store_failure_keeps_alert_cached(self, clock):
        manager = self._manager(clock, store=FailingAlertStore())

        with pytest.raises(PersistenceError) as exc_info:
            await manager.evaluate("zone-1", 8.0)

        attempted = exc_info.value.record
        assert attempted.zone_id == "zone-1"
        assert attempted.dedup_key in self.dedup

        # The retry inside the window returns the cached alert instead of failing again
        clock.advance(10)
        alert, created = await manager.evaluate("zone-1", 8.0)
        assert created is False
        assert alert.alert_id == attempted.alert_id

    @pytest.mark.asyncio
    async def test_manual_alerts_bypass_dedup(self, clock):
        manager = self._manager(clock)
        request = ManualAlertRequest(
            zone_id="zone-1",
            severity=Severity.HIGH,
            risk_score=7.0,
            message="Crack observed on bench 4",
        )

        first = await manager.create_manual_alert(request)
        second = await manager.create_manual_alert(request)

        assert first.alert_id != second.alert_id
        assert first.alert_type == AlertType.MANUAL
        assert first.message == "Crack observed on bench 4"
        assert len(self.dedup) == 0

    @pytest.mark.asyncio
    async def test_acknowledge(self, clock):
        manager = self._manager(clock)
        alert = await manager.classify_and_maybe_create("zone-1", 8.0)

        clock.advance(60)
        acknowledged = await manager.acknowledge(alert.alert_id)

        assert acknowledged.status == AlertStatus.ACKNOWLEDGED
        assert acknowledged.acknowledged_at == clock.now
        assert acknowledged.is_active

    @pytest.mark.asyncio
    async def test_unknown_alert(self, clock):
        manager = self._manager(clock)
        with pytest.raises(AlertNotFoundError):
            await manager.acknowledge("missing")
        with pytest.raises(AlertNotFoundError):
            await manager.resolve("missing", AlertResolution())

    @pytest.mark.asyncio
    async def test_resolve_clears_dedup_entry(self, clock):
        manager = self._manager(clock)
        alert = await manager.classify_and_maybe_create("zone-1", 8.0)

        resolved = await manager.resolve(
            alert.alert_id,
            AlertResolution(notes="Bench scaled", resolved_by="shift-supervisor"),
        )

        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution_notes == "Bench scaled"
        assert resolved.resolved_by == "shift-supervisor"
        assert await manager.storage.get_active_alerts("zone-1") == []

        again, created = await manager.evaluate("zone-1", 8.0)
        assert created is True
        assert again.alert_id != alert.alert_id

    @pytest.mark.asyncio
    async def test_record_notifications(self, clock):
        manager = self._manager(clock)
        alert = await manager.classify_and_maybe_create("zone-1", 8.0)

        await manager.record_notifications(alert, 3)
        clock.advance(900)
        updated = await manager.record_notifications(alert, 2)

        assert updated.notifications_sent == 5
        assert updated.last_notification_at == clock.now

    def test_immediate_severities(self, clock):
        manager = self._manager(clock)
        assert manager.is_immediate(Severity.CRITICAL)
        assert manager.is_immediate(Severity.HIGH)
        assert not manager.is_immediate(Severity.MEDIUM)


class TestAlertStorage:
    @pytest.mark.asyncio
    async def test_update_missing_alert(self):
        storage = AlertStorage(InMemoryAlertStore())
        assert await storage.update("missing", {"notifications_sent": 1}) is None

    @pytest.mark.asyncio
    async def test_save_failure_wraps_cause(self, make_alert):
        storage = AlertStorage(FailingAlertStore())
        alert = make_alert()

        with pytest.raises(PersistenceError) as exc_info:
            await storage.save(alert)

        assert exc_info.value.record is alert
        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_read_failures_wrap_cause(self):
        storage = AlertStorage(UnreadableAlertStore())

        with pytest.raises(PersistenceError) as exc_info:
            await storage.get_alert("alert-1")
        assert isinstance(exc_info.value.cause, ConnectionError)

        with pytest.raises(PersistenceError) as exc_info:
            await storage.get_active_alerts("zone-1")
        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_record_notifications_read_failure(self, clock, make_alert):
        manager = AlertManager(
            config=AlertsConfig(),
            dedup=DedupCache(window_seconds=300),
            storage=AlertStorage(UnreadableAlertStore()),
            zones=ZONES,
            clock=clock,
        )

        with pytest.raises(PersistenceError):
            await manager.record_notifications(make_alert(), 2)
