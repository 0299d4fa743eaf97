"""
Tests for recipient targeting, message templates and delivery tracking.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from slopeguard.config.models import default_adjacency
from slopeguard.errors import InvalidTransitionError, PersistenceError
from slopeguard.models.alerts import Severity
from slopeguard.models.delivery import DeliveryState
from slopeguard.models.devices import NotificationChannel, QuietHours
from slopeguard.notification.targeting import (
    ineligibility_reason,
    is_eligible,
    select_devices,
)
from slopeguard.notification.templates import (
    VIBRATION_PATTERNS,
    render,
    render_resolution,
    template_name,
)
from slopeguard.notification.tracker import DeliveryTracker
from slopeguard.storage.memory import InMemoryDeliveryStore, InMemoryDeviceRegistry

NIGHT = datetime(2026, 3, 2, 23, 0, tzinfo=timezone.utc)
NOON = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FailingDeliveryStore(InMemoryDeliveryStore):
    async def create_delivery(self, delivery):
        raise ConnectionError("delivery table locked")


class UnreadableDeliveryStore(InMemoryDeliveryStore):
    async def get_delivery(self, delivery_id):
        raise ConnectionError("delivery table locked")


class TestQuietHours:
    def test_wraps_past_midnight(self):
        quiet = QuietHours(start="22:00", end="06:00")
        assert quiet.contains(NIGHT.time())
        assert quiet.contains(datetime(2026, 3, 2, 6, 0).time())
        assert not quiet.contains(NOON.time())

    def test_same_day_window(self):
        quiet = QuietHours(start="12:00", end="13:30")
        assert quiet.contains(NOON.time())
        assert not quiet.contains(NIGHT.time())

    def test_invalid_bound_rejected(self):
        with pytest.raises(ValueError):
            QuietHours(start="25:00", end="06:00")


class TestSelectDevices:
    def setup_method(self):
        self.adjacency = default_adjacency()

    @pytest.mark.asyncio
    async def test_critical_broadcasts_to_all_active_devices(self, make_device, make_alert):
        devices = [make_device(f"dev-{i}", zone=f"zone-{i % 6 + 1}") for i in range(10)]
        devices.append(make_device("dev-off", is_active=False))
        registry = InMemoryDeviceRegistry(devices)

        selected = await select_devices(registry, make_alert(severity=Severity.CRITICAL), self.adjacency)

        assert len(selected) == 10
        assert "dev-off" not in {d.device_id for d in selected}

    @pytest.mark.asyncio
    async def test_high_reaches_adjacent_zones(self, make_device, make_alert):
        registry = InMemoryDeviceRegistry(
            [
                make_device("dev-1", zone="zone-1"),
                make_device("dev-2", zone="zone-2"),
                make_device("dev-3", zone="zone-3"),
                make_device("dev-4", zone="zone-4"),
            ]
        )

        selected = await select_devices(registry, make_alert(severity=Severity.HIGH), self.adjacency)

        assert [d.device_id for d in selected] == ["dev-1", "dev-2", "dev-3"]

    @pytest.mark.asyncio
    async def test_medium_stays_in_zone(self, make_device, make_alert):
        registry = InMemoryDeviceRegistry(
            [make_device("dev-1", zone="zone-1"), make_device("dev-2", zone="zone-2")]
        )

        selected = await select_devices(registry, make_alert(severity=Severity.MEDIUM), self.adjacency)

        assert [d.device_id for d in selected] == ["dev-1"]

    @pytest.mark.asyncio
    async def test_explicit_targets_override(self, make_device, make_alert):
        registry = InMemoryDeviceRegistry(
            [make_device("dev-1", zone="zone-1"), make_device("dev-5", zone="zone-5")]
        )

        selected = await select_devices(
            registry,
            make_alert(severity=Severity.CRITICAL),
            self.adjacency,
            target_device_ids=["dev-5", "dev-missing", "dev-5"],
        )

        assert [d.device_id for d in selected] == ["dev-5"]


class TestEligibility:
    def test_minimum_severity(self, make_device):
        device = make_device("dev-1", minimum_severity=Severity.HIGH)

        assert ineligibility_reason(device, Severity.MEDIUM, NOON) == "below_minimum_severity"
        assert is_eligible(device, Severity.HIGH, NOON)

    def test_quiet_hours_hold_back_high(self, make_device):
        device = make_device("dev-1", quiet_hours=("22:00", "06:00"))

        assert ineligibility_reason(device, Severity.HIGH, NIGHT) == "quiet_hours"
        assert is_eligible(device, Severity.HIGH, NOON)

    def test_critical_ignores_quiet_hours(self, make_device):
        device = make_device("dev-1", quiet_hours=("22:00", "06:00"))
        assert is_eligible(device, Severity.CRITICAL, NIGHT)

    def test_quiet_hours_use_device_timezone(self, make_device):
        try:
            ZoneInfo("Australia/Sydney")
        except ZoneInfoNotFoundError:
            pytest.skip("tz database not installed")
        # 12:00 UTC is 23:00 in Sydney during daylight saving
        device = make_device(
            "dev-1",
            quiet_hours=("22:00", "06:00"),
            timezone_name="Australia/Sydney",
        )
        assert ineligibility_reason(device, Severity.HIGH, NOON) == "quiet_hours"

    def test_inactive_device(self, make_device):
        device = make_device("dev-1", is_active=False)
        assert ineligibility_reason(device, Severity.CRITICAL, NOON) == "inactive"


class TestTemplates:
    def test_template_names(self):
        assert template_name(Severity.CRITICAL, NotificationChannel.PUSH) == "critical_push"
        assert template_name(Severity.MEDIUM, NotificationChannel.EMAIL) == "medium_email"

    def test_critical_push(self, make_alert):
        message = render(make_alert(severity=Severity.CRITICAL, risk_score=8.7), NotificationChannel.PUSH)

        assert message.title == "CRITICAL ALERT: Immediate Action Required"
        assert message.body == "Rockfall risk detected in North Pit Wall. EVACUATE IMMEDIATELY!"
        assert message.sound == "emergency.mp3"
        assert message.vibration_pattern == VIBRATION_PATTERNS[Severity.CRITICAL]

    def test_sms_carries_alert_details(self, make_alert):
        alert = make_alert(severity=Severity.HIGH, risk_score=7.8)
        message = render(alert, NotificationChannel.SMS)

        assert message.body.startswith("HIGH RISK ALERT - North Pit Wall")
        assert "Risk Score: 7.8/10" in message.body
        assert "Probability: 78%" in message.body
        assert alert.alert_id in message.body
        assert message.title is None

    def test_email_subject(self, make_alert):
        message = render(make_alert(severity=Severity.CRITICAL, risk_score=9.1), NotificationChannel.EMAIL)
        assert message.subject == (
            "CRITICAL ROCKFALL ALERT - Immediate Evacuation Required - North Pit Wall"
        )

    @pytest.mark.parametrize("severity", list(Severity))
    @pytest.mark.parametrize("channel", list(NotificationChannel))
    def test_every_template_renders(self, make_alert, severity, channel):
        message = render(make_alert(severity=severity), channel)
        assert "{" not in message.body
        assert message.channel == channel

    def test_resolution_notice(self, make_alert):
        alert = make_alert(resolution_notes="Bench scaled and cleared")
        message = render_resolution(alert)

        assert message.channel == NotificationChannel.PUSH
        assert message.title == "ALL CLEAR: North Pit Wall"
        assert message.body.endswith("Bench scaled and cleared")


class TestDeliveryTracker:
    def setup_method(self):
        self.store = InMemoryDeliveryStore()
        self.tracker = DeliveryTracker(self.store)

    async def _record(self):
        return await self.tracker.record("alert-1", "dev-1", NotificationChannel.PUSH)

    @pytest.mark.asyncio
    async def test_record_starts_pending(self):
        record = await self._record()

        assert record.status == DeliveryState.PENDING
        assert record.delivery_attempts == 1
        assert await self.store.get_delivery(record.delivery_id) == record

    @pytest.mark.asyncio
    async def test_forward_transitions(self):
        record = await self._record()

        sent = await self.tracker.update(record.delivery_id, DeliveryState.SENT, timestamp=NOON)
        delivered = await self.tracker.update(record.delivery_id, DeliveryState.DELIVERED)
        read = await self.tracker.update(record.delivery_id, DeliveryState.READ)

        assert sent.sent_at == NOON
        assert delivered.delivered_at is not None
        assert read.status == DeliveryState.READ

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self):
        record = await self._record()
        await self.tracker.update(record.delivery_id, DeliveryState.FAILED, error_message="no route")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await self.tracker.update(record.delivery_id, DeliveryState.SENT)

        assert exc_info.value.current == "failed"
        stored = await self.store.get_delivery(record.delivery_id)
        assert stored.status == DeliveryState.FAILED
        assert stored.error_message == "no route"

    @pytest.mark.asyncio
    async def test_backward_move_rejected(self):
        record = await self._record()
        await self.tracker.update(record.delivery_id, DeliveryState.DELIVERED)

        with pytest.raises(InvalidTransitionError):
            await self.tracker.update(record.delivery_id, DeliveryState.SENT)

    @pytest.mark.asyncio
    async def test_same_state_is_noop(self):
        record = await self._record()
        sent = await self.tracker.update(record.delivery_id, DeliveryState.SENT, timestamp=NOON)

        again = await self.tracker.update(record.delivery_id, DeliveryState.SENT)

        assert again.sent_at == sent.sent_at

    @pytest.mark.asyncio
    async def test_unknown_delivery(self):
        with pytest.raises(KeyError):
            await self.tracker.update("missing", DeliveryState.SENT)

    @pytest.mark.asyncio
    async def test_store_failure(self):
        tracker = DeliveryTracker(FailingDeliveryStore())

        with pytest.raises(PersistenceError) as exc_info:
            await tracker.record("alert-1", "dev-1", NotificationChannel.SMS)

        assert exc_info.value.record.channel == NotificationChannel.SMS

    @pytest.mark.asyncio
    async def test_read_failure_on_update(self):
        store = UnreadableDeliveryStore()
        tracker = DeliveryTracker(store)
        record = await tracker.record("alert-1", "dev-1", NotificationChannel.PUSH)

        with pytest.raises(PersistenceError) as exc_info:
            await tracker.update(record.delivery_id, DeliveryState.SENT)

        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_summarize(self):
        first = await self._record()
        await self.tracker.record("alert-1", "dev-1", NotificationChannel.SMS)
        await self.tracker.record("alert-2", "dev-1", NotificationChannel.PUSH)
        await self.tracker.update(first.delivery_id, DeliveryState.SENT)

        summary = await self.tracker.summarize("alert-1")

        assert summary == {
            "total": 2,
            "by_status": {"sent": 1, "pending": 1},
            "by_channel": {"push": 1, "sms": 1},
        }
