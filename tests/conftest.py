"""
Test fixtures for slopeguard tests.

Provides:
- Reading, device and alert factories
- Application config with the mine's zones
- A controllable clock for dedup and quiet-hours tests
- Recording channel providers
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from slopeguard.config.models import AppConfig, ZoneConfig
from slopeguard.models.alerts import Alert, Severity
from slopeguard.models.delivery import ChannelSendResult, DeliveryState, RenderedMessage
from slopeguard.models.devices import (
    Device,
    DeviceContact,
    NotificationChannel,
    NotificationPreferences,
    QuietHours,
)
from slopeguard.models.readings import SensorReading

# Every value sits below every detection threshold and precursor check
CALM_VALUES: Dict[str, float] = {
    "displacement": 2.0,
    "strain": 200.0,
    "pore_pressure": 150.0,
    "temperature": 15.0,
    "vibration": 1.0,
    "rainfall": 0.0,
    "wind_speed": 5.0,
    "soil_moisture": 30.0,
    "tilt_angle": 0.2,
}

# Drives every detection model to saturation
EXTREME_VALUES: Dict[str, float] = {
    **CALM_VALUES,
    "displacement": 60.0,
    "strain": 1800.0,
    "pore_pressure": 900.0,
    "vibration": 30.0,
    "tilt_angle": 20.0,
    "rainfall": 60.0,
    "soil_moisture": 95.0,
}

START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingProvider:
    """Channel provider that remembers every send."""

    def __init__(
        self,
        channel: NotificationChannel,
        status: DeliveryState = DeliveryState.SENT,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.channel = channel
        self.status = status
        self.error = error
        self.delay = delay
        self.sent: List[Tuple[str, RenderedMessage, str]] = []

    async def send(
        self,
        device: Device,
        message: RenderedMessage,
        template: str,
    ) -> ChannelSendResult:
        self.sent.append((device.device_id, message, template))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ChannelSendResult(status=self.status)

    def device_ids(self) -> List[str]:
        return [device_id for device_id, _, _ in self.sent]


@pytest.fixture
def calm_values() -> Dict[str, float]:
    return dict(CALM_VALUES)


@pytest.fixture
def extreme_values() -> Dict[str, float]:
    return dict(EXTREME_VALUES)


@pytest.fixture
def make_reading():
    """Factory for readings, calm unless overridden."""

    def _make(zone_id: str = "zone-1", **overrides: Any) -> SensorReading:
        values: Dict[str, Any] = {**CALM_VALUES, **overrides}
        return SensorReading(zone_id=zone_id, **values)

    return _make


@pytest.fixture
def make_device():
    """Factory for devices with an address on every channel."""

    def _make(
        device_id: str,
        zone: Optional[str] = "zone-1",
        channels: Sequence[NotificationChannel] = (NotificationChannel.PUSH,),
        minimum_severity: Severity = Severity.LOW,
        quiet_hours: Optional[Tuple[str, str]] = None,
        is_active: bool = True,
        timezone_name: Optional[str] = None,
        phone_number: Optional[str] = "+61400000000",
    ) -> Device:
        return Device(
            device_id=device_id,
            name=f"Handset {device_id}",
            zone_assignment=zone,
            is_active=is_active,
            preferences=NotificationPreferences(
                channels_enabled=list(channels),
                minimum_severity=minimum_severity,
                quiet_hours=QuietHours(start=quiet_hours[0], end=quiet_hours[1])
                if quiet_hours
                else None,
                timezone=timezone_name,
            ),
            contact=DeviceContact(
                push_token=f"push-{device_id}",
                phone_number=phone_number,
                email=f"{device_id}@mine.example",
            ),
        )

    return _make


@pytest.fixture
def make_alert():
    """Factory for stored-looking alerts."""

    def _make(
        zone_id: str = "zone-1",
        severity: Severity = Severity.HIGH,
        risk_score: float = 8.0,
        **overrides: Any,
    ) -> Alert:
        fields: Dict[str, Any] = {
            "zone_id": zone_id,
            "zone_name": "North Pit Wall",
            "severity": severity,
            "message": f"{severity.value} risk",
            "risk_score": risk_score,
            "risk_probability": risk_score / 10,
            "predicted_timeline": "Short Term (1-6 hours)",
            "recommended_actions": ["Prepare evacuation routes"],
            "created_at": START,
        }
        fields.update(overrides)
        return Alert(**fields)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        zones={
            "zone-1": ZoneConfig(
                name="North Pit Wall",
                affected_personnel=12,
                equipment_at_risk=["Excavator EX-01", "Haul Truck HT-04"],
            ),
            "zone-2": ZoneConfig(name="East Bench", affected_personnel=8),
            "zone-4": ZoneConfig(name="South Highwall", affected_personnel=6),
        }
    )


@pytest.fixture
def channels() -> Dict[NotificationChannel, RecordingProvider]:
    return {channel: RecordingProvider(channel) for channel in NotificationChannel}


@pytest.fixture
def make_provider():
    """Factory for recording providers with a chosen behaviour."""
    return RecordingProvider
