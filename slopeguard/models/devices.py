"""
Field device models.

Models:
    NotificationChannel: Delivery channel (push, sms, email)
    QuietHours: Daily window during which non-critical alerts are held back
    NotificationPreferences: Per-device channel and severity preferences
    DeviceContact: Addresses for each channel
    Device: Registered field device
"""

from datetime import datetime, time, timezone
from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from slopeguard.models.alerts import Severity


class NotificationChannel(str, Enum):
    """Delivery channel."""

    PUSH = "push"
    SMS = "sms"
    EMAIL = "email"


def _parse_hhmm(value: str) -> time:
    hours, _, minutes = value.partition(":")
    return time(int(hours), int(minutes))


class QuietHours(BaseModel):
    """
    Daily quiet window, in the device's local time.

    Both bounds are inclusive at minute granularity. A window whose start
    is after its end wraps past midnight (e.g. 22:00-06:00).

    Example:
        >>> quiet = QuietHours(start="22:00", end="06:00")
        >>> quiet.contains(time(23, 0))
        True
        >>> quiet.contains(time(12, 0))
        False
    """

    model_config = {"frozen": True, "extra": "forbid"}

    start: str = Field(..., description="Window start, HH:MM")
    end: str = Field(..., description="Window end, HH:MM")

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        """Ensure the bound is a valid 24-hour HH:MM time."""
        try:
            _parse_hhmm(v)
        except ValueError as e:
            raise ValueError(f"Expected HH:MM, got {v!r}") from e
        return v

    def contains(self, moment: time) -> bool:
        """Check if a local wall-clock time falls inside the window."""
        current = moment.hour * 60 + moment.minute
        start = _parse_hhmm(self.start)
        end = _parse_hhmm(self.end)
        start_minutes = start.hour * 60 + start.minute
        end_minutes = end.hour * 60 + end.minute

        if start_minutes <= end_minutes:
            return start_minutes <= current <= end_minutes
        return current >= start_minutes or current <= end_minutes


class NotificationPreferences(BaseModel):
    """
    Per-device notification preferences.

    Attributes:
        channels_enabled: Channels the device accepts. Email is opt-in.
        minimum_severity: Lowest severity the device is notified about.
        quiet_hours: Optional daily quiet window.
        timezone: IANA timezone for evaluating quiet hours (default UTC).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    channels_enabled: List[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.PUSH, NotificationChannel.SMS],
    )
    minimum_severity: Severity = Field(default=Severity.MEDIUM)
    quiet_hours: Optional[QuietHours] = Field(default=None)
    timezone: Optional[str] = Field(default=None)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Ensure the timezone name is known to the tz database."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class DeviceContact(BaseModel):
    """Per-channel addresses for a device."""

    model_config = {"frozen": True, "extra": "forbid"}

    push_token: Optional[str] = Field(default=None)
    phone_number: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)


class Device(BaseModel):
    """
    Registered field device.

    Example:
        >>> device = Device(
        ...     device_id="dev-17",
        ...     name="Shift supervisor handset",
        ...     zone_assignment="zone-2",
        ...     contact=DeviceContact(push_token="fcm-abc", phone_number="+61400000000"),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    device_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    zone_assignment: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
    preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
    contact: DeviceContact = Field(default_factory=DeviceContact)

    def address_for(self, channel: NotificationChannel) -> Optional[str]:
        """Return the device's address on a channel, if it has one."""
        if channel == NotificationChannel.PUSH:
            return self.contact.push_token
        if channel == NotificationChannel.SMS:
            return self.contact.phone_number
        return self.contact.email

    def local_time(self, moment: datetime) -> time:
        """Convert an instant to the device's local wall-clock time."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        tz = ZoneInfo(self.preferences.timezone) if self.preferences.timezone else timezone.utc
        return moment.astimezone(tz).time()
