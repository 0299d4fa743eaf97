"""
Recipient selection and eligibility.

Selection widens with severity: critical alerts go to every active device,
high alerts to the alert zone and its adjacent zones, everything else to
the alert zone only. Explicit device ids replace selection entirely.

Eligibility is checked per device after selection:
    - the device is active
    - the alert severity is at or above the device's minimum severity
    - the device is not in quiet hours, unless the alert is critical
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

import structlog

from slopeguard.interfaces.stores import DeviceRegistry
from slopeguard.models.alerts import Alert, Severity
from slopeguard.models.devices import Device

logger = structlog.get_logger(__name__)


async def select_devices(
    registry: DeviceRegistry,
    alert: Alert,
    adjacency: Dict[str, List[str]],
    target_device_ids: Optional[Sequence[str]] = None,
) -> List[Device]:
    """
    Select candidate recipients for an alert.

    Args:
        registry: Device registry.
        alert: Alert being dispatched.
        adjacency: Static zone adjacency map.
        target_device_ids: Explicit recipients, overriding selection.

    Returns:
        List[Device]: Candidates, unique by device id, in selection order.
    """
    if target_device_ids:
        devices = []
        for device_id in target_device_ids:
            device = await registry.get_device(device_id)
            if device is None:
                logger.warning(
                    "target_device_not_found",
                    device_id=device_id,
                    alert_id=alert.alert_id,
                )
                continue
            devices.append(device)
        return _unique(devices)

    if alert.severity == Severity.CRITICAL:
        return _unique(await registry.get_all_active_devices())

    zones = [alert.zone_id]
    if alert.severity == Severity.HIGH:
        zones.extend(adjacency.get(alert.zone_id, []))

    devices = []
    for zone_id in zones:
        devices.extend(await registry.get_devices_by_zone(zone_id))
    return _unique(devices)


def _unique(devices: Sequence[Device]) -> List[Device]:
    seen: Dict[str, Device] = {}
    for device in devices:
        seen.setdefault(device.device_id, device)
    return list(seen.values())


def ineligibility_reason(
    device: Device,
    severity: Severity,
    now: datetime,
) -> Optional[str]:
    """
    Explain why a device must not be notified, or None if it may be.

    Example:
        >>> ineligibility_reason(night_shift_device, Severity.HIGH, at_23_00)
        'quiet_hours'
        >>> ineligibility_reason(night_shift_device, Severity.CRITICAL, at_23_00) is None
        True
    """
    if not device.is_active:
        return "inactive"

    preferences = device.preferences
    if not severity.at_least(preferences.minimum_severity):
        return "below_minimum_severity"

    if (
        severity != Severity.CRITICAL
        and preferences.quiet_hours is not None
        and preferences.quiet_hours.contains(device.local_time(now))
    ):
        return "quiet_hours"

    return None


def is_eligible(device: Device, severity: Severity, now: datetime) -> bool:
    return ineligibility_reason(device, severity, now) is None
