"""
Sensor reading models.

A SensorReading is one tick of geotechnical telemetry for a single zone.
Field bounds match the physical ranges the sensor gateway clamps to, so
anything outside them is treated as a malformed reading.

Models:
    SensorReading: Immutable per-zone telemetry sample
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from slopeguard.errors import InputError

# Parameters scored by the statistical model and the anomaly detector
MONITORED_PARAMETERS: Tuple[str, ...] = (
    "displacement",
    "strain",
    "pore_pressure",
    "vibration",
    "tilt_angle",
)

SENSOR_PARAMETERS: Tuple[str, ...] = MONITORED_PARAMETERS + (
    "temperature",
    "rainfall",
    "wind_speed",
    "soil_moisture",
)


class SensorReading(BaseModel):
    """
    One telemetry sample for a monitored zone.

    Attributes:
        zone_id: Zone the sample belongs to.
        timestamp: When the sample was taken.
        displacement: Surface displacement in mm.
        strain: Strain in microstrain.
        pore_pressure: Pore water pressure in kPa.
        temperature: Air temperature in degrees Celsius.
        vibration: Dominant vibration frequency in Hz.
        rainfall: Rainfall intensity in mm/hr.
        wind_speed: Wind speed in m/s.
        soil_moisture: Volumetric soil moisture in percent.
        tilt_angle: Inclinometer tilt in degrees.

    Example:
        >>> reading = SensorReading(
        ...     zone_id="zone-1",
        ...     displacement=4.2,
        ...     strain=310.0,
        ...     pore_pressure=220.0,
        ...     temperature=18.5,
        ...     vibration=2.1,
        ...     rainfall=0.0,
        ...     wind_speed=6.0,
        ...     soil_moisture=35.0,
        ...     tilt_angle=0.4,
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid", "allow_inf_nan": False}

    zone_id: str = Field(
        ...,
        description="Zone the sample belongs to",
        min_length=1,
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the sample was taken",
    )
    displacement: float = Field(..., description="Displacement (mm)", ge=0, le=100)
    strain: float = Field(..., description="Strain (microstrain)", ge=0, le=2000)
    pore_pressure: float = Field(..., description="Pore pressure (kPa)", ge=0, le=1000)
    temperature: float = Field(..., description="Temperature (C)", ge=-20, le=50)
    vibration: float = Field(..., description="Vibration frequency (Hz)", ge=0, le=50)
    rainfall: float = Field(..., description="Rainfall intensity (mm/hr)", ge=0, le=200)
    wind_speed: float = Field(..., description="Wind speed (m/s)", ge=0, le=100)
    soil_moisture: float = Field(..., description="Soil moisture (%)", ge=0, le=100)
    tilt_angle: float = Field(..., description="Tilt angle (degrees)", ge=-45, le=45)

    def value(self, parameter: str) -> float:
        """Return the value of a named sensor parameter."""
        if parameter not in SENSOR_PARAMETERS:
            raise KeyError(f"Unknown sensor parameter: {parameter}")
        return getattr(self, parameter)


def parse_reading(
    zone_id: str,
    payload: Union[SensorReading, Mapping[str, Any]],
) -> SensorReading:
    """
    Validate a raw payload (or an existing reading) for a zone.

    Args:
        zone_id: Zone the caller is submitting for.
        payload: A SensorReading or a mapping of its fields. A mapping without
            zone_id inherits the argument.

    Returns:
        SensorReading: The validated reading.

    Raises:
        InputError: If the payload is malformed, out of range, or belongs to
            a different zone.
    """
    if isinstance(payload, SensorReading):
        reading = payload
    elif not isinstance(payload, Mapping):
        raise InputError(
            f"Reading for zone {zone_id} must be a mapping, got {type(payload).__name__}",
            zone_id=zone_id,
        )
    else:
        data = dict(payload)
        data.setdefault("zone_id", zone_id)
        try:
            reading = SensorReading.model_validate(data)
        except ValidationError as e:
            details: List[str] = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise InputError(
                f"Invalid sensor reading for zone {zone_id}",
                zone_id=zone_id,
                details=details,
            ) from e

    if reading.zone_id != zone_id:
        raise InputError(
            f"Reading for zone {reading.zone_id} submitted to zone {zone_id}",
            zone_id=zone_id,
        )

    return reading
