"""
Bounded per-zone reading history.

Classes:
    ReadingWindow: FIFO of the most recent readings for one zone
"""

from collections import deque
from typing import Deque, Iterator, List, Optional

from slopeguard.models.readings import SensorReading


class ReadingWindow:
    """
    Bounded FIFO of recent readings for one zone.

    Readings are kept in arrival order. Appending to a full window evicts
    the oldest reading.

    Example:
        >>> window = ReadingWindow("zone-1", capacity=100)
        >>> window.append(reading)
        >>> len(window)
        1
        >>> window.values("strain", last=5)
        [310.0]
    """

    def __init__(self, zone_id: str, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.zone_id = zone_id
        self.capacity = capacity
        self._readings: Deque[SensorReading] = deque(maxlen=capacity)

    def append(self, reading: SensorReading) -> None:
        """Add a reading, evicting the oldest if at capacity."""
        self._readings.append(reading)

    def clear(self) -> None:
        """Drop all readings."""
        self._readings.clear()

    @property
    def latest(self) -> Optional[SensorReading]:
        """Most recent reading, if any."""
        return self._readings[-1] if self._readings else None

    @property
    def previous(self) -> Optional[SensorReading]:
        """Reading before the most recent one, if any."""
        return self._readings[-2] if len(self._readings) >= 2 else None

    def tail(self, count: int) -> List[SensorReading]:
        """Return the last ``count`` readings, oldest first."""
        if count <= 0:
            return []
        return list(self._readings)[-count:]

    def values(self, parameter: str, last: Optional[int] = None) -> List[float]:
        """
        Return one parameter's values, oldest first.

        Args:
            parameter: Sensor parameter name.
            last: Restrict to the most recent N readings.
        """
        readings = self.tail(last) if last is not None else list(self._readings)
        return [r.value(parameter) for r in readings]

    def __len__(self) -> int:
        return len(self._readings)

    def __iter__(self) -> Iterator[SensorReading]:
        return iter(self._readings)

    def __getitem__(self, index: int) -> SensorReading:
        return self._readings[index]

    def __repr__(self) -> str:
        return f"ReadingWindow(zone_id={self.zone_id!r}, size={len(self)}/{self.capacity})"
