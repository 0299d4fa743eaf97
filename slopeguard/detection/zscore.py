"""
Z-score calculator for window-based anomaly detection.

Key Safety Features:
    - Returns None during warmup (fewer than min_samples values)
    - Returns None when std < min_std (flat data protection), so a
      parameter that has not moved cannot divide by zero

Classes:
    ZScoreCalculator: Population z-score over a sample window
    ZScoreStatus: Statistics behind a calculation
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass
class ZScoreStatus:
    """
    Statistics of a sample window.

    Attributes:
        samples_collected: Number of samples in the window.
        samples_required: Minimum samples required for a z-score.
        is_ready: True if enough samples and std is sufficient.
        current_mean: Window mean (None if not ready).
        current_std: Window population std (None if not ready).
    """

    samples_collected: int
    samples_required: int
    is_ready: bool
    current_mean: Optional[float]
    current_std: Optional[float]


class ZScoreCalculator:
    """
    Population z-score calculator with warmup protection.

    Formula:
        zscore = (value - mean) / std, with std over the whole window (n)

    Example:
        >>> calc = ZScoreCalculator(min_samples=20)
        >>> calc.calculate(12.0, [1.0] * 19)  # warmup
        >>> calc.calculate(12.0, [1.0] * 25)  # flat data
        >>> calc.calculate(5.0, [1.0, 2.0, 3.0] * 10)
        3.674...

    Attributes:
        MIN_SAMPLES: Default minimum samples (20).
        MIN_STD: Default minimum standard deviation (0.0001).
    """

    MIN_SAMPLES: int = 20
    MIN_STD: float = 0.0001

    def __init__(
        self,
        min_samples: Optional[int] = None,
        min_std: Optional[float] = None,
    ) -> None:
        self.min_samples = min_samples if min_samples is not None else self.MIN_SAMPLES
        self.min_std = min_std if min_std is not None else self.MIN_STD

        if self.min_samples < 2:
            raise ValueError(f"min_samples must be >= 2, got {self.min_samples}")

    def status(self, samples: Sequence[float]) -> ZScoreStatus:
        """Compute window statistics and readiness."""
        n = len(samples)
        if n < self.min_samples:
            return ZScoreStatus(n, self.min_samples, False, None, None)

        mean = math.fsum(samples) / n
        variance = math.fsum((x - mean) ** 2 for x in samples) / n
        std = math.sqrt(variance)

        if std < self.min_std:
            return ZScoreStatus(n, self.min_samples, False, None, None)

        return ZScoreStatus(n, self.min_samples, True, mean, std)

    def calculate(self, value: float, samples: Sequence[float]) -> Optional[float]:
        """
        Z-score of value relative to samples.

        Returns:
            Optional[float]: Z-score, or None during warmup or on flat data.
        """
        status = self.status(samples)
        if not status.is_ready or status.current_mean is None or status.current_std is None:
            return None
        return (value - status.current_mean) / status.current_std
