"""
Risk detection for monitored zones.

Modules:
    window: Bounded per-zone reading history
    zscore: Z-score helper used by anomaly scoring
    base: DetectionModel base class and trend helper
    statistical: Weighted threshold-exceedance model
    pattern: Failure-pattern and anomaly model
    hybrid: Statistical, pattern and environmental blend
    ensemble: Accuracy-weighted fusion and recommendations
    basic: Threshold fallback for zones with short history
    engine: DetectionEngine tying the above together

Example:
    >>> from slopeguard.detection import create_detection_engine
    >>> engine = create_detection_engine(config.detection, context)
"""

from slopeguard.detection.base import DetectionModel, calculate_trend, clamp
from slopeguard.detection.basic import BasicPredictor
from slopeguard.detection.engine import (
    DetectionEngine,
    build_models,
    create_detection_engine,
)
from slopeguard.detection.ensemble import (
    EnsembleCombiner,
    classify_risk_level,
    generate_recommendations,
    round_score,
)
from slopeguard.detection.hybrid import HybridModel, environmental_risk
from slopeguard.detection.pattern import PATTERN_LIBRARY, PatternModel, match_pattern
from slopeguard.detection.statistical import StatisticalModel
from slopeguard.detection.window import ReadingWindow
from slopeguard.detection.zscore import ZScoreCalculator

__all__ = [
    "BasicPredictor",
    "DetectionEngine",
    "DetectionModel",
    "EnsembleCombiner",
    "HybridModel",
    "PATTERN_LIBRARY",
    "PatternModel",
    "ReadingWindow",
    "StatisticalModel",
    "ZScoreCalculator",
    "build_models",
    "calculate_trend",
    "clamp",
    "classify_risk_level",
    "create_detection_engine",
    "environmental_risk",
    "generate_recommendations",
    "match_pattern",
    "round_score",
]
