"""
Detection output models.

Models:
    ModelKind: Detection model family (statistical, pattern, hybrid)
    Trend: Short-term direction of a parameter
    Significance: Weight class of a contributing factor
    RiskFactor: Per-parameter contribution to a risk score
    HistoricalPattern: Named failure pattern with precursor conditions
    PartialPrediction: Output of a single detection model
    PredictionResult: Fused ensemble output for a zone
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from slopeguard.models.alerts import Severity


class ModelKind(str, Enum):
    """Detection model family."""

    STATISTICAL = "statistical"
    PATTERN = "pattern"
    HYBRID = "hybrid"


class Trend(str, Enum):
    """Direction of a parameter over the recent window."""

    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class Significance(str, Enum):
    """Weight class of a contributing factor."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskFactor(BaseModel):
    """
    Contribution of one sensor parameter to a risk score.

    Attributes:
        parameter: Sensor parameter name (e.g. "pore_pressure").
        contribution: Points contributed to the model's risk score.
        trend: Short-term direction of the parameter.
        significance: Weight class derived from the contribution.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    parameter: str = Field(..., min_length=1)
    contribution: float = Field(...)
    trend: Trend = Field(default=Trend.STABLE)
    significance: Significance = Field(default=Significance.LOW)


class HistoricalPattern(BaseModel):
    """
    Named historical failure pattern.

    Attributes:
        name: Pattern identifier.
        frequency: Historical occurrence frequency (0-1).
        severity: Historical consequence severity (0-1).
        precursors: Precursor conditions checked against the reading.
        duration_hours: Typical lead time from precursors to failure.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    frequency: float = Field(..., ge=0, le=1)
    severity: float = Field(..., ge=0, le=1)
    precursors: List[str] = Field(default_factory=list)
    duration_hours: float = Field(..., gt=0)


class PartialPrediction(BaseModel):
    """Score produced by a single detection model before fusion."""

    model_config = {"frozen": True, "extra": "forbid", "protected_namespaces": ()}

    model_id: str
    risk_score: float = Field(..., ge=0, le=100)
    confidence: float = Field(..., ge=0, le=100)
    time_to_event_hours: Optional[float] = Field(default=None, ge=0)
    factors: List[RiskFactor] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)


class PredictionResult(BaseModel):
    """
    Fused risk assessment for a zone.

    Attributes:
        zone_id: Zone the assessment applies to.
        risk_score: Risk on the detection scale (0-100), one decimal.
        risk_level: Band derived from risk_score.
        confidence: Confidence (0-100), one decimal.
        time_to_event_hours: Predicted lead time, if a pattern matched strongly.
        factors: At most five strongest contributing parameters.
        patterns: Matched failure patterns and anomaly notes.
        recommendations: Operator recommendations, deduplicated.
        model_ids: Models that contributed to the score.
        fallback: True when the basic predictor was used.
        timestamp: When the assessment was produced.
    """

    model_config = {"frozen": True, "extra": "forbid", "protected_namespaces": ()}

    zone_id: str
    risk_score: float = Field(..., ge=0, le=100)
    risk_level: Severity
    confidence: float = Field(..., ge=0, le=100)
    time_to_event_hours: Optional[float] = Field(default=None, ge=0)
    factors: List[RiskFactor] = Field(default_factory=list, max_length=5)
    patterns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    model_ids: List[str] = Field(default_factory=list)
    fallback: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
