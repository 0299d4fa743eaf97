"""
Detection engine: per-zone risk prediction.

This module provides the DetectionEngine class which appends each reading
to its zone window and scores it, either with the basic predictor (short
history) or with the ensemble of active detection models.

Key Features:
    - Model failures are isolated: a failing model is logged and skipped
    - If every model fails the basic predictor result is returned
    - predict() never mutates model state; calibration is explicit

Example:
    >>> engine = create_detection_engine(config.detection, context)
    >>> result = engine.predict("zone-1", reading)
    >>> print(result.risk_score, result.risk_level)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

import structlog

from slopeguard.config.models import DetectionConfig, ModelDefinition, default_model_definitions
from slopeguard.detection.base import DetectionModel
from slopeguard.detection.basic import BasicPredictor
from slopeguard.detection.ensemble import EnsembleCombiner
from slopeguard.detection.hybrid import HybridModel
from slopeguard.detection.pattern import PatternModel
from slopeguard.detection.statistical import StatisticalModel
from slopeguard.detection.window import ReadingWindow
from slopeguard.errors import ModelComputationError
from slopeguard.models.alerts import Severity
from slopeguard.models.prediction import (
    HistoricalPattern,
    ModelKind,
    PartialPrediction,
    PredictionResult,
)
from slopeguard.models.readings import SensorReading

if TYPE_CHECKING:
    from slopeguard.context import MonitoringContext

logger = structlog.get_logger(__name__)

CALIBRATION_ZONE = "calibration"


def build_models(config: DetectionConfig) -> List[DetectionModel]:
    """
    Instantiate detection models from configuration.

    The hybrid model reuses the configured statistical and pattern models
    as its components; when either is absent it gets a private one built
    from the defaults.

    Args:
        config: Detection configuration.

    Returns:
        List[DetectionModel]: Models in configuration order.
    """
    defaults = {d.kind: d for d in default_model_definitions()}
    models: List[DetectionModel] = []
    statistical: Optional[StatisticalModel] = None
    pattern: Optional[PatternModel] = None
    hybrid_definitions: List[ModelDefinition] = []

    for definition in config.models:
        if definition.kind == ModelKind.STATISTICAL:
            model: DetectionModel = StatisticalModel(definition)
            statistical = statistical or model  # type: ignore[assignment]
        elif definition.kind == ModelKind.PATTERN:
            model = PatternModel(definition, anomaly_min_samples=config.anomaly_min_samples)
            pattern = pattern or model  # type: ignore[assignment]
        else:
            hybrid_definitions.append(definition)
            continue
        models.append(model)

    for definition in hybrid_definitions:
        models.append(
            HybridModel(
                definition,
                statistical=statistical or StatisticalModel(defaults[ModelKind.STATISTICAL]),
                pattern=pattern
                or PatternModel(
                    defaults[ModelKind.PATTERN],
                    anomaly_min_samples=config.anomaly_min_samples,
                ),
            )
        )

    # Restore configuration order
    order = {d.model_id: i for i, d in enumerate(config.models)}
    models.sort(key=lambda m: order[m.model_id])
    return models


class DetectionEngine:
    """
    Scores readings per zone.

    Attributes:
        config: Detection configuration.
        context: Monitoring context owning the zone windows.
        models: Detection models, active and inactive.
    """

    def __init__(
        self,
        config: DetectionConfig,
        context: MonitoringContext,
        models: Optional[List[DetectionModel]] = None,
    ) -> None:
        self.config = config
        self.context = context
        self.models = models if models is not None else build_models(config)
        self.basic = BasicPredictor()
        self.combiner = EnsembleCombiner()

        logger.info(
            "detection_engine_initialized",
            models=[m.model_id for m in self.models],
            window_size=config.window_size,
            min_history=config.min_history,
        )

    @property
    def active_models(self) -> List[DetectionModel]:
        """Models the ensemble currently uses."""
        return [m for m in self.models if m.is_active]

    def get_model(self, model_id: str) -> DetectionModel:
        """
        Look up a model by id.

        Raises:
            KeyError: If no model has that id.
        """
        for model in self.models:
            if model.model_id == model_id:
                return model
        raise KeyError(f"Unknown detection model: {model_id}")

    def predict(self, zone_id: str, reading: SensorReading) -> PredictionResult:
        """
        Append a reading to the zone window and score it.

        Callers processing readings concurrently must hold the zone lock
        from the monitoring context.

        Args:
            zone_id: Zone being scored.
            reading: Validated reading for the zone.

        Returns:
            PredictionResult: Risk assessment for the zone.
        """
        window = self.context.window_for(zone_id)
        window.append(reading)
        return self._score(zone_id, reading, window)

    def _score(
        self,
        zone_id: str,
        reading: SensorReading,
        window: ReadingWindow,
    ) -> PredictionResult:
        if len(window) < self.config.min_history:
            logger.debug(
                "insufficient_history",
                zone_id=zone_id,
                window_size=len(window),
                required=self.config.min_history,
            )
            return self.basic.predict(zone_id, reading)

        results: List[Tuple[PartialPrediction, float]] = []
        for model in self.active_models:
            try:
                partial = model.score(reading, window)
            except Exception as e:
                error = ModelComputationError(model.model_id, e)
                logger.warning(
                    "model_computation_failed",
                    zone_id=zone_id,
                    model_id=model.model_id,
                    error=str(error),
                )
                continue
            results.append((partial, model.accuracy))

        if not results:
            logger.error(
                "all_models_failed",
                zone_id=zone_id,
                models=[m.model_id for m in self.active_models],
            )
            return self.basic.predict(zone_id, reading)

        return self.combiner.combine(zone_id, results)

    def calibrate(
        self,
        model_id: str,
        training_set: Sequence[Tuple[SensorReading, bool]],
    ) -> float:
        """
        Recalibrate a model against labelled readings.

        Readings are replayed through a scratch window, never the live zone
        windows. A sample counts as correct when (risk level is high or
        critical) matches its outcome. The model's accuracy becomes the
        percentage of correct samples. Statistical models additionally have
        their thresholds drifted by each sample's risk score.

        Args:
            model_id: Model to recalibrate.
            training_set: (reading, rockfall occurred) pairs in time order.

        Returns:
            float: The model's new accuracy (0-100).

        Raises:
            KeyError: If model_id is unknown.
            ValueError: If training_set is empty.
        """
        model = self.get_model(model_id)
        if not training_set:
            raise ValueError("training_set must not be empty")

        scratch = ReadingWindow(CALIBRATION_ZONE, capacity=self.config.window_size)
        correct = 0

        for reading, outcome in training_set:
            scratch.append(reading)
            prediction = self._score(CALIBRATION_ZONE, reading, scratch)
            predicted = prediction.risk_level in (Severity.HIGH, Severity.CRITICAL)
            if predicted == outcome:
                correct += 1
            if isinstance(model, StatisticalModel):
                model.drift_thresholds(prediction.risk_score, self.config.learning_rate)

        accuracy = correct / len(training_set) * 100
        model.mark_trained(accuracy)

        logger.info(
            "model_calibrated",
            model_id=model_id,
            samples=len(training_set),
            accuracy=accuracy,
        )

        return model.accuracy

    def get_model_stats(self) -> List[Dict[str, Any]]:
        """Snapshot of every model's parameters and accuracy."""
        return [m.describe() for m in self.models]

    def get_patterns(self) -> List[HistoricalPattern]:
        """Failure patterns known to the pattern models."""
        for model in self.models:
            if isinstance(model, PatternModel):
                return list(model.patterns)
        return []


def create_detection_engine(
    config: DetectionConfig,
    context: MonitoringContext,
) -> DetectionEngine:
    """
    Factory function to create a DetectionEngine.

    Args:
        config: Detection configuration.
        context: Monitoring context owning the zone windows.

    Returns:
        DetectionEngine: Engine with models built from config.
    """
    return DetectionEngine(config=config, context=context)
