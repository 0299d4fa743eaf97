"""
Alert manager for alert lifecycle management.

This module provides the AlertManager class which turns zone risk scores
into alerts and owns their lifecycle: creation with deduplication, manual
alerts, acknowledgment, resolution and notification bookkeeping.

Key Features:
    - Severity classification on the 0-10 scale; low never alerts
    - Deduplication per (zone, severity) inside the dedup window
    - Attempted alerts stay cached even when the store write fails
    - Resolution clears the dedup entry so the zone can alert again

Example:
    >>> manager = AlertManager(config.alerts, context.dedup, storage)
    >>> alert = await manager.classify_and_maybe_create("zone-1", 8.7)
    >>> alert.severity
    <Severity.CRITICAL: 'critical'>
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

import structlog

from slopeguard.alerting.dedup import DedupCache
from slopeguard.alerting.severity import SeverityClassifier
from slopeguard.alerting.storage import AlertStorage
from slopeguard.config.models import AlertsConfig, ZoneConfig
from slopeguard.errors import AlertNotFoundError
from slopeguard.models.alerts import (
    Alert,
    AlertResolution,
    AlertStatus,
    AlertType,
    ManualAlertRequest,
    Severity,
)
from slopeguard.models.prediction import PredictionResult

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertManager:
    """
    Creates alerts from zone risk scores and manages their lifecycle.

    The manager does not lock. Callers evaluating the same zone
    concurrently must hold that zone's lock from the monitoring context.

    Attributes:
        config: Alert configuration.
        dedup: Dedup cache shared with the monitoring context.
        storage: Logged alert storage.
        classifier: Severity bands and alert text.
        zones: Static zone descriptions keyed by zone id.
    """

    def __init__(
        self,
        config: AlertsConfig,
        dedup: DedupCache,
        storage: AlertStorage,
        classifier: Optional[SeverityClassifier] = None,
        zones: Optional[Dict[str, ZoneConfig]] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.dedup = dedup
        self.storage = storage
        self.classifier = classifier or SeverityClassifier(config.thresholds)
        self.zones = zones or {}
        self.clock = clock

        logger.info(
            "alert_manager_initialized",
            thresholds=config.thresholds.model_dump(),
            dedup_window_seconds=config.dedup_window_seconds,
            immediate_severities=[s.value for s in config.dispatch.immediate_severities],
        )

    def zone(self, zone_id: str) -> ZoneConfig:
        return self.zones.get(zone_id) or ZoneConfig(name=zone_id)

    def is_immediate(self, severity: Severity) -> bool:
        """Whether alerts of this severity are dispatched on creation."""
        return severity in self.config.dispatch.immediate_severities

    async def classify_and_maybe_create(
        self,
        zone_id: str,
        risk_score: float,
        prediction: Optional[PredictionResult] = None,
    ) -> Optional[Alert]:
        """
        Classify a zone score and create an alert when warranted.

        Args:
            zone_id: Zone being assessed.
            risk_score: Risk score on the 0-10 alerting scale.
            prediction: Detection result the score came from, if any.

        Returns:
            Optional[Alert]: None for low severity, the cached alert for a
            duplicate, otherwise the newly created alert.

        Raises:
            PersistenceError: If the new alert could not be stored. The
                alert is still cached and is carried on the error.
        """
        alert, _ = await self.evaluate(zone_id, risk_score, prediction)
        return alert

    async def evaluate(
        self,
        zone_id: str,
        risk_score: float,
        prediction: Optional[PredictionResult] = None,
    ) -> Tuple[Optional[Alert], bool]:
        """
        Same as classify_and_maybe_create, also reporting whether the
        alert is new.

        Returns:
            Tuple[Optional[Alert], bool]: The alert (or None) and True if it
            was created by this call.
        """
        severity = self.classifier.classify(risk_score)
        if severity == Severity.LOW:
            logger.debug("risk_below_alert_threshold", zone_id=zone_id, risk_score=risk_score)
            return None, False

        now = self.clock()
        key = DedupCache.key_for(zone_id, severity.value)
        cached = self.dedup.get(key, now)
        if cached is not None:
            logger.info(
                "alert_duplicate_suppressed",
                zone_id=zone_id,
                severity=severity.value,
                alert_id=cached.alert_id,
                risk_score=risk_score,
            )
            return cached, False

        alert = self._build_alert(zone_id, severity, risk_score, prediction, now)

        # Cache before persisting so a failing store cannot cause re-creation
        self.dedup.put(alert, now)
        await self.storage.save(alert)

        logger.info(
            "alert_created",
            alert_id=alert.alert_id,
            zone_id=zone_id,
            severity=severity.value,
            risk_score=risk_score,
        )

        return alert, True

    def _build_alert(
        self,
        zone_id: str,
        severity: Severity,
        risk_score: float,
        prediction: Optional[PredictionResult],
        now: datetime,
        alert_type: AlertType = AlertType.AUTOMATIC,
        message: Optional[str] = None,
    ) -> Alert:
        zone = self.zone(zone_id)
        confidence: Optional[float] = None
        time_to_event: Optional[float] = None
        factors = []
        if prediction is not None:
            confidence = prediction.confidence
            time_to_event = prediction.time_to_event_hours
            factors = [f.parameter for f in prediction.factors]

        return Alert(
            zone_id=zone_id,
            zone_name=zone.name,
            severity=severity,
            alert_type=alert_type,
            message=message or self.classifier.message(zone.name, risk_score, severity),
            risk_score=risk_score,
            risk_probability=self.classifier.probability(risk_score),
            predicted_timeline=self.classifier.timeline(risk_score),
            recommended_actions=self.classifier.recommended_actions(severity),
            affected_personnel=zone.affected_personnel,
            equipment_at_risk=list(zone.equipment_at_risk),
            confidence=confidence,
            time_to_event_hours=time_to_event,
            factors=factors,
            created_at=now,
        )

    async def create_manual_alert(self, request: ManualAlertRequest) -> Alert:
        """
        Create an operator-raised alert.

        Manual alerts bypass classification and deduplication.

        Raises:
            PersistenceError: If the alert could not be stored.
        """
        alert = self._build_alert(
            request.zone_id,
            request.severity,
            request.risk_score,
            prediction=None,
            now=self.clock(),
            alert_type=AlertType.MANUAL,
            message=request.message,
        )
        await self.storage.save(alert)

        logger.info(
            "manual_alert_created",
            alert_id=alert.alert_id,
            zone_id=alert.zone_id,
            severity=alert.severity.value,
        )
        return alert

    async def _require(self, alert_id: str) -> Alert:
        alert = await self.storage.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def acknowledge(self, alert_id: str) -> Alert:
        """
        Mark an alert acknowledged.

        Raises:
            AlertNotFoundError: If the alert is unknown.
            PersistenceError: If the update fails.
        """
        await self._require(alert_id)
        updated = await self.storage.update(
            alert_id,
            {"status": AlertStatus.ACKNOWLEDGED, "acknowledged_at": self.clock()},
        )
        if updated is None:
            raise AlertNotFoundError(alert_id)

        logger.info("alert_acknowledged", alert_id=alert_id, zone_id=updated.zone_id)
        return updated

    async def resolve(self, alert_id: str, resolution: AlertResolution) -> Alert:
        """
        Resolve an alert and clear its dedup entry.

        Raises:
            AlertNotFoundError: If the alert is unknown.
            PersistenceError: If the update fails.
        """
        alert = await self._require(alert_id)
        updated = await self.storage.update(
            alert_id,
            {
                "status": AlertStatus.RESOLVED,
                "resolved_at": self.clock(),
                "resolution_notes": resolution.notes or None,
                "resolved_by": resolution.resolved_by,
            },
        )
        if updated is None:
            raise AlertNotFoundError(alert_id)

        self.dedup.remove_alert(alert_id)

        logger.info(
            "alert_resolved",
            alert_id=alert_id,
            zone_id=alert.zone_id,
            resolved_by=resolution.resolved_by,
        )
        return updated

    async def record_notifications(self, alert: Alert, count: int) -> Optional[Alert]:
        """
        Add delivered-notification bookkeeping to a stored alert.

        Args:
            alert: Alert that was dispatched.
            count: Number of delivery records produced by the dispatch.

        Returns:
            Optional[Alert]: The updated alert, or None if it is not stored.

        Raises:
            PersistenceError: If the alert cannot be read or updated.
        """
        current = await self.storage.get_alert(alert.alert_id) or alert
        return await self.storage.update(
            alert.alert_id,
            {
                "notifications_sent": current.notifications_sent + count,
                "last_notification_at": self.clock(),
            },
        )
