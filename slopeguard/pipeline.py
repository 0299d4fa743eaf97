"""
Risk pipeline facade.

This module provides the RiskPipeline class which takes sensor readings
(or externally computed zone scores) through detection, alert creation and
notification dispatch.

Key Features:
    - Per-zone locking around window append, scoring and deduplication
    - Concurrent processing of independent zones in a tick
    - Immediate dispatch for configured severities, deferred for the rest
    - Alert lifecycle: manual alerts, acknowledgment, resolution

Example:
    >>> pipeline = create_pipeline(load_config("config"), registry=registry)
    >>> prediction = await pipeline.process_reading("zone-1", reading)
    >>> result = await pipeline.process_risk_assessment({"zone-1": 8.7})
    >>> deliveries = await pipeline.get_delivery_status(result.alerts[0].alert_id)
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from slopeguard.alerting.manager import AlertManager
from slopeguard.alerting.storage import AlertStorage
from slopeguard.config.models import AppConfig
from slopeguard.context import MonitoringContext
from slopeguard.detection.engine import DetectionEngine, create_detection_engine
from slopeguard.errors import AlertNotFoundError, InputError, PersistenceError, SlopeGuardError
from slopeguard.interfaces.channel import ChannelProvider
from slopeguard.interfaces.stores import AlertStore, DeliveryStore, DeviceRegistry
from slopeguard.models.alerts import Alert, AlertResolution, ManualAlertRequest
from slopeguard.models.delivery import DeliveryStatus
from slopeguard.models.devices import NotificationChannel
from slopeguard.models.prediction import PredictionResult
from slopeguard.models.readings import SensorReading, parse_reading
from slopeguard.notification.dispatcher import NotificationDispatcher, create_dispatcher
from slopeguard.storage.memory import (
    InMemoryAlertStore,
    InMemoryDeliveryStore,
    InMemoryDeviceRegistry,
)

logger = structlog.get_logger(__name__)

ReadingPayload = Union[SensorReading, Mapping[str, Any]]


@dataclass
class ReadingOutcome:
    """
    What happened to one zone in a pipeline call.

    Attributes:
        zone_id: Zone processed.
        prediction: Detection result, when a reading was scored.
        alert: Alert created or returned from the dedup cache.
        created: True if the alert was created by this call.
        deferred: True if dispatch was queued for the next flush.
        deliveries: Delivery records from an immediate dispatch.
        error: Failure captured for this zone, if any.
    """

    zone_id: str
    prediction: Optional[PredictionResult] = None
    alert: Optional[Alert] = None
    created: bool = False
    deferred: bool = False
    deliveries: List[DeliveryStatus] = field(default_factory=list)
    error: Optional[SlopeGuardError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RiskAssessmentResult:
    """
    Result of assessing a set of zone scores.

    Attributes:
        max_risk_score: Highest 0-10 score in the assessment.
        alerts: Alerts raised or returned from the dedup cache, one per
            alerting zone.
        outcomes: Per-zone outcomes keyed by zone id.
    """

    max_risk_score: float
    alerts: List[Alert] = field(default_factory=list)
    outcomes: Dict[str, ReadingOutcome] = field(default_factory=dict)


class RiskPipeline:
    """
    Detection, alerting and notification behind one async API.

    Attributes:
        config: Application configuration.
        context: Per-zone windows, dedup cache and locks.
        engine: Detection engine.
        alerts: Alert manager.
        dispatcher: Notification dispatcher.
    """

    def __init__(
        self,
        config: AppConfig,
        context: MonitoringContext,
        engine: DetectionEngine,
        alerts: AlertManager,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.config = config
        self.context = context
        self.engine = engine
        self.alerts = alerts
        self.dispatcher = dispatcher

        self._deferred: Dict[str, Alert] = {}

    @property
    def pending_deferred(self) -> List[Alert]:
        """Alerts queued for the next deferred flush."""
        return list(self._deferred.values())

    # -------------------------------------------------------------------------
    # Readings
    # -------------------------------------------------------------------------

    async def process_reading(self, zone_id: str, reading: ReadingPayload) -> PredictionResult:
        """
        Score a reading and raise or reuse an alert for its zone.

        Args:
            zone_id: Zone the reading belongs to.
            reading: SensorReading or raw payload mapping.

        Returns:
            PredictionResult: The zone's risk assessment.

        Raises:
            InputError: If the reading is malformed or out of range.
            PersistenceError: If a new alert or its deliveries could not be
                stored. The error's result is the zone's ReadingOutcome.
        """
        prediction, outcome = await self._score(zone_id, reading)
        self._raise_for(outcome)
        return prediction

    async def ingest(self, zone_id: str, reading: ReadingPayload) -> ReadingOutcome:
        """
        Same as process_reading, returning the full zone outcome.

        Raises:
            InputError: If the reading is malformed or out of range.
            PersistenceError: If a new alert or its deliveries could not be
                stored. The alert is still dispatched when its severity is
                immediate, and the error's result is the zone's outcome.
        """
        _, outcome = await self._score(zone_id, reading)
        self._raise_for(outcome)
        return outcome

    async def _score(
        self,
        zone_id: str,
        reading: ReadingPayload,
    ) -> Tuple[PredictionResult, ReadingOutcome]:
        """Score a reading. Store failures are captured on the outcome."""
        parsed = parse_reading(zone_id, reading)

        async with self.context.lock_for(zone_id):
            prediction = self.engine.predict(zone_id, parsed)
            score = self.alerts.classifier.to_alert_scale(prediction.risk_score)
            alert, created, error = await self._evaluate(zone_id, score, prediction)

        outcome = ReadingOutcome(
            zone_id=zone_id,
            prediction=prediction,
            alert=alert,
            created=created,
            error=error,
        )
        await self._after_create(outcome)

        logger.debug(
            "reading_processed",
            zone_id=zone_id,
            risk_score=prediction.risk_score,
            risk_level=prediction.risk_level.value,
            alert_id=alert.alert_id if alert else None,
            created=created,
        )
        return prediction, outcome

    @staticmethod
    def _raise_for(outcome: ReadingOutcome) -> None:
        if outcome.error is not None:
            if isinstance(outcome.error, PersistenceError):
                outcome.error.result = outcome
            raise outcome.error

    async def process_tick(self, readings: Mapping[str, ReadingPayload]) -> Dict[str, ReadingOutcome]:
        """
        Process one reading per zone, zones concurrently.

        A failing zone never affects the others: its error is captured on
        its outcome.

        Args:
            readings: Reading payload per zone id.

        Returns:
            Dict[str, ReadingOutcome]: Outcome per zone id.
        """
        zone_ids = list(readings)
        outcomes = await asyncio.gather(
            *(self._safe_score(zone_id, readings[zone_id]) for zone_id in zone_ids)
        )
        result = dict(zip(zone_ids, outcomes))

        failed = [z for z, o in result.items() if not o.ok]
        logger.info(
            "tick_processed",
            zones=len(result),
            alerts=sum(1 for o in result.values() if o.created),
            failed_zones=failed,
        )
        return result

    async def _safe_score(self, zone_id: str, reading: ReadingPayload) -> ReadingOutcome:
        try:
            _, outcome = await self._score(zone_id, reading)
        except InputError as e:
            logger.warning("reading_rejected", zone_id=zone_id, error=str(e), details=e.details)
            return ReadingOutcome(zone_id=zone_id, error=e)
        return outcome

    # -------------------------------------------------------------------------
    # Zone scores
    # -------------------------------------------------------------------------

    async def process_risk_assessment(
        self,
        zone_scores: Mapping[str, float],
    ) -> RiskAssessmentResult:
        """
        Raise or reuse alerts for externally computed zone scores.

        Args:
            zone_scores: Risk score on the 0-10 alerting scale per zone id.

        Returns:
            RiskAssessmentResult: Alerts and per-zone outcomes.

        Raises:
            InputError: If any score is outside 0-10. No zone is processed.
            PersistenceError: If any alert or delivery could not be stored.
                Every zone is processed first; the first failure is raised
                with the full RiskAssessmentResult as its result.
        """
        for zone_id, score in zone_scores.items():
            if not 0 <= score <= 10:
                raise InputError(
                    f"Risk score for {zone_id} must be within 0-10, got {score}",
                    zone_id=zone_id,
                )

        zone_ids = list(zone_scores)
        outcomes = await asyncio.gather(
            *(self._assess_zone(zone_id, zone_scores[zone_id]) for zone_id in zone_ids)
        )

        result = RiskAssessmentResult(
            max_risk_score=max(zone_scores.values(), default=0.0),
            alerts=[o.alert for o in outcomes if o.alert is not None],
            outcomes=dict(zip(zone_ids, outcomes)),
        )

        logger.info(
            "risk_assessment_processed",
            zones=len(zone_ids),
            max_risk_score=result.max_risk_score,
            alerts=len(result.alerts),
        )

        for outcome in outcomes:
            if outcome.error is not None:
                if isinstance(outcome.error, PersistenceError):
                    outcome.error.result = result
                raise outcome.error
        return result

    async def _assess_zone(self, zone_id: str, score: float) -> ReadingOutcome:
        async with self.context.lock_for(zone_id):
            alert, created, error = await self._evaluate(zone_id, score, None)

        outcome = ReadingOutcome(zone_id=zone_id, alert=alert, created=created, error=error)
        await self._after_create(outcome)
        return outcome

    async def _evaluate(
        self,
        zone_id: str,
        score: float,
        prediction: Optional[PredictionResult],
    ) -> Tuple[Optional[Alert], bool, Optional[PersistenceError]]:
        try:
            alert, created = await self.alerts.evaluate(zone_id, score, prediction)
        except PersistenceError as e:
            # The attempted alert is cached and still gets dispatched
            return e.record, True, e
        return alert, created, None

    async def _after_create(self, outcome: ReadingOutcome) -> None:
        alert = outcome.alert
        if alert is None or not outcome.created:
            return

        if self.alerts.is_immediate(alert.severity):
            try:
                outcome.deliveries = await self.send_alert(alert)
            except PersistenceError as e:
                outcome.deliveries = _deliveries_of(e)
                if outcome.error is None:
                    outcome.error = e
            return

        self._deferred[alert.alert_id] = alert
        outcome.deferred = True
        logger.info(
            "alert_dispatch_deferred",
            alert_id=alert.alert_id,
            zone_id=alert.zone_id,
            severity=alert.severity.value,
        )

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def send_alert(
        self,
        alert: Alert,
        target_device_ids: Optional[Sequence[str]] = None,
    ) -> List[DeliveryStatus]:
        """
        Dispatch an alert and record the notification count on it.

        Args:
            alert: Alert to send.
            target_device_ids: Explicit recipients, overriding selection.

        Returns:
            List[DeliveryStatus]: One record per (device, channel) attempt.

        Raises:
            PersistenceError: If delivery records or the alert update could
                not be stored. Every send is still attempted, and the
                error's record is the list of deliveries that were made.
        """
        error: Optional[PersistenceError] = None
        try:
            deliveries = await self.dispatcher.dispatch(alert, target_device_ids)
        except PersistenceError as e:
            deliveries = _deliveries_of(e)
            error = e

        if deliveries:
            try:
                await self.alerts.record_notifications(alert, len(deliveries))
            except PersistenceError as e:
                logger.error(
                    "notification_count_update_failed",
                    alert_id=alert.alert_id,
                    deliveries=len(deliveries),
                    error=str(e),
                )
                error = error or e

        if error is not None:
            raise PersistenceError(
                f"Alert {alert.alert_id} was dispatched but not fully recorded",
                record=deliveries,
                cause=error,
            ) from error
        return deliveries

    async def flush_deferred(self) -> Dict[str, List[DeliveryStatus]]:
        """
        Dispatch every queued alert that is still active.

        Returns:
            Dict[str, List[DeliveryStatus]]: Deliveries per alert id.

        Raises:
            PersistenceError: If any dispatch failed to persist. All queued
                alerts are attempted first, and the error's result is the
                deliveries per alert id.
        """
        queued = list(self._deferred.values())
        self._deferred.clear()

        sent: Dict[str, List[DeliveryStatus]] = {}
        errors: List[PersistenceError] = []
        for alert in queued:
            try:
                stored = await self.alerts.storage.get_alert(alert.alert_id)
            except PersistenceError as e:
                # Unknown resolution state, send the queued copy
                stored = None
                errors.append(e)
            if stored is not None and not stored.is_active:
                logger.debug("deferred_alert_resolved", alert_id=alert.alert_id)
                continue
            try:
                sent[alert.alert_id] = await self.send_alert(stored or alert)
            except PersistenceError as e:
                sent[alert.alert_id] = _deliveries_of(e)
                errors.append(e)

        if queued:
            logger.info("deferred_alerts_flushed", queued=len(queued), sent=len(sent))
        if errors:
            errors[0].result = sent
            raise errors[0]
        return sent

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def process_manual_alert(self, request: ManualAlertRequest) -> ReadingOutcome:
        """
        Create an operator-raised alert and dispatch it immediately.

        Raises:
            PersistenceError: If the alert or its deliveries could not be
                stored. When the alert itself was stored, the error's result
                is the ReadingOutcome of the dispatch.
        """
        alert = await self.alerts.create_manual_alert(request)
        outcome = ReadingOutcome(zone_id=alert.zone_id, alert=alert, created=True)
        try:
            outcome.deliveries = await self.send_alert(alert, request.target_device_ids or None)
        except PersistenceError as e:
            outcome.deliveries = _deliveries_of(e)
            outcome.error = e
            e.result = outcome
            raise
        return outcome

    async def acknowledge_alert(self, alert_id: str) -> Alert:
        """
        Raises:
            AlertNotFoundError: If the alert is unknown.
        """
        return await self.alerts.acknowledge(alert_id)

    async def resolve_alert(
        self,
        alert_id: str,
        resolution: Optional[AlertResolution] = None,
    ) -> Alert:
        """
        Resolve an alert, optionally pushing a resolution notice.

        Args:
            alert_id: Alert to resolve.
            resolution: Notes, operator and notification options.

        Returns:
            Alert: The resolved alert.

        Raises:
            AlertNotFoundError: If the alert is unknown.
            PersistenceError: If the update or the notice's deliveries
                could not be stored.
        """
        resolution = resolution or AlertResolution()
        alert = await self.alerts.storage.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        async with self.context.lock_for(alert.zone_id):
            resolved = await self.alerts.resolve(alert_id, resolution)
        self._deferred.pop(alert_id, None)

        if resolution.notify:
            await self.dispatcher.dispatch_resolution(
                resolved,
                resolution.target_device_ids or None,
            )
        return resolved

    async def get_delivery_status(self, alert_id: str) -> List[DeliveryStatus]:
        """List an alert's delivery records."""
        return await self.dispatcher.tracker.query(alert_id)

    async def get_delivery_summary(self, alert_id: str) -> Dict[str, Any]:
        """Delivery counts per status and channel for an alert."""
        return await self.dispatcher.tracker.summarize(alert_id)

    async def get_active_alerts(self, zone_id: Optional[str] = None) -> List[Alert]:
        return await self.alerts.storage.get_active_alerts(zone_id)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Evict stale dedup entries zone by zone."""
        return await self.context.sweep(now)


def _deliveries_of(error: PersistenceError) -> List[DeliveryStatus]:
    """Deliveries carried by a dispatch PersistenceError, if any."""
    if isinstance(error.record, list):
        return [d for d in error.record if isinstance(d, DeliveryStatus)]
    return []

def create_pipeline(
    config: Optional[AppConfig] = None,
    registry: Optional[DeviceRegistry] = None,
    alert_store: Optional[AlertStore] = None,
    delivery_store: Optional[DeliveryStore] = None,
    channels: Optional[Dict[NotificationChannel, ChannelProvider]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> RiskPipeline:
    """
    Factory function to create a RiskPipeline.

    Collaborators that are not given are created in memory.

    Args:
        config: Application configuration (defaults to AppConfig()).
        registry: Device registry.
        alert_store: Alert store.
        delivery_store: Delivery store.
        channels: Provider per channel (defaults from configuration).
        clock: Time source for alert timestamps, dedup and quiet hours.

    Returns:
        RiskPipeline: A wired pipeline.

    Example:
        >>> pipeline = create_pipeline(registry=InMemoryDeviceRegistry(devices))
    """
    config = config or AppConfig()
    clock = clock or (lambda: datetime.now(timezone.utc))
    context = MonitoringContext.from_config(config)

    alerts = AlertManager(
        config=config.alerts,
        dedup=context.dedup,
        storage=AlertStorage(alert_store if alert_store is not None else InMemoryAlertStore()),
        zones=config.zones,
        clock=clock,
    )

    dispatcher = create_dispatcher(
        config,
        registry if registry is not None else InMemoryDeviceRegistry(),
        delivery_store if delivery_store is not None else InMemoryDeliveryStore(),
        channels=channels,
        clock=clock,
    )

    logger.info(
        "risk_pipeline_created",
        zones=sorted(config.zones),
        models=[m.model_id for m in config.detection.models if m.is_active],
    )

    return RiskPipeline(
        config=config,
        context=context,
        engine=create_detection_engine(config.detection, context),
        alerts=alerts,
        dispatcher=dispatcher,
    )
