"""
Slope Guard: rockfall risk prediction and alert escalation pipeline.

Ingests geotechnical sensor telemetry per monitored zone, fuses it through
an ensemble of detection models into a risk score, and escalates risky
zones into deduplicated alerts that are fanned out to field devices over
push, SMS and email with per-delivery status tracking.

Packages:
    config: YAML + Pydantic configuration loading
    models: Shared Pydantic data models
    interfaces: Collaborator contracts (stores, registry, channel providers)
    storage: In-memory collaborator implementations
    detection: Reading windows, detection models and the ensemble engine
    alerting: Severity classification, deduplication and alert lifecycle
    notification: Recipient targeting, templating, dispatch and delivery tracking
    services: Logging setup and the long-running pipeline service
"""

__version__ = "1.0.0"
