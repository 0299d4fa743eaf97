"""
Service runtime shared by long-running pipeline processes.

Provides structured logging setup and the ServiceRunner base class, which
loads configuration, installs signal handlers and drives the
initialize/run/cleanup lifecycle.
"""

import asyncio
import logging
import signal
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from slopeguard.config.loader import load_config
from slopeguard.config.models import AppConfig, LogFormat, LogLevel


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    log_format: LogFormat = LogFormat.JSON,
) -> None:
    """
    Configure structured logging.

    Args:
        level: Minimum level passed to the standard library logger.
        log_format: JSON lines for production, console rendering for
            development.
    """
    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == LogFormat.TEXT
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.value),
    )

    # Reduce noise from aiohttp internals
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


class ServiceRunner(ABC):
    """
    Base class for long-running services.

    Subclasses implement _initialize, _run and _cleanup. run() loads the
    configuration (unless one was given), configures logging, and calls
    _cleanup however _run ends.

    Attributes:
        config_path: Directory holding the YAML configuration.
        config: Loaded configuration.
        shutdown_event: Set when the service should stop.
    """

    def __init__(self, config_path: Optional[str] = None, config: Optional[AppConfig] = None) -> None:
        self.config_path = config_path
        self.config = config
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Service name used in log events."""

    @abstractmethod
    async def _initialize(self) -> None:
        """Build service components."""

    @abstractmethod
    async def _run(self) -> None:
        """Main service loop; returns when the service should stop."""

    async def _cleanup(self) -> None:
        """Service-specific cleanup."""

    def request_shutdown(self) -> None:
        """Ask the service to stop."""
        if not self.shutdown_event.is_set():
            self.logger.info("shutdown_requested", service=self.service_name)
            self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                self.logger.debug("signal_handler_unavailable", signal=sig.name)

    async def run(self) -> None:
        """Run the service until _run returns or shutdown is requested."""
        if self.config is None:
            self.config = load_config(self.config_path)
            setup_logging(self.config.effective_log_level, self.config.logging.format)

        self._install_signal_handlers()
        self.logger.info("service_starting", service=self.service_name)

        try:
            await self._initialize()
            await self._run()
        finally:
            await self._cleanup()
            self.logger.info("service_stopped", service=self.service_name)
