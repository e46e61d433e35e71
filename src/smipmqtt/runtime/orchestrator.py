"""
Orchestrator: startup, shutdown, and lifecycle of the discovery service.

Owns the message bus and the services; whatever bridges the broker into the
process publishes inbound events on :attr:`Orchestrator.message_bus`.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any, AsyncIterator

import anyio
import structlog
from anyio.abc import TaskGroup

from smipmqtt.bus.message_bus import MessageBus
from smipmqtt.config import Settings
from smipmqtt.core.registry import ServiceRegistry
from smipmqtt.core.service import Service, ServiceState
from smipmqtt.runtime.engine import DiscoveryEngine
from smipmqtt.runtime.heartbeat import HeartbeatPublisher, load_identity, well_known_topics

logger = structlog.get_logger()


class OrchestratorState(Enum):
    """Lifecycle states for the orchestrator."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()
    FAILED = auto()


class Orchestrator:
    """
    Manages startup, shutdown, and health of the service.

    Responsibilities:
    - Build shared resources (message bus, registry) from settings
    - Start services and their background loops
    - Handle graceful shutdown
    - Provide health reporting
    """

    def __init__(self, settings: Settings, heartbeat_enabled: bool = True) -> None:
        self._settings = settings
        self._state = OrchestratorState.CREATED
        self._message_bus = MessageBus()
        self._service_registry = ServiceRegistry()
        self._started_at: datetime | None = None
        self._stopped_at: datetime | None = None
        self._log = logger.bind(component="orchestrator")

        identity = load_identity(settings.identity_path)
        self._engine = DiscoveryEngine(
            settings,
            message_bus=self._message_bus,
            well_known=well_known_topics(settings, identity),
        )
        self._heartbeat: HeartbeatPublisher | None = None
        self.register_service(self._engine)
        if heartbeat_enabled:
            self._heartbeat = HeartbeatPublisher(settings, identity)
            self.register_service(self._heartbeat)

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def message_bus(self) -> MessageBus:
        return self._message_bus

    @property
    def service_registry(self) -> ServiceRegistry:
        return self._service_registry

    @property
    def engine(self) -> DiscoveryEngine:
        return self._engine

    @property
    def heartbeat(self) -> HeartbeatPublisher | None:
        return self._heartbeat

    @property
    def is_running(self) -> bool:
        return self._state == OrchestratorState.RUNNING

    @property
    def uptime_seconds(self) -> float | None:
        """Get uptime in seconds."""
        if not self._started_at:
            return None
        end_time = self._stopped_at or datetime.now(UTC)
        return (end_time - self._started_at).total_seconds()

    def register_service(self, service: Service) -> None:
        """Register a service on the shared bus."""
        service.set_message_bus(self._message_bus)
        self._service_registry.register(service)

    async def start(self, task_group: TaskGroup) -> None:
        """Start all services and spawn their loops in ``task_group``."""
        if self._state != OrchestratorState.CREATED:
            raise RuntimeError(f"Cannot start orchestrator in state {self._state}")

        self._state = OrchestratorState.STARTING
        self._started_at = datetime.now(UTC)
        self._log.info("orchestrator_starting", data_root=str(self._settings.data_root))

        try:
            for service in self._service_registry:
                await service.start()

            task_group.start_soon(self._engine.consume)
            if self._heartbeat is not None:
                task_group.start_soon(self._heartbeat.run)

            self._state = OrchestratorState.RUNNING
            self._log.info("orchestrator_started", service_count=len(self._service_registry))

        except Exception:
            self._state = OrchestratorState.FAILED
            self._log.exception("orchestrator_start_failed")
            raise

    async def stop(self) -> None:
        """Stop all services; the engine drains queued events first."""
        if self._state != OrchestratorState.RUNNING:
            return

        self._state = OrchestratorState.STOPPING
        self._log.info("orchestrator_stopping")

        try:
            for service in reversed(list(self._service_registry)):
                await self._stop_service(service)

            self._message_bus.clear()

            self._stopped_at = datetime.now(UTC)
            self._state = OrchestratorState.STOPPED
            self._log.info("orchestrator_stopped", uptime_seconds=self.uptime_seconds)

        except Exception:
            self._state = OrchestratorState.FAILED
            self._log.exception("orchestrator_stop_failed")
            raise

    async def _stop_service(self, service: Service) -> None:
        """Stop a single service with error handling."""
        try:
            await service.stop()
            self._log.debug("service_stopped", name=service.name)
        except Exception:
            self._log.exception("service_stop_failed", name=service.name)

    @asynccontextmanager
    async def run_context(self) -> AsyncIterator["Orchestrator"]:
        """Async context manager running the orchestrator and its loops."""
        async with anyio.create_task_group() as tg:
            await self.start(tg)
            try:
                yield self
            finally:
                await self.stop()

    def get_health(self) -> dict[str, Any]:
        """Get service health status."""
        running = [s.name for s in self._service_registry.get_running()]
        failed = [
            s.name for s in self._service_registry if s.service_state == ServiceState.FAILED
        ]
        engine_stats = self._engine.engine_stats

        return {
            "state": self._state.name,
            "uptime_seconds": self.uptime_seconds,
            "services": {
                "total": len(self._service_registry),
                "running": len(running),
                "failed": len(failed),
            },
            "message_bus": {
                "subscriptions": self._message_bus.stats.total_subscriptions,
                "messages_published": self._message_bus.stats.total_messages_published,
                "messages_delivered": self._message_bus.stats.total_messages_delivered,
            },
            "catalog": {
                "topics": len(self._engine.catalog),
                "dirty": self._engine.catalog.dirty,
            },
            "engine": {
                "events_handled": engine_stats.events_handled,
                "values_cached": engine_stats.values_cached,
                "topics_learned": engine_stats.topics_learned,
                "errors": engine_stats.errors,
            },
        }
