"""
Service base class with lifecycle and message bus integration.

Services are the long-running building blocks of the process: the discovery
engine and the heartbeat publisher. Each one can subscribe to bus topics and
publish messages while the orchestrator drives its lifecycle.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from smipmqtt.core.messages import Message

if TYPE_CHECKING:
    from smipmqtt.bus.message_bus import MessageBus, MessageHandler

logger = structlog.get_logger()


class ServiceState(Enum):
    """Lifecycle states for a service."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()
    FAILED = auto()


class ServiceMetadata(BaseModel):
    """Metadata describing a service."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    display_name: str
    description: str
    version: str = "0.1.0"

    # Subscriptions
    subscribed_topics: frozenset[str] = Field(default_factory=frozenset)
    published_topics: frozenset[str] = Field(default_factory=frozenset)


@dataclass
class ServiceStats:
    """Runtime statistics for a service."""

    started_at: datetime | None = None
    stopped_at: datetime | None = None
    total_messages_received: int = 0
    total_messages_sent: int = 0
    total_errors: int = 0
    last_activity_at: datetime | None = None


@dataclass
class BusSubscription:
    """A topic subscription held by a service."""

    topic: str
    bus_subscription_id: str
    subscription_id: str = field(default_factory=lambda: str(ULID()))


class Service:
    """
    Base class for long-running services.

    Provides:
    - Metadata and lifecycle management
    - Message bus integration
    - Topic subscriptions with isolated handler failures
    - Statistics tracking
    """

    def __init__(
        self,
        metadata: ServiceMetadata,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        self._metadata = metadata
        self._message_bus = message_bus
        self._service_state = ServiceState.CREATED
        self._stats = ServiceStats()
        self._subscriptions: dict[str, BusSubscription] = {}
        self._log = logger.bind(service=metadata.name)

    # --- Properties ---

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def metadata(self) -> ServiceMetadata:
        return self._metadata

    @property
    def service_state(self) -> ServiceState:
        return self._service_state

    @property
    def stats(self) -> ServiceStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._service_state == ServiceState.RUNNING

    # --- Lifecycle management ---

    async def start(self) -> None:
        """Start the service and set up subscriptions."""
        if self._service_state not in (ServiceState.CREATED, ServiceState.STOPPED):
            raise RuntimeError(f"Cannot start service in state {self._service_state}")

        self._service_state = ServiceState.STARTING
        self._log.info("service_starting")

        try:
            await self.on_start()

            if self._message_bus:
                for topic in self._metadata.subscribed_topics:
                    await self.subscribe(topic, self._handle_message)

            self._service_state = ServiceState.RUNNING
            self._stats.started_at = datetime.now(UTC)
            self._log.info("service_started")

        except Exception:
            self._service_state = ServiceState.FAILED
            self._log.exception("service_start_failed")
            raise

    async def stop(self) -> None:
        """Stop the service and clean up subscriptions."""
        if self._service_state != ServiceState.RUNNING:
            return

        self._service_state = ServiceState.STOPPING
        self._log.info("service_stopping")

        try:
            if self._message_bus:
                for sub in list(self._subscriptions.values()):
                    await self.unsubscribe(sub.subscription_id)

            await self.on_stop()

            self._service_state = ServiceState.STOPPED
            self._stats.stopped_at = datetime.now(UTC)
            self._log.info("service_stopped")

        except Exception:
            self._service_state = ServiceState.FAILED
            self._log.exception("service_stop_failed")
            raise

    # --- Lifecycle hooks (override in subclasses) ---

    async def on_start(self) -> None:
        """Called during startup. Override for custom initialization."""

    async def on_stop(self) -> None:
        """Called during shutdown. Override for custom cleanup."""

    # --- Message bus integration ---

    def set_message_bus(self, bus: "MessageBus") -> None:
        """Set the message bus for this service."""
        self._message_bus = bus

    async def subscribe(self, topic: str, handler: "MessageHandler") -> str:
        """Subscribe to a topic with a handler."""
        if not self._message_bus:
            raise RuntimeError("No message bus configured")

        bus_id = await self._message_bus.subscribe(topic, handler)
        sub = BusSubscription(topic=topic, bus_subscription_id=bus_id)
        self._subscriptions[sub.subscription_id] = sub
        self._log.debug("subscribed", topic=topic, subscription_id=sub.subscription_id)

        return sub.subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Unsubscribe from a topic."""
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return

        if self._message_bus:
            await self._message_bus.unsubscribe(sub.bus_subscription_id)
        self._log.debug("unsubscribed", topic=sub.topic, subscription_id=subscription_id)

    async def publish(self, message: Message) -> None:
        """Publish a message to the message bus."""
        if not self._message_bus:
            raise RuntimeError("No message bus configured")

        await self._message_bus.publish(message)
        self._stats.total_messages_sent += 1
        self._stats.last_activity_at = datetime.now(UTC)
        self._log.debug("published", topic=message.topic, message_id=message.id)

    # --- Message handling ---

    async def _handle_message(self, message: Message) -> None:
        """Internal message handler with stats and failure isolation."""
        self._stats.total_messages_received += 1
        self._stats.last_activity_at = datetime.now(UTC)

        try:
            if message.is_expired:
                self._log.debug("message_expired", message_id=message.id)
                return

            await self.handle_message(message)

        except Exception:
            self._stats.total_errors += 1
            self._log.exception("message_handling_failed", message_id=message.id)

    async def handle_message(self, message: Message) -> None:
        """Handle a message from a subscribed topic. Override in subclasses."""
