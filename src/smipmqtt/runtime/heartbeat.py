"""
Heartbeat publisher and device identity.

The heartbeat runs on its own timer and only publishes; it never touches
the topic catalog or the history cache.
"""

import json
from datetime import UTC, datetime
from pathlib import Path

import anyio
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from smipmqtt.config import Settings
from smipmqtt.core.messages import Message
from smipmqtt.core.service import Service, ServiceMetadata

logger = structlog.get_logger()


class DeviceIdentity(BaseModel):
    """Identity announced on the identity topic."""

    model_config = ConfigDict(frozen=True, extra="allow")

    device_id: str
    name: str | None = None


def load_identity(path: Path | None) -> DeviceIdentity | None:
    """
    Load the device identity from a JSON file.

    Any failure is logged and treated as "no identity".
    """
    if path is None:
        return None

    log = logger.bind(component="identity", path=str(path))
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        log.warning("identity_unreadable", error=str(exc))
        return None

    try:
        identity = DeviceIdentity.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        log.warning("identity_invalid", error=str(exc))
        return None

    log.info("identity_loaded", device_id=identity.device_id)
    return identity


def well_known_topics(settings: Settings, identity: DeviceIdentity | None) -> list[str]:
    """Topics the catalog always advertises."""
    topics = [settings.heartbeat_topic]
    if identity is not None:
        topics.append(settings.identity_topic)
    return topics


class HeartbeatPublisher(Service):
    """Publishes the identity once and a heartbeat on a fixed interval."""

    def __init__(self, settings: Settings, identity: DeviceIdentity | None = None) -> None:
        topics = frozenset(well_known_topics(settings, identity))
        super().__init__(
            ServiceMetadata(
                name="heartbeat",
                display_name="Heartbeat Publisher",
                description="Periodic liveness and identity publication",
                published_topics=topics,
            )
        )
        self._settings = settings
        self._identity = identity
        self._sequence = 0
        self._scope = anyio.CancelScope()

    @property
    def identity(self) -> DeviceIdentity | None:
        return self._identity

    @property
    def sequence(self) -> int:
        return self._sequence

    async def on_start(self) -> None:
        self._scope = anyio.CancelScope()

    async def on_stop(self) -> None:
        self._scope.cancel()

    async def beat(self) -> Message:
        """Publish one heartbeat."""
        self._sequence += 1
        message = Message.heartbeat(
            self._settings.heartbeat_topic,
            self.name,
            {
                "client_id": self._settings.client_id,
                "sequence": self._sequence,
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )
        await self.publish(message)
        return message

    async def announce(self) -> Message | None:
        """Publish the device identity, if there is one."""
        if self._identity is None:
            return None
        message = Message.identity(
            self._settings.identity_topic,
            self.name,
            self._identity.model_dump_json(),
        )
        await self.publish(message)
        return message

    async def run(self) -> None:
        """Publish until stopped."""
        with self._scope:
            await self.announce()
            while True:
                try:
                    await self.beat()
                except Exception:
                    self._stats.total_errors += 1
                    self._log.exception("heartbeat_failed")
                await anyio.sleep(self._settings.heartbeat_interval_seconds)
