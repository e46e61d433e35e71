"""
Message types carried by the in-process bus.

A message is one (topic, payload) event as delivered by the transport,
plus the bookkeeping the bus needs for routing and diagnostics.
"""

import json
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


class MessageType(Enum):
    """Types of messages on the message bus."""

    EVENT = auto()  # Inbound (topic, payload) event
    HEARTBEAT = auto()  # Periodic liveness publication
    IDENTITY = auto()  # Device identity announcement


class Message(BaseModel):
    """
    Carrier for events on the pub/sub message bus.

    The payload is kept as raw bytes; it may or may not be valid JSON.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    type: MessageType = MessageType.EVENT
    topic: str
    payload: bytes = b""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Routing
    source: str = "bus"
    retain: bool = False

    # Delivery
    ttl_seconds: int | None = None

    # Metadata
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def payload_text(self) -> str:
        """Payload decoded as UTF-8, undecodable bytes replaced."""
        return self.payload.decode("utf-8", errors="replace")

    @property
    def is_expired(self) -> bool:
        """Check if message has exceeded its TTL."""
        if self.ttl_seconds is None:
            return False
        age = (datetime.now(UTC) - self.created_at).total_seconds()
        return age > self.ttl_seconds

    @classmethod
    def event(cls, topic: str, payload: bytes | str = b"", source: str = "bus") -> "Message":
        """Create an inbound event message."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return cls(type=MessageType.EVENT, topic=topic, payload=payload, source=source)

    @classmethod
    def heartbeat(cls, topic: str, source: str, body: dict[str, Any]) -> "Message":
        """Create a heartbeat message with a JSON body."""
        return cls(
            type=MessageType.HEARTBEAT,
            topic=topic,
            payload=json.dumps(body).encode("utf-8"),
            source=source,
        )

    @classmethod
    def identity(cls, topic: str, source: str, body: str) -> "Message":
        """Create a retained identity announcement."""
        return cls(
            type=MessageType.IDENTITY,
            topic=topic,
            payload=body.encode("utf-8"),
            source=source,
            retain=True,
        )
