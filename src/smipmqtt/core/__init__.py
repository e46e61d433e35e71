"""Core abstractions: messages, services, and the service registry."""

from smipmqtt.core.messages import Message, MessageType
from smipmqtt.core.registry import ServiceRegistry
from smipmqtt.core.service import Service, ServiceMetadata, ServiceState

__all__ = [
    "Message",
    "MessageType",
    "Service",
    "ServiceMetadata",
    "ServiceRegistry",
    "ServiceState",
]
