"""In-process event bus."""

from smipmqtt.bus.message_bus import MessageBus, Subscription
from smipmqtt.bus.topics import Topic

__all__ = [
    "MessageBus",
    "Subscription",
    "Topic",
]
