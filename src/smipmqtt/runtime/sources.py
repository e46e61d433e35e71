"""
JSON-lines event feed for replaying captured traffic onto the bus.

Each line is an object ``{"topic": "...", "payload": ...}``. A string payload
is used as-is; any other JSON value is serialized back to JSON text.
"""

import json
from collections.abc import Iterable

import structlog

from smipmqtt.bus.message_bus import MessageBus
from smipmqtt.core.messages import Message

logger = structlog.get_logger()


def parse_event_line(line: str, source: str = "replay") -> Message | None:
    """Parse one feed line; blank or malformed lines give None."""
    line = line.strip()
    if not line:
        return None

    try:
        record = json.loads(line)
    except ValueError as exc:
        logger.warning("event_line_invalid", error=str(exc))
        return None

    if not isinstance(record, dict) or not isinstance(record.get("topic"), str):
        logger.warning("event_line_without_topic")
        return None

    payload = record.get("payload", "")
    if payload is None:
        payload = ""
    elif not isinstance(payload, str):
        payload = json.dumps(payload)

    return Message.event(record["topic"], payload, source=source)


async def replay(bus: MessageBus, lines: Iterable[str]) -> int:
    """
    Publish every valid line of a feed on the bus, in order.

    Returns:
        Number of events published
    """
    published = 0
    for line in lines:
        message = parse_event_line(line)
        if message is None:
            continue
        await bus.publish(message)
        published += 1

    logger.info("replay_finished", published=published)
    return published
