"""
Topic definitions for the in-process message bus.

Bus topics follow the MQTT convention:
  <segment>/<segment>/...

Wildcards are supported in subscription patterns:
  + - matches any single segment
  # - matches zero or more segments (only meaningful as the last segment)
"""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Topic:
    """
    A message bus topic with hierarchical structure.

    Topics support wildcard matching for flexible subscriptions.
    """

    path: str

    SEPARATOR: ClassVar[str] = "/"
    WILDCARD_SINGLE: ClassVar[str] = "+"
    WILDCARD_MULTI: ClassVar[str] = "#"

    @property
    def segments(self) -> list[str]:
        """Split topic into segments."""
        return self.path.split(self.SEPARATOR)

    @property
    def root(self) -> str:
        """Get the top-level segment."""
        return self.segments[0]

    @property
    def is_pattern(self) -> bool:
        """Check if the topic contains wildcards."""
        return any(s in (self.WILDCARD_SINGLE, self.WILDCARD_MULTI) for s in self.segments)

    def matches(self, pattern: str) -> bool:
        """
        Check if this topic matches a pattern.

        Supports wildcards:
        - '+' matches exactly one segment
        - '#' matches zero or more segments
        """
        return self._match_parts(self.segments, pattern.split(self.SEPARATOR))

    def _match_parts(self, topic: list[str], pattern: list[str]) -> bool:
        """Recursive pattern matching implementation."""
        if not pattern:
            return not topic

        if pattern[0] == self.WILDCARD_MULTI:
            if len(pattern) == 1:
                return True
            for i in range(len(topic) + 1):
                if self._match_parts(topic[i:], pattern[1:]):
                    return True
            return False

        if not topic:
            return False

        if pattern[0] == self.WILDCARD_SINGLE or pattern[0] == topic[0]:
            return self._match_parts(topic[1:], pattern[1:])

        return False

    def __str__(self) -> str:
        return self.path

    def __hash__(self) -> int:
        return hash(self.path)


class BusTopics:
    """Well-known bus subscription patterns."""

    # Everything published on the bus
    ALL = Topic("#")


def topic(path: str) -> Topic:
    """Create a topic from a path string."""
    return Topic(path)
