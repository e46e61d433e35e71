"""
Subscription matcher over the externally maintained acquisition list.

The list is written by the cloud connector, which may hold the file open
while we read it, so every check re-reads it from disk with a plain shared
read and nothing is cached between calls.
"""

from collections.abc import Iterator
from pathlib import Path

import structlog

from smipmqtt.discovery.naming import strip_virtual_suffix

logger = structlog.get_logger()


class SubscriptionMatcher:
    """Answers whether a topic's values should be cached to history."""

    def __init__(self, path: Path, virtual_separator: str = "/:/") -> None:
        self._path = Path(path)
        self._virtual_separator = virtual_separator
        self._log = logger.bind(component="subscription_matcher", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def _iter_entries(self) -> Iterator[str]:
        # The connector may write a byte-order mark.
        with self._path.open("r", encoding="utf-8-sig", errors="replace", newline=None) as f:
            for line in f:
                yield strip_virtual_suffix(line.rstrip("\n"), self._virtual_separator)

    def is_subscribed(self, topic: str) -> bool:
        """
        Check the list for ``topic``.

        Entries are truncated at the virtual separator before an exact
        comparison, so ``dev/1/:/battery`` subscribes ``dev/1``. A missing or
        unreadable list means not subscribed for this event only.
        """
        try:
            for entry in self._iter_entries():
                if entry == topic:
                    return True
        except OSError as exc:
            self._log.warning("subscription_list_unreadable", topic=topic, error=str(exc))
        return False

    def entries(self) -> list[str]:
        """Truncated entries currently in the list, in file order."""
        try:
            return list(self._iter_entries())
        except OSError as exc:
            self._log.warning("subscription_list_unreadable", error=str(exc))
            return []
