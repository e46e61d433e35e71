"""
History cache: latest value of each subscribed topic, one file per topic.

File names are the URL-safe base64 encoding of the UTF-8 topic name plus a
fixed extension, so any topic maps to a single flat, reversible file name.

The URL-safe alphabet (``-`` and ``_``) replaces the standard ``+`` and ``/``,
so these names are not compatible with caches written using standard base64:
a topic whose standard encoding contains ``+`` or ``/`` is stored under a
different file name here.
"""

import base64
import binascii
from pathlib import Path

import structlog

logger = structlog.get_logger()


def encode_topic(topic: str) -> str:
    """Encode a topic name as a file-name-safe token."""
    return base64.urlsafe_b64encode(topic.encode("utf-8")).decode("ascii")


def decode_topic(name: str) -> str:
    """Inverse of :func:`encode_topic`; raises ValueError on bad input."""
    try:
        raw = base64.b64decode(name.encode("ascii"), altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError(f"Not an encoded topic name: {name!r}") from exc


class HistoryCache:
    """Writes the most recent payload of subscribed topics to disk."""

    def __init__(self, root: Path, extension: str = ".txt") -> None:
        self._root = Path(root)
        self._extension = extension
        self._log = logger.bind(component="history_cache", root=str(self._root))

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, topic: str) -> Path:
        return self._root / f"{encode_topic(topic)}{self._extension}"

    def write(self, topic: str, payload: bytes | str) -> Path | None:
        """
        Overwrite the cached value of ``topic``.

        Returns:
            The file written, or None if the write failed
        """
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        path = self.path_for(topic)
        try:
            path.write_text(text, encoding="utf-8", newline="")
        except OSError:
            self._log.exception("history_write_failed", topic=topic)
            return None

        self._log.debug("history_written", topic=topic, file=path.name, size=len(text))
        return path

    def read(self, topic: str) -> str | None:
        """Latest cached value of ``topic``, or None if never cached."""
        try:
            return self.path_for(topic).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def topics(self) -> list[str]:
        """Decoded names of every cached topic, sorted."""
        if not self._root.is_dir():
            return []

        found: list[str] = []
        for path in self._root.glob(f"*{self._extension}"):
            try:
                found.append(decode_topic(path.name[: -len(self._extension)]))
            except ValueError:
                self._log.debug("history_file_skipped", file=path.name)
        return sorted(found)
