"""
Topic catalog: the ordered set of every topic name learned so far.

The in-memory catalog is authoritative for the life of the process. The
catalog file mirrors it one name per line in first-seen order and is only
rewritten when something new was learned.
"""

from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog

logger = structlog.get_logger()


class CatalogStore:
    """Newline-delimited catalog file owned by this process."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._log = logger.bind(component="catalog_store", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def ensure_exists(self) -> bool:
        """Create an empty catalog file if missing; returns True if created."""
        if self.exists():
            return False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.touch()
        self._log.info("catalog_file_created")
        return True

    def load_all(self) -> list[str]:
        """Read every line in file order, exactly as stored."""
        with self._path.open("r", encoding="utf-8", newline=None) as f:
            return [line.rstrip("\n") for line in f]

    def persist(self, names: Iterable[str]) -> None:
        """Truncate the file and write one name per line."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8", newline="\n") as f:
            for name in names:
                f.write(f"{name}\n")

    def persist_if_changed(self, names: list[str]) -> bool:
        """Write ``names`` unless the file already holds exactly that list."""
        try:
            on_disk = self.load_all()
        except FileNotFoundError:
            on_disk = []
        except UnicodeDecodeError:
            on_disk = None

        if on_disk == names and (names or self.exists()):
            return False

        self.persist(names)
        self._log.debug("catalog_written", count=len(names))
        return True


class TopicCatalog:
    """
    Ordered, duplicate-free collection of learned topic names.

    Names are only ever appended. A dirty flag records whether anything was
    added since the last successful flush.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store
        self._names: list[str] = []
        self._index: set[str] = set()
        self._dirty = False
        self._log = logger.bind(component="topic_catalog")

    @property
    def store(self) -> CatalogStore:
        return self._store

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def load(self) -> int:
        """
        Initialize from the catalog file.

        A missing file is created empty. An unreadable file is logged and the
        catalog starts empty; the next flush rewrites it.

        Returns:
            Number of names loaded
        """
        self._names.clear()
        self._index.clear()
        self._dirty = False

        try:
            stored = self._store.load_all()
        except FileNotFoundError:
            stored = []
            try:
                self._store.ensure_exists()
            except OSError:
                self._log.exception("catalog_create_failed")
        except (OSError, UnicodeDecodeError):
            self._log.exception("catalog_load_failed")
            stored = []

        for name in stored:
            self._add(name)

        if len(self._names) != len(stored):
            # Duplicates on disk; rewrite on next flush.
            self._dirty = True

        self._log.info("catalog_loaded", count=len(self._names))
        return len(self._names)

    def contains(self, name: str) -> bool:
        return name in self._index

    def insert(self, name: str) -> bool:
        """Append a name if not already present; returns True if added."""
        if not self._add(name):
            return False
        self._dirty = True
        self._log.debug("topic_learned", topic=name)
        return True

    def seed(self, names: Iterable[str]) -> list[str]:
        """Insert well-known names, returning those that were new."""
        return [name for name in names if self.insert(name)]

    def persist_if_changed(self) -> bool:
        """
        Flush to disk if anything was learned since the last flush.

        Returns:
            True if the file was rewritten
        """
        if not self._dirty:
            return False

        try:
            written = self._store.persist_if_changed(self._names)
        except OSError:
            self._log.exception("catalog_persist_failed", count=len(self._names))
            return False

        self._dirty = False
        if written:
            self._log.info("catalog_persisted", count=len(self._names))
        return written

    def _add(self, name: str) -> bool:
        if name in self._index:
            return False
        self._index.add(name)
        self._names.append(name)
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))
