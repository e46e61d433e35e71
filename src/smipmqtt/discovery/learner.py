"""
Topic learner: records every topic name an inbound event reveals.

Literal topics contribute each of their hierarchy prefixes. JSON object
payloads contribute virtual topics, one per leaf property, formed by joining
the topic and the property path with the virtual separator.
"""

import structlog

from smipmqtt.discovery.catalog import TopicCatalog
from smipmqtt.discovery.flattener import flatten
from smipmqtt.discovery.naming import hierarchy_prefixes, is_virtual

logger = structlog.get_logger()


class TopicLearner:
    """Feeds topic names derived from inbound events into a catalog."""

    def __init__(
        self,
        catalog: TopicCatalog,
        hierarchy_separator: str = "/",
        virtual_separator: str = "/:/",
    ) -> None:
        self._catalog = catalog
        self._hierarchy_separator = hierarchy_separator
        self._virtual_separator = virtual_separator
        self._log = logger.bind(component="topic_learner")

    @property
    def catalog(self) -> TopicCatalog:
        return self._catalog

    def is_virtual(self, topic: str) -> bool:
        return is_virtual(topic, self._virtual_separator)

    def learn(self, topic: str, payload: bytes | str = b"") -> list[str]:
        """
        Learn from one event.

        Args:
            topic: Literal or virtual topic name
            payload: Raw payload; only JSON objects are expanded

        Returns:
            Names newly added to the catalog, in insertion order
        """
        learned: list[str] = []

        if self.is_virtual(topic):
            self._insert(topic, learned)
        elif self._hierarchy_separator:
            for prefix in hierarchy_prefixes(topic, self._hierarchy_separator):
                if prefix == self._virtual_separator:
                    continue
                self._insert(prefix, learned)
        else:
            self._insert(topic, learned)

        if self._virtual_separator and payload:
            for found in flatten(topic, payload, self._virtual_separator):
                if found.is_leaf:
                    learned.extend(self.learn(found.path))

        if learned:
            self._log.debug("topics_learned", topic=topic, count=len(learned))
        return learned

    def _insert(self, name: str, learned: list[str]) -> None:
        if self._catalog.insert(name):
            learned.append(name)
