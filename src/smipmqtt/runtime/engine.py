"""
DiscoveryEngine: per-event topic discovery and history caching.

Every inbound event goes through the same steps, one event at a time:
subscription check, history write (if subscribed), topic learning, and a
catalog flush when something new was learned.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

import anyio
import structlog
from anyio.abc import ObjectReceiveStream, ObjectSendStream

from smipmqtt.bus.message_bus import MessageBus
from smipmqtt.bus.topics import BusTopics
from smipmqtt.config import Settings
from smipmqtt.core.messages import Message
from smipmqtt.core.service import Service, ServiceMetadata
from smipmqtt.discovery.catalog import CatalogStore, TopicCatalog
from smipmqtt.discovery.learner import TopicLearner
from smipmqtt.history.cache import HistoryCache
from smipmqtt.history.subscriptions import SubscriptionMatcher

logger = structlog.get_logger()


@dataclass
class EventOutcome:
    """What handling one event did."""

    topic: str
    subscribed: bool = False
    cached: bool = False
    learned: list[str] = field(default_factory=list)
    persisted: bool = False


@dataclass
class EngineStats:
    """Counters across all handled events."""

    events_handled: int = 0
    values_cached: int = 0
    topics_learned: int = 0
    catalog_flushes: int = 0
    errors: int = 0


class DiscoveryEngine(Service):
    """
    Consumes inbound bus events and maintains the catalog and history cache.

    Bus deliveries are queued on a memory stream and processed sequentially
    by :meth:`consume`; :meth:`handle` does the actual work and can be called
    directly.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        catalog: TopicCatalog | None = None,
        learner: TopicLearner | None = None,
        matcher: SubscriptionMatcher | None = None,
        history: HistoryCache | None = None,
        message_bus: MessageBus | None = None,
        well_known: Iterable[str] = (),
    ) -> None:
        super().__init__(
            ServiceMetadata(
                name="discovery_engine",
                display_name="Discovery Engine",
                description="Learns topic names and caches subscribed values",
                subscribed_topics=frozenset([str(BusTopics.ALL)]),
            ),
            message_bus=message_bus,
        )
        self._settings = settings
        self._catalog = catalog or TopicCatalog(CatalogStore(settings.catalog_path))
        self._learner = learner or TopicLearner(
            self._catalog,
            hierarchy_separator=settings.hierarchy_separator,
            virtual_separator=settings.virtual_separator,
        )
        self._matcher = matcher or SubscriptionMatcher(
            settings.subscription_path,
            virtual_separator=settings.virtual_separator,
        )
        self._history = history or HistoryCache(
            settings.history_root,
            extension=settings.history_extension,
        )
        self._well_known = list(well_known)
        self._engine_stats = EngineStats()
        self._send: ObjectSendStream[Message] | None = None
        self._receive: ObjectReceiveStream[Message] | None = None

    @property
    def catalog(self) -> TopicCatalog:
        return self._catalog

    @property
    def history(self) -> HistoryCache:
        return self._history

    @property
    def matcher(self) -> SubscriptionMatcher:
        return self._matcher

    @property
    def engine_stats(self) -> EngineStats:
        return self._engine_stats

    # --- Startup ---

    def prepare(self) -> list[str]:
        """
        Load the catalog and make sure the well-known topics are in it.

        Returns:
            Well-known topics that had to be added
        """
        try:
            self._history.ensure_root()
        except OSError:
            self._log.exception("history_root_unavailable", root=str(self._history.root))

        self._catalog.load()
        seeded = self._catalog.seed(self._well_known)
        if self._catalog.persist_if_changed():
            self._engine_stats.catalog_flushes += 1

        self._log.info("engine_prepared", catalog_size=len(self._catalog), seeded=seeded)
        return seeded

    async def on_start(self) -> None:
        self.prepare()
        self._send, self._receive = anyio.create_memory_object_stream[Message](math.inf)

    async def on_stop(self) -> None:
        if self._send is not None:
            await self._send.aclose()

    # --- Event handling ---

    def handle(self, topic: str, payload: bytes | str = b"") -> EventOutcome:
        """Run one event through match, cache, learn and flush."""
        outcome = EventOutcome(topic=topic)

        outcome.subscribed = self._matcher.is_subscribed(topic)
        if outcome.subscribed:
            outcome.cached = self._history.write(topic, payload) is not None
            if outcome.cached:
                self._engine_stats.values_cached += 1

        outcome.learned = self._learner.learn(topic, payload)
        self._engine_stats.topics_learned += len(outcome.learned)

        outcome.persisted = self._catalog.persist_if_changed()
        if outcome.persisted:
            self._engine_stats.catalog_flushes += 1

        self._engine_stats.events_handled += 1
        self._log.debug(
            "event_handled",
            topic=topic,
            subscribed=outcome.subscribed,
            cached=outcome.cached,
            learned=len(outcome.learned),
        )
        return outcome

    async def handle_message(self, message: Message) -> None:
        """Queue a bus delivery for sequential processing."""
        if self._send is None:
            raise RuntimeError("Engine is not started")
        self._send.send_nowait(message)

    async def consume(self) -> None:
        """Process queued events one by one until the engine stops."""
        if self._receive is None:
            raise RuntimeError("Engine is not started")

        async with self._receive:
            async for message in self._receive:
                try:
                    self.handle(message.topic, message.payload)
                except Exception:
                    self._engine_stats.errors += 1
                    self._log.exception("event_failed", topic=message.topic)
