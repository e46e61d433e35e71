"""
smip-mqtt

Topic discovery and history caching for an MQTT broker.

Learns every topic name seen on the bus, including virtual topics derived
from the structure of JSON payloads, keeps the learned catalog on disk, and
caches the latest value of topics listed in the acquisition list.
"""

__version__ = "0.1.0"

from smipmqtt.config import Settings
from smipmqtt.discovery.catalog import CatalogStore, TopicCatalog
from smipmqtt.discovery.flattener import FlattenedPath, flatten
from smipmqtt.discovery.learner import TopicLearner
from smipmqtt.history.cache import HistoryCache
from smipmqtt.history.subscriptions import SubscriptionMatcher

__all__ = [
    "__version__",
    "CatalogStore",
    "FlattenedPath",
    "HistoryCache",
    "Settings",
    "SubscriptionMatcher",
    "TopicCatalog",
    "TopicLearner",
    "flatten",
]
