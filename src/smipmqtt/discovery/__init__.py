"""Topic discovery: payload flattening, learning, and the topic catalog."""

from smipmqtt.discovery.catalog import CatalogStore, TopicCatalog
from smipmqtt.discovery.flattener import FlattenedPath, flatten, looks_like_json
from smipmqtt.discovery.learner import TopicLearner

__all__ = [
    "CatalogStore",
    "FlattenedPath",
    "TopicCatalog",
    "TopicLearner",
    "flatten",
    "looks_like_json",
]
