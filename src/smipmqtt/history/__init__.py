"""History caching of subscribed topic values."""

from smipmqtt.history.cache import HistoryCache, decode_topic, encode_topic
from smipmqtt.history.subscriptions import SubscriptionMatcher

__all__ = [
    "HistoryCache",
    "SubscriptionMatcher",
    "decode_topic",
    "encode_topic",
]
