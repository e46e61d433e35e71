"""
Topic name helpers shared by the learner and the subscription matcher.

A literal topic is a bus topic as published. A virtual topic is a literal
topic followed by the virtual separator and a path synthesized from the
structure of a JSON payload, e.g. ``dev/1/:/status/:/ok``.
"""


def is_virtual(topic: str, virtual_separator: str) -> bool:
    """True if the topic carries a payload-derived suffix."""
    return bool(virtual_separator) and virtual_separator in topic


def strip_virtual_suffix(topic: str, virtual_separator: str) -> str:
    """Truncate a topic at the first virtual separator."""
    if not is_virtual(topic, virtual_separator):
        return topic
    return topic[: topic.index(virtual_separator)]


def join_path(base: str, separator: str, name: str) -> str:
    return f"{base}{separator}{name}"


def hierarchy_prefixes(topic: str, separator: str) -> list[str]:
    """
    Cumulative prefixes of a literal topic.

    ``hierarchy_prefixes("a/b/c", "/")`` gives ``["a", "a/b", "a/b/c"]``.
    Without a separator the topic is its own single prefix. Empty prefixes
    (from a leading separator) are left out.
    """
    if not separator:
        return [topic] if topic else []

    prefixes: list[str] = []
    current = ""
    for i, segment in enumerate(topic.split(separator)):
        current = segment if i == 0 else join_path(current, separator, segment)
        if current and current not in prefixes:
            prefixes.append(current)
    return prefixes
