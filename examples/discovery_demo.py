#!/usr/bin/env python3
"""
Discovery Demo

Feeds a handful of broker events through the discovery engine in a scratch
data root and prints what was learned and cached.

Run with:
    python examples/discovery_demo.py
"""

import tempfile
from pathlib import Path

from smipmqtt.config import Settings
from smipmqtt.runtime.engine import DiscoveryEngine

EVENTS = [
    ("plant/line1/temp", b"21.5"),
    ("plant/line1/pump", b'{"rpm": 1450, "state": {"running": true, "faults": []}}'),
    ("dev/1", b'{"battery": 50, "status": {"ok": true}}'),
    ("dev/1", b'{"battery": 49, "status": {"ok": true}}'),
    ("plain/text", b"not json at all"),
]


def main() -> None:
    print("=" * 60)
    print("MQTT Topic Discovery Demo")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as root:
        settings = Settings(data_root=Path(root))
        settings.subscription_path.write_text(
            "dev/1/:/battery\nplant/line1/temp\n", encoding="utf-8"
        )

        engine = DiscoveryEngine(settings, well_known=[settings.heartbeat_topic])
        engine.prepare()

        print("\n--- Events ---")
        for topic, payload in EVENTS:
            outcome = engine.handle(topic, payload)
            flags = "cached" if outcome.cached else "learned only"
            print(f"  {topic:<20} {flags:<14} +{len(outcome.learned)} names")

        print("\n--- Catalog ---")
        for name in settings.catalog_path.read_text(encoding="utf-8").splitlines():
            print(f"  {name}")

        print("\n--- History cache ---")
        for topic in engine.history.topics():
            print(f"  {topic} = {engine.history.read(topic)}")

        stats = engine.engine_stats
        print(
            f"\n{stats.events_handled} events, {stats.topics_learned} names learned, "
            f"{stats.catalog_flushes} catalog writes"
        )


if __name__ == "__main__":
    main()
