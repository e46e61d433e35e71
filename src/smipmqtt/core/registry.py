"""
Service registry used by the orchestrator for lookup and lifecycle.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from smipmqtt.core.service import Service, ServiceState

logger = structlog.get_logger()


@dataclass
class RegistryEntry:
    """An entry in the service registry."""

    id: str
    item: Service
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)


class ServiceRegistry:
    """Registry of services keyed by name, in registration order."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._log = logger.bind(component="service_registry")

    def register(self, service: Service, metadata: dict[str, Any] | None = None) -> str:
        """
        Register a service.

        Returns:
            Registry entry ID (the service name)
        """
        if not isinstance(service, Service):
            raise TypeError(f"Expected Service, got {type(service)}")

        name = service.name
        if name in self._entries:
            raise ValueError(f"Service '{name}' already registered")

        self._entries[name] = RegistryEntry(id=name, item=service, metadata=metadata or {})
        self._log.debug("service_registered", name=name)
        return name

    def unregister(self, name: str) -> bool:
        """Unregister a service; returns True if it was registered."""
        if self._entries.pop(name, None) is None:
            return False
        self._log.debug("service_unregistered", name=name)
        return True

    def get(self, name: str) -> Service | None:
        """Get a service by name."""
        entry = self._entries.get(name)
        return entry.item if entry else None

    def list_names(self) -> list[str]:
        """List all registered service names."""
        return list(self._entries.keys())

    def get_running(self) -> list[Service]:
        """Get all currently running services."""
        return [
            entry.item
            for entry in self._entries.values()
            if entry.item.service_state == ServiceState.RUNNING
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Service]:
        return iter(entry.item for entry in self._entries.values())

    def __contains__(self, name: str) -> bool:
        return name in self._entries
