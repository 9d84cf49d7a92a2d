"""Local mirror of the daemon's managed-object tree."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from iwdctl.core.model import ManagedObject
from iwdctl.transports.base import Bus

LOGGER = logging.getLogger(__name__)


class Snapshot(Mapping[str, ManagedObject]):
    """Read-only result of one full-graph fetch, keyed by object path."""

    def __init__(self, objects: Mapping[str, ManagedObject] | None = None) -> None:
        self._objects: dict[str, ManagedObject] = dict(objects or {})

    @classmethod
    def from_tree(cls, tree: Mapping[str, Mapping[str, Mapping[str, Any]]]) -> Snapshot:
        objects: dict[str, ManagedObject] = {}
        for path, interfaces in tree.items():
            objects[path] = ManagedObject(
                path=path,
                interfaces=MappingProxyType(
                    {name: MappingProxyType(dict(props)) for name, props in interfaces.items()}
                ),
            )
        return cls(objects)

    def __getitem__(self, path: str) -> ManagedObject:
        return self._objects[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def lookup(self, path: str | None) -> ManagedObject | None:
        if path is None:
            return None
        return self._objects.get(path)

    def interface_properties(self, path: str, interface: str) -> Mapping[str, Any] | None:
        obj = self._objects.get(path)
        if obj is None:
            return None
        return obj.properties(interface)

    def objects_with(self, *interfaces: str) -> list[ManagedObject]:
        return [
            obj
            for obj in self._objects.values()
            if all(obj.has_interface(interface) for interface in interfaces)
        ]


class ObjectCache:
    def __init__(self, bus: Bus) -> None:
        self._bus = bus
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    async def refresh(self) -> Snapshot:
        tree = await self._bus.get_managed_objects()
        snapshot = Snapshot.from_tree(tree)
        self._snapshot = snapshot
        LOGGER.debug("Object cache refreshed with %d objects", len(snapshot))
        return snapshot

    def lookup(self, path: str | None) -> ManagedObject | None:
        return self._snapshot.lookup(path)

    def interface_properties(self, path: str, interface: str) -> Mapping[str, Any] | None:
        return self._snapshot.interface_properties(path, interface)
