# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from ..domain.models import FilterDirection, FilterPosition
from ..ports.filesystem import FilesystemPort, FilterRef
from .lifecycle import HandleLifecycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterEntry:
    name: str
    direction: FilterDirection
    position: FilterPosition
    params: Any
    ref: FilterRef


class FilterChain:
    """
    Named stream filters attached to one stream's handle.

    Names are unique: adding a name that is already attached detaches the old
    attachment before attaching the new one. Every entry still attached when
    the handle closes is detached, newest first, before the handle is released.

    Not thread-safe; owned by a single stream.
    """

    def __init__(self, fs: FilesystemPort, lifecycle: HandleLifecycle) -> None:
        self._fs = fs
        self._lifecycle = lifecycle
        self._entries: Dict[str, FilterEntry] = {}
        lifecycle.add_release_hook(self.teardown)

    def append(
        self, name: str, direction: FilterDirection = FilterDirection.READ, params: Any = None
    ) -> FilterEntry:
        return self._attach(name, direction, params, FilterPosition.APPEND)

    def prepend(
        self, name: str, direction: FilterDirection = FilterDirection.READ, params: Any = None
    ) -> FilterEntry:
        return self._attach(name, direction, params, FilterPosition.PREPEND)

    def _attach(
        self, name: str, direction: FilterDirection, params: Any, position: FilterPosition
    ) -> FilterEntry:
        handle = self._lifecycle.require_open(f"{position.value}_filter")
        previous = self._entries.pop(name, None)
        if previous is not None:
            logger.debug("FilterChain: replacing filter %s", name)
            self._fs.detach_filter(previous.ref)
        ref = self._fs.attach_filter(handle, name, FilterDirection(direction), params, position)
        entry = FilterEntry(name, FilterDirection(direction), position, params, ref)
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> Optional[FilterEntry]:
        return self._entries.get(name)

    def remove(self, name: str) -> bool:
        """Detach a filter. False (not an error) when no such name is attached."""
        self._lifecycle.require_open("remove_filter")
        entry = self._entries.pop(name, None)
        if entry is None:
            return False
        self._fs.detach_filter(entry.ref)
        return True

    def teardown(self) -> None:
        """Detach everything, newest first. Runs on close even if one detach fails."""
        errors: List[Exception] = []
        for name in reversed(list(self._entries)):
            entry = self._entries.pop(name)
            try:
                self._fs.detach_filter(entry.ref)
            except Exception as e:
                logger.warning("FilterChain.teardown: detaching %s failed: %s", name, e)
                errors.append(e)
        if errors:
            raise errors[0]

    def names(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[FilterEntry]:
        return iter(list(self._entries.values()))
