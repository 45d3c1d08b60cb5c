"""
scheduler/indices.py — Typed indices owned by the Scheduler.

TagIndex      tag (category or type) → ordered aliases. A tag with no aliases
              is deleted, never kept as an empty entry.
WaitingIndex  parent alias → {dependent alias → ScheduledEvent}. A parent with
              no dependents is deleted the same way.

Both hand out snapshots (tuples / frozensets) so callers can iterate while
callbacks mutate the live structures.
"""

from __future__ import annotations

from typing import Iterator, Optional

from delayline.scheduler.event import ScheduledEvent


class TagIndex:
    """Insertion-ordered: bulk operations visit aliases in the order they were tagged."""

    def __init__(self, label: str) -> None:
        self.label = label
        self._tags: dict[str, dict[str, None]] = {}

    def add(self, tag: str, alias: str) -> None:
        self._tags.setdefault(tag, {})[alias] = None

    def discard(self, tag: Optional[str], alias: str) -> None:
        if tag is None:
            return
        members = self._tags.get(tag)
        if members is None:
            return
        members.pop(alias, None)
        if not members:
            del self._tags[tag]

    def members(self, tag: str) -> tuple[str, ...]:
        return tuple(self._tags.get(tag, ()))

    def clear(self) -> None:
        self._tags.clear()

    def __contains__(self, tag: object) -> bool:
        return tag in self._tags

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._tags))

    def __len__(self) -> int:
        return len(self._tags)


class WaitingIndex:
    def __init__(self) -> None:
        self._parents: dict[str, dict[str, ScheduledEvent]] = {}

    def add(self, parent: str, event: ScheduledEvent) -> bool:
        """Register event under parent. False if that pair already exists."""
        dependents = self._parents.setdefault(parent, {})
        if event.alias in dependents:
            return False
        dependents[event.alias] = event
        return True

    def aliases(self, parent: str) -> frozenset[str]:
        return frozenset(self._parents.get(parent, ()))

    def pop_parent(self, parent: str) -> dict[str, ScheduledEvent]:
        """Remove and return every dependent of parent."""
        return self._parents.pop(parent, {})

    def find(self, alias: str) -> Optional[tuple[str, ScheduledEvent]]:
        """Locate a waiting alias. Returns (parent, event) or None."""
        for parent, dependents in self._parents.items():
            event = dependents.get(alias)
            if event is not None:
                return parent, event
        return None

    def remove(self, parent: str, alias: str) -> Optional[ScheduledEvent]:
        dependents = self._parents.get(parent)
        if dependents is None:
            return None
        event = dependents.pop(alias, None)
        if not dependents:
            del self._parents[parent]
        return event

    def clear(self) -> None:
        self._parents.clear()

    def __contains__(self, alias: object) -> bool:
        return any(alias in dependents for dependents in self._parents.values())

    def __len__(self) -> int:
        return sum(len(dependents) for dependents in self._parents.values())
