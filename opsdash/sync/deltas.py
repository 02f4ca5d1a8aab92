"""
Collection deltas and deletion detection.

Collaborators replace whole collections; a deletion is whatever id was
present in the previous snapshot and is absent from the new one.
"""

from typing import Iterable

from pydantic import BaseModel, Field

from opsdash.models.entities import Entity


class CollectionDelta(BaseModel):
    """Difference between two snapshots of one collection."""

    added: list[Entity] = Field(default_factory=list)
    updated: list[Entity] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)

    @property
    def removed_ids(self) -> set[str]:
        return set(self.removed)


def entity_ids(items: Iterable[Entity]) -> set[str]:
    return {item.id for item in items}


def detect_deletions(previous: Iterable[Entity], current: Iterable[Entity]) -> set[str]:
    """ids(previous) - ids(current)."""
    return entity_ids(previous) - entity_ids(current)


def compute_delta(previous: list[Entity], current: list[Entity]) -> CollectionDelta:
    """
    Classify every id of two snapshots.

    `removed` keeps the order of the previous snapshot; `added` and
    `updated` keep the order of the current one.
    """
    before = {item.id: item for item in previous}
    after_ids = entity_ids(current)

    added: list[Entity] = []
    updated: list[Entity] = []
    for item in current:
        old = before.get(item.id)
        if old is None:
            added.append(item)
        elif old != item:
            updated.append(item)

    removed = [item.id for item in previous if item.id not in after_ids]
    return CollectionDelta(added=added, updated=updated, removed=removed)


def apply_delta(previous: list[Entity], delta: CollectionDelta) -> list[Entity]:
    """
    Build the next collection from a snapshot and an explicit delta.

    Updated entities replace their predecessor in place, added entities
    are appended, removed ids are dropped.
    """
    removed = delta.removed_ids
    replacements = {item.id: item for item in delta.updated}
    result = [
        replacements.get(item.id, item)
        for item in previous
        if item.id not in removed
    ]
    present = entity_ids(result)
    for item in delta.added:
        if item.id in present:
            result = [item if existing.id == item.id else existing for existing in result]
        else:
            result.append(item)
            present.add(item.id)
    return result
