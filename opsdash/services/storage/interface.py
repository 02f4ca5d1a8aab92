"""
Abstract Storage Interfaces

DESIGN DECISION: The sync orchestrator talks to two stores through
abstract interfaces. This allows us to:
1. Swap SQLite or Supabase for another backend
2. Use in-memory fakes for testing
3. Keep the sync policy decoupled from storage implementation

The local cache is always available and is addressed in the in-memory
entity shape. The remote store is addressed in flat row shape and is
only used when configured and reachable.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, NamedTuple

from opsdash.models.entities import Entity, EntityKind


class PendingOperation(str, Enum):
    """A remote write that has not been confirmed yet."""
    UPSERT = "upsert"
    DELETE = "delete"


class PendingWrite(NamedTuple):
    kind: EntityKind
    entity_id: str
    operation: PendingOperation
    marked_at: str


class LocalCacheInterface(ABC):
    """
    Abstract interface for the local cache.

    One addressable table per entity kind. Writes are idempotent.
    """

    @abstractmethod
    async def bulk_upsert(self, kind: EntityKind, entities: list[Entity]) -> None:
        """
        Insert or update entities keyed by id.

        Raises:
            LocalCacheError: If the write fails
        """
        pass

    @abstractmethod
    async def read_all(self, kind: EntityKind) -> list[Entity]:
        """
        Read every entity of a kind, in collection order.

        Raises:
            LocalCacheError: If the read fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """
        Delete an entity by id.

        Returns:
            True if a record was removed
        """
        pass

    @abstractmethod
    async def replace_all(self, kind: EntityKind, entities: list[Entity]) -> None:
        """Overwrite a table with exactly these entities."""
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every record from every table, outbox included."""
        pass

    @abstractmethod
    async def mark_pending(
        self,
        kind: EntityKind,
        entity_ids: list[str],
        operation: PendingOperation,
    ) -> None:
        """Record remote writes that still have to happen."""
        pass

    @abstractmethod
    async def clear_pending(self, kind: EntityKind, entity_ids: list[str]) -> None:
        """Forget pending writes that have reached the remote store."""
        pass

    @abstractmethod
    async def list_pending(self) -> list[PendingWrite]:
        """All pending remote writes, oldest first."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying storage. Safe to call more than once."""
        pass


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote store.

    Rows are flat dicts in remote (snake_case) shape; `id` is the
    primary and conflict key.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials are present."""
        pass

    @abstractmethod
    def is_online(self) -> bool:
        """Cheap connectivity check, evaluated on every call."""
        pass

    def is_available(self) -> bool:
        """Configured and reachable right now."""
        return self.is_configured() and self.is_online()

    @abstractmethod
    async def fetch_all(self, table: str) -> list[dict[str, Any]]:
        """
        Read a full table.

        Raises:
            RemoteStoreError: If the read fails
        """
        pass

    @abstractmethod
    async def upsert(self, table: str, rows: list[dict[str, Any]]) -> None:
        """
        Bulk insert-or-update keyed on id (last writer wins).

        Raises:
            RemoteStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, table: str, entity_id: str) -> None:
        """
        Delete a row by id.

        Raises:
            RemoteStoreError: If the delete fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class LocalCacheError(StorageError):
    """The local cache could not be read or written."""
    pass


class RemoteStoreError(StorageError):
    """A remote store call failed."""
    pass


class RemoteUnavailableError(RemoteStoreError):
    """The remote store is unconfigured or unreachable."""
    pass
