"""
SQLite Local Cache

DESIGN DECISION: The local cache is a single SQLite file because:
1. It survives process restarts (offline cache and crash-recovery snapshot)
2. It needs no server and is always available
3. Upsert-by-id maps directly onto INSERT ... ON CONFLICT

Each entity kind has its own table holding camelCase JSON documents:

    <table>(id TEXT PRIMARY KEY, position INTEGER, data TEXT)

`position` is the index in the last written collection, so a restart
reproduces the in-memory ordering. There is no foreign-key enforcement.

The `_pending_sync` table is the outbox of remote writes that have not
been confirmed (see SyncOrchestrator.retry_pending).
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import ValidationError

from opsdash.config import get_settings
from opsdash.models.entities import ENTITY_MODELS, Entity, EntityKind
from opsdash.services.storage.interface import (
    LocalCacheError,
    LocalCacheInterface,
    PendingOperation,
    PendingWrite,
)


PENDING_TABLE = "_pending_sync"

logger = structlog.get_logger(__name__)


class SQLiteLocalCache(LocalCacheInterface):
    """
    SQLite implementation of the local cache.

    Calls run inline on the event loop thread: they are local file
    operations on small tables.
    """

    def __init__(self, path: Optional[str] = None):
        self._path = path or get_settings().local_cache.path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> str:
        return self._path

    def connect(self) -> sqlite3.Connection:
        """Open the database and create missing tables."""
        if self._conn is None:
            try:
                conn = sqlite3.connect(self._path)
                conn.execute("PRAGMA journal_mode=WAL")
                for kind in EntityKind:
                    conn.execute(
                        f'CREATE TABLE IF NOT EXISTS "{kind.local_table}" ('
                        "id TEXT PRIMARY KEY, "
                        "position INTEGER NOT NULL DEFAULT 0, "
                        "data TEXT NOT NULL)"
                    )
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{PENDING_TABLE}" ('
                    "kind TEXT NOT NULL, "
                    "entity_id TEXT NOT NULL, "
                    "operation TEXT NOT NULL, "
                    "marked_at TEXT NOT NULL, "
                    "PRIMARY KEY (kind, entity_id))"
                )
                conn.commit()
                self._conn = conn
            except sqlite3.Error as e:
                raise LocalCacheError(f"Failed to open local cache at {self._path}: {e}")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _upsert_rows(self, conn: sqlite3.Connection, kind: EntityKind, entities: list[Entity]) -> None:
        conn.executemany(
            f'INSERT INTO "{kind.local_table}" (id, position, data) VALUES (?, ?, ?) '
            "ON CONFLICT(id) DO UPDATE SET position = excluded.position, data = excluded.data",
            [
                (entity.id, position, json.dumps(entity.to_document()))
                for position, entity in enumerate(entities)
            ],
        )

    async def bulk_upsert(self, kind: EntityKind, entities: list[Entity]) -> None:
        """Insert or update entities keyed by id."""
        try:
            conn = self.connect()
            with conn:
                self._upsert_rows(conn, kind, entities)
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to upsert {kind.value}: {e}")

    async def read_all(self, kind: EntityKind) -> list[Entity]:
        """Read every entity of a kind, skipping malformed documents."""
        model = ENTITY_MODELS[kind]
        try:
            rows = self.connect().execute(
                f'SELECT id, data FROM "{kind.local_table}" ORDER BY position, rowid'
            ).fetchall()
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to read {kind.value}: {e}")

        entities = []
        for entity_id, data in rows:
            try:
                entities.append(model.model_validate_json(data))
            except ValidationError as e:
                logger.warning(
                    "local_cache_row_skipped",
                    kind=kind.value,
                    entity_id=entity_id,
                    error=str(e),
                )
        return entities

    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """Delete an entity by id."""
        try:
            conn = self.connect()
            with conn:
                cursor = conn.execute(
                    f'DELETE FROM "{kind.local_table}" WHERE id = ?',
                    (entity_id,),
                )
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to delete {kind.value} {entity_id}: {e}")

    async def replace_all(self, kind: EntityKind, entities: list[Entity]) -> None:
        """Overwrite a table in one transaction."""
        try:
            conn = self.connect()
            with conn:
                conn.execute(f'DELETE FROM "{kind.local_table}"')
                self._upsert_rows(conn, kind, entities)
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to replace {kind.value}: {e}")

    async def clear_all(self) -> None:
        """Remove every record from every table."""
        try:
            conn = self.connect()
            with conn:
                for kind in EntityKind:
                    conn.execute(f'DELETE FROM "{kind.local_table}"')
                conn.execute(f'DELETE FROM "{PENDING_TABLE}"')
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to clear local cache: {e}")

    async def export_all(self) -> dict[str, list[dict]]:
        """
        Dump every table as camelCase documents.

        Keys are the local table names (customers, ..., paymentHistory).
        """
        return {
            kind.local_table: [entity.to_document() for entity in await self.read_all(kind)]
            for kind in EntityKind
        }

    async def mark_pending(
        self,
        kind: EntityKind,
        entity_ids: list[str],
        operation: PendingOperation,
    ) -> None:
        """Record pending remote writes. A later mark replaces an earlier one."""
        marked_at = datetime.now(timezone.utc).isoformat()
        try:
            conn = self.connect()
            with conn:
                conn.executemany(
                    f'INSERT INTO "{PENDING_TABLE}" (kind, entity_id, operation, marked_at) '
                    "VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(kind, entity_id) DO UPDATE SET "
                    "operation = excluded.operation, marked_at = excluded.marked_at",
                    [(kind.value, entity_id, operation.value, marked_at) for entity_id in entity_ids],
                )
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to mark pending {kind.value}: {e}")

    async def clear_pending(self, kind: EntityKind, entity_ids: list[str]) -> None:
        try:
            conn = self.connect()
            with conn:
                conn.executemany(
                    f'DELETE FROM "{PENDING_TABLE}" WHERE kind = ? AND entity_id = ?',
                    [(kind.value, entity_id) for entity_id in entity_ids],
                )
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to clear pending {kind.value}: {e}")

    async def list_pending(self) -> list[PendingWrite]:
        try:
            rows = self.connect().execute(
                f'SELECT kind, entity_id, operation, marked_at FROM "{PENDING_TABLE}" '
                "ORDER BY marked_at, rowid"
            ).fetchall()
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to list pending writes: {e}")

        return [
            PendingWrite(EntityKind(kind), entity_id, PendingOperation(operation), marked_at)
            for kind, entity_id, operation, marked_at in rows
        ]
