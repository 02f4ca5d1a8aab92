"""
Sync Orchestrator

Decides which store is authoritative for reads, mirrors writes to both
stores and propagates detected deletions.

Policy:
1. Reads: the remote store when configured and reachable (it refreshes
   the local cache); otherwise, or on any remote error, the local cache
2. Writes: always to the local cache; to the remote store when available
3. Failures: logged, never raised to the caller. A remote write that
   fails or is skipped while offline is recorded in the local outbox
   and replayed by retry_pending()

Each entity kind has its own asyncio.Lock, so overlapping calls for
different kinds never block one another and a failing call cannot
leave a kind locked.
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from opsdash.audit import SyncAuditLogger
from opsdash.config import SyncSettings, get_settings
from opsdash.models.entities import DashboardCollections, Entity, EntityKind
from opsdash.models.sync_events import SyncTarget
from opsdash.services.storage.interface import (
    LocalCacheInterface,
    PendingOperation,
    RemoteStoreInterface,
)
from opsdash.services.transforms import TRANSFORMS


T = TypeVar("T")

TransformFn = Callable[[Any], dict[str, Any]]


class SyncOrchestrator:
    """
    Mirrors the in-memory collections to the local cache and remote store.

    The remote store is optional: without one (or without credentials)
    the orchestrator runs in local-cache-only mode.
    """

    def __init__(
        self,
        local_cache: LocalCacheInterface,
        remote_store: Optional[RemoteStoreInterface] = None,
        sync_logger: Optional[SyncAuditLogger] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self._local = local_cache
        self._remote = remote_store
        self._logger = sync_logger or SyncAuditLogger()
        self._settings = settings or get_settings().sync
        self._locks: dict[EntityKind, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def local_cache(self) -> LocalCacheInterface:
        return self._local

    @property
    def remote_store(self) -> Optional[RemoteStoreInterface]:
        return self._remote

    # =========================================================================
    # AVAILABILITY (re-evaluated on every operation)
    # =========================================================================

    def remote_configured(self) -> bool:
        return self._remote is not None and self._remote.is_configured()

    async def remote_available(self) -> bool:
        """Connectivity is probed in a worker thread, off the event loop."""
        if not self.remote_configured():
            return False
        try:
            return await asyncio.to_thread(self._remote.is_online)
        except Exception:
            return False

    def close(self) -> None:
        """Release the local cache connection."""
        self._local.close()

    async def _remote_call(self, awaitable: Awaitable[T]) -> T:
        """Time-box a remote call."""
        return await asyncio.wait_for(awaitable, timeout=self._settings.remote_timeout_seconds)

    # =========================================================================
    # LOAD
    # =========================================================================

    async def load_all(self) -> DashboardCollections:
        """
        Load all seven collections.

        Remote first when available; the result then overwrites the local
        cache. Any remote error falls back to the local cache, with no
        partial remote data mixed in.
        """
        if await self.remote_available():
            try:
                await self.retry_pending()
                collections = await self._load_remote()
                collections = await self._overlay_pending(collections)
            except Exception as e:
                self._logger.log_remote_load_failed(str(e))
            else:
                await self._refresh_local(collections)
                self._logger.log_load_completed(SyncTarget.REMOTE, collections.counts())
                return collections

        return await self._load_local()

    async def _load_remote(self) -> DashboardCollections:
        kinds = list(EntityKind)
        tasks = [
            asyncio.ensure_future(self._remote_call(self._remote.fetch_all(kind.remote_table)))
            for kind in kinds
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # All or nothing: no partial remote data
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return DashboardCollections.from_mapping(
            {kind: self._decode_rows(kind, rows) for kind, rows in zip(kinds, results)}
        )

    def _decode_rows(self, kind: EntityKind, rows: list[dict[str, Any]]) -> list[Entity]:
        """Transform remote rows, dropping the ones that cannot form an entity."""
        from_row = TRANSFORMS[kind].from_row
        entities = []
        for row in rows:
            try:
                entities.append(from_row(row))
            except ValidationError as e:
                self._logger.log_error(
                    "malformed_remote_row",
                    str(e),
                    details={"kind": kind.value, "id": str(row.get("id"))},
                )
        return entities

    async def _load_local(self) -> DashboardCollections:
        mapping: dict[EntityKind, list[Entity]] = {}
        for kind in EntityKind:
            try:
                mapping[kind] = await self._local.read_all(kind)
            except Exception as e:
                self._logger.log_local_load_failed(f"{kind.value}: {e}")
                mapping[kind] = []
        collections = DashboardCollections.from_mapping(mapping)
        self._logger.log_load_completed(SyncTarget.LOCAL, collections.counts())
        return collections

    async def _refresh_local(self, collections: DashboardCollections) -> None:
        for kind in EntityKind:
            try:
                await self._local.replace_all(kind, collections.get(kind))
            except Exception as e:
                self._logger.log_sync_failed(kind.value, SyncTarget.LOCAL, str(e))

    async def _overlay_pending(self, collections: DashboardCollections) -> DashboardCollections:
        """
        Re-apply local writes the remote store has not confirmed.

        Pending upserts replace (or add) the remote version with the local
        one; pending deletes drop the remote row.
        """
        pending = await self._local.list_pending()
        if not pending:
            return collections

        by_kind: dict[EntityKind, dict[str, PendingOperation]] = defaultdict(dict)
        for write in pending:
            by_kind[write.kind][write.entity_id] = write.operation

        for kind, operations in by_kind.items():
            local_items = {item.id: item for item in await self._local.read_all(kind)}
            merged = []
            for item in collections.get(kind):
                operation = operations.get(item.id)
                if operation == PendingOperation.DELETE:
                    continue
                if operation == PendingOperation.UPSERT and item.id in local_items:
                    merged.append(local_items[item.id])
                else:
                    merged.append(item)
            present = {item.id for item in merged}
            for entity_id, operation in operations.items():
                if (
                    operation == PendingOperation.UPSERT
                    and entity_id not in present
                    and entity_id in local_items
                ):
                    merged.append(local_items[entity_id])
            collections.replace(kind, merged)
        return collections

    # =========================================================================
    # WRITE
    # =========================================================================

    async def sync_collection(
        self,
        kind: EntityKind,
        items: list[Entity],
        transform_fn: Optional[TransformFn] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Mirror a collection to both stores.

        The local cache write always happens and is never rolled back
        because of a remote failure.
        """
        items = list(items)
        async with self._locks[kind]:
            try:
                await self._local.bulk_upsert(kind, items)
                self._logger.log_collection_synced(
                    kind.value, len(items), SyncTarget.LOCAL, correlation_id
                )
            except Exception as e:
                self._logger.log_sync_failed(kind.value, SyncTarget.LOCAL, str(e), correlation_id)

            if not self.remote_configured() or not items:
                return

            ids = [item.id for item in items]
            if not await self.remote_available():
                await self._mark_pending(kind, ids, PendingOperation.UPSERT)
                self._logger.log_sync_deferred(kind.value, len(items), correlation_id)
                return

            transform = transform_fn or TRANSFORMS[kind].to_row
            try:
                rows = [transform(item) for item in items]
                await self._remote_call(self._remote.upsert(kind.remote_table, rows))
            except Exception as e:
                self._logger.log_sync_failed(kind.value, SyncTarget.REMOTE, str(e), correlation_id)
                await self._mark_pending(kind, ids, PendingOperation.UPSERT)
            else:
                self._logger.log_collection_synced(
                    kind.value, len(items), SyncTarget.REMOTE, correlation_id
                )
                await self._clear_pending(kind, ids)

    async def delete_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete from the remote store when available.

        The local cache delete is driven by the caller (see
        propagate_deletions). Returns True if the remote delete succeeded.
        """
        async with self._locks[kind]:
            if not self.remote_configured():
                return False
            online = await self.remote_available()
            return await self._delete_remote(kind, entity_id, online, correlation_id)

    async def _delete_remote(
        self,
        kind: EntityKind,
        entity_id: str,
        online: bool,
        correlation_id: Optional[UUID],
    ) -> bool:
        if not online:
            await self._mark_pending(kind, [entity_id], PendingOperation.DELETE)
            return False
        try:
            await self._remote_call(self._remote.delete(kind.remote_table, entity_id))
        except Exception as e:
            self._logger.log_delete_failed(
                kind.value, entity_id, SyncTarget.REMOTE, str(e), correlation_id
            )
            await self._mark_pending(kind, [entity_id], PendingOperation.DELETE)
            return False
        self._logger.log_entity_deleted(kind.value, entity_id, SyncTarget.REMOTE, correlation_id)
        await self._clear_pending(kind, [entity_id])
        return True

    async def propagate_deletions(
        self,
        kind: EntityKind,
        entity_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Remove detected deletions from the local cache and the remote store.

        Remote availability is checked once for the whole batch.
        """
        if not entity_ids:
            return
        async with self._locks[kind]:
            configured = self.remote_configured()
            online = configured and await self.remote_available()
            for entity_id in entity_ids:
                try:
                    await self._local.delete(kind, entity_id)
                    self._logger.log_entity_deleted(
                        kind.value, entity_id, SyncTarget.LOCAL, correlation_id
                    )
                except Exception as e:
                    self._logger.log_delete_failed(
                        kind.value, entity_id, SyncTarget.LOCAL, str(e), correlation_id
                    )
                if configured:
                    await self._delete_remote(kind, entity_id, online, correlation_id)

    # =========================================================================
    # OUTBOX
    # =========================================================================

    async def _mark_pending(
        self,
        kind: EntityKind,
        entity_ids: list[str],
        operation: PendingOperation,
    ) -> None:
        try:
            await self._local.mark_pending(kind, entity_ids, operation)
        except Exception as e:
            self._logger.log_error("pending_mark_failed", str(e), details={"kind": kind.value})

    async def _clear_pending(self, kind: EntityKind, entity_ids: list[str]) -> None:
        try:
            await self._local.clear_pending(kind, entity_ids)
        except Exception as e:
            self._logger.log_error("pending_clear_failed", str(e), details={"kind": kind.value})

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.retry_attempts),
            wait=wait_exponential(multiplier=1, max=self._settings.retry_max_wait_seconds),
            reraise=True,
        )

    async def retry_pending(self) -> int:
        """
        Replay unconfirmed remote writes from the outbox.

        Each write gets a bounded number of attempts. Returns the number of
        writes still pending afterwards.
        """
        try:
            pending = await self._local.list_pending()
        except Exception as e:
            self._logger.log_error("pending_list_failed", str(e))
            return 0
        if not pending or not await self.remote_available():
            return len(pending)

        grouped: dict[EntityKind, dict[PendingOperation, list[str]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for write in pending:
            grouped[write.kind][write.operation].append(write.entity_id)

        replayed = 0
        remaining = 0
        for kind, operations in grouped.items():
            async with self._locks[kind]:
                upsert_ids = operations.get(PendingOperation.UPSERT, [])
                if upsert_ids:
                    done, failed = await self._replay_upserts(kind, upsert_ids)
                    replayed += done
                    remaining += failed
                for entity_id in operations.get(PendingOperation.DELETE, []):
                    try:
                        async for attempt in self._retrying():
                            with attempt:
                                await self._remote_call(
                                    self._remote.delete(kind.remote_table, entity_id)
                                )
                    except Exception as e:
                        remaining += 1
                        self._logger.log_delete_failed(
                            kind.value, entity_id, SyncTarget.REMOTE, str(e)
                        )
                    else:
                        replayed += 1
                        await self._clear_pending(kind, [entity_id])

        self._logger.log_pending_replayed(replayed, remaining)
        return remaining

    async def _replay_upserts(self, kind: EntityKind, entity_ids: list[str]) -> tuple[int, int]:
        wanted = set(entity_ids)
        items = [item for item in await self._local.read_all(kind) if item.id in wanted]
        missing = wanted - {item.id for item in items}
        if missing:
            # Gone from the local cache: nothing left to upsert
            await self._clear_pending(kind, sorted(missing))
        if not items:
            return 0, 0

        to_row = TRANSFORMS[kind].to_row
        rows = [to_row(item) for item in items]
        try:
            async for attempt in self._retrying():
                with attempt:
                    await self._remote_call(self._remote.upsert(kind.remote_table, rows))
        except Exception as e:
            self._logger.log_sync_failed(kind.value, SyncTarget.REMOTE, str(e))
            return 0, len(items)

        await self._clear_pending(kind, [item.id for item in items])
        return len(items), 0
