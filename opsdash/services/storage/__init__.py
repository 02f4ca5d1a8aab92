"""
Storage Services Package

Abstract interfaces plus the two concrete stores: a SQLite local cache
that is always available and a Supabase remote store that is used when
configured and reachable.
"""

from opsdash.services.storage.interface import (
    LocalCacheError,
    LocalCacheInterface,
    PendingOperation,
    PendingWrite,
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    StorageError,
)
from opsdash.services.storage.local_cache import SQLiteLocalCache
from opsdash.services.storage.supabase_store import (
    SupabaseClient,
    SupabaseRemoteStore,
    probe_connectivity,
)

__all__ = [
    # Interfaces
    "LocalCacheInterface",
    "PendingOperation",
    "PendingWrite",
    "RemoteStoreInterface",
    # Exceptions
    "LocalCacheError",
    "RemoteStoreError",
    "RemoteUnavailableError",
    "StorageError",
    # Implementations
    "SQLiteLocalCache",
    "SupabaseClient",
    "SupabaseRemoteStore",
    "probe_connectivity",
]
