"""Services package."""

from opsdash.services.storage import (
    LocalCacheError,
    LocalCacheInterface,
    PendingOperation,
    PendingWrite,
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    SQLiteLocalCache,
    StorageError,
    SupabaseClient,
    SupabaseRemoteStore,
)
from opsdash.services.transforms import (
    TRANSFORMS,
    EntityTransform,
    coerce_number,
    from_remote_row,
    kind_of,
    to_remote_row,
)

__all__ = [
    # Storage services
    "LocalCacheError",
    "LocalCacheInterface",
    "PendingOperation",
    "PendingWrite",
    "RemoteStoreError",
    "RemoteStoreInterface",
    "RemoteUnavailableError",
    "SQLiteLocalCache",
    "StorageError",
    "SupabaseClient",
    "SupabaseRemoteStore",
    # Transform layer
    "TRANSFORMS",
    "EntityTransform",
    "coerce_number",
    "from_remote_row",
    "kind_of",
    "to_remote_row",
]
