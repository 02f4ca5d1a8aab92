"""
Supabase Remote Store

DESIGN DECISION: Supabase (hosted Postgres behind a REST API) is the
remote store because:
1. One table per entity kind with `id` as conflict key gives us upsert
2. Only an endpoint URL and an API key are needed
3. The data stays queryable outside the dashboard

TRADEOFFS:
- The Python client is synchronous; calls run in a worker thread so
  they never block the event loop
- Availability is probed on every call instead of being remembered,
  so the dashboard picks the remote up again as soon as it is back
"""

import asyncio
import socket
import threading
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import structlog
from supabase import Client, create_client
from tenacity import retry, stop_after_attempt, wait_exponential

from opsdash.config import SupabaseSettings, get_settings
from opsdash.services.storage.interface import (
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
)


logger = structlog.get_logger(__name__)


def probe_connectivity(url: str, timeout: float) -> bool:
    """
    TCP reachability check against the endpoint host.

    Returns False for malformed URLs instead of raising.
    """
    parsed = urlparse(url)
    host = parsed.hostname
    if not host:
        return False
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug("remote_probe_failed", host=host, port=port, error=str(e))
        return False


class SupabaseClient:
    """
    Low-level Supabase client wrapper.

    Handles lazy client creation and provides retry logic for it.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._settings = settings or get_settings().supabase
        self._client: Optional[Client] = None
        self._lock = threading.Lock()

    @property
    def settings(self) -> SupabaseSettings:
        return self._settings

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def connect(self) -> Client:
        """
        Create the Supabase client on first use.

        Store calls run in worker threads, so creation is guarded by a
        lock and happens once however many calls race for it.
        """
        if not self.is_configured:
            raise RemoteUnavailableError("Supabase credentials are not configured")

        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def _create_client(self) -> Client:
        try:
            return create_client(self._settings.url, self._settings.anon_key)
        except Exception as e:
            raise RemoteStoreError(f"Failed to create Supabase client: {e}")


class SupabaseRemoteStore(RemoteStoreInterface):
    """
    Supabase implementation of the remote store.

    Every table uses `id` as primary key and upsert conflict target.
    """

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        connectivity_check: Optional[Callable[[], bool]] = None,
        connectivity_timeout: Optional[float] = None,
    ):
        self._client = client or SupabaseClient()
        self._connectivity_check = connectivity_check
        self._connectivity_timeout = (
            connectivity_timeout
            if connectivity_timeout is not None
            else get_settings().sync.connectivity_timeout_seconds
        )

    def is_configured(self) -> bool:
        return self._client.is_configured

    def is_online(self) -> bool:
        if self._connectivity_check is not None:
            return self._connectivity_check()
        return probe_connectivity(self._client.settings.url, self._connectivity_timeout)

    def _table(self, table: str):
        return self._client.connect().table(table)

    async def fetch_all(self, table: str) -> list[dict[str, Any]]:
        """Read a full table."""
        try:
            response = await asyncio.to_thread(
                lambda: self._table(table).select("*").execute()
            )
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to read {table}: {e}")
        return list(response.data or [])

    async def upsert(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Bulk upsert keyed on id."""
        if not rows:
            return
        try:
            await asyncio.to_thread(
                lambda: self._table(table).upsert(rows, on_conflict="id").execute()
            )
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to upsert {len(rows)} rows into {table}: {e}")

    async def delete(self, table: str, entity_id: str) -> None:
        """Delete a row by id."""
        try:
            await asyncio.to_thread(
                lambda: self._table(table).delete().eq("id", entity_id).execute()
            )
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to delete {entity_id} from {table}: {e}")
