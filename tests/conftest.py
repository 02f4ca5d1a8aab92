"""Shared fixtures: SQLite in memory as local cache, a fake remote store."""

import pytest

from opsdash.audit import SyncAuditLogger
from opsdash.config import SyncSettings
from opsdash.services.storage import SQLiteLocalCache
from opsdash.sync.orchestrator import SyncOrchestrator
from tests.fakes import FakeRemoteStore


@pytest.fixture
def local_cache():
    cache = SQLiteLocalCache(":memory:")
    cache.connect()
    yield cache
    cache.close()


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(
        remote_timeout_seconds=1.0,
        connectivity_timeout_seconds=0.1,
        retry_attempts=2,
        retry_max_wait_seconds=0,
    )


@pytest.fixture
def sync_logger() -> SyncAuditLogger:
    return SyncAuditLogger()


@pytest.fixture
def orchestrator(local_cache, remote_store, sync_logger, sync_settings) -> SyncOrchestrator:
    return SyncOrchestrator(
        local_cache=local_cache,
        remote_store=remote_store,
        sync_logger=sync_logger,
        settings=sync_settings,
    )
