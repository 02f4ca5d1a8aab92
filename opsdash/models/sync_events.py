"""
Sync Event Models

Every load, mirror write, deletion and fallback in the sync engine is
recorded as a SyncEvent. Events are rendered by the structured logger;
they are never persisted to either store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class SyncEventType(str, Enum):
    """Types of events the sync engine reports."""
    # Loading
    LOAD_COMPLETED = "load_completed"
    REMOTE_LOAD_FAILED = "remote_load_failed"
    LOCAL_LOAD_FAILED = "local_load_failed"

    # Mirroring
    COLLECTION_SYNCED = "collection_synced"
    SYNC_FAILED = "sync_failed"
    SYNC_DEFERRED = "sync_deferred"

    # Deletion
    ENTITY_DELETED = "entity_deleted"
    DELETE_FAILED = "delete_failed"

    # Outbox
    PENDING_REPLAYED = "pending_replayed"

    # Configuration / system
    REMOTE_UNCONFIGURED = "remote_unconfigured"
    SYSTEM_ERROR = "system_error"


class SyncSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncTarget(str, Enum):
    """Which store an event concerns."""
    LOCAL = "local"
    REMOTE = "remote"
    MEMORY = "memory"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEvent(BaseModel):
    """A single sync engine event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=_utcnow)

    event_type: SyncEventType
    severity: SyncSeverity = SyncSeverity.INFO

    # What the event is about
    entity_kind: Optional[str] = None
    entity_id: Optional[str] = None
    target: Optional[SyncTarget] = None

    # Ties together the events triggered by one mutation
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "target": self.target.value if self.target else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class SyncEventBuilder:
    """
    Helper class to build sync events with common patterns.

    Usage:
        event = SyncEventBuilder.collection_synced("customers", 3, SyncTarget.REMOTE)
    """

    @staticmethod
    def load_completed(
        source: SyncTarget,
        counts: dict[str, int],
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOAD_COMPLETED,
            target=source,
            description=f"Collections loaded from {source.value} store",
            details={"counts": counts},
        )

    @staticmethod
    def remote_load_failed(error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_LOAD_FAILED,
            severity=SyncSeverity.WARNING,
            target=SyncTarget.REMOTE,
            description="Remote load failed, falling back to local cache",
            error_message=error_message,
        )

    @staticmethod
    def local_load_failed(error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOCAL_LOAD_FAILED,
            severity=SyncSeverity.ERROR,
            target=SyncTarget.LOCAL,
            description="Local cache could not be read, starting empty",
            error_message=error_message,
        )

    @staticmethod
    def collection_synced(
        entity_kind: str,
        count: int,
        target: SyncTarget,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.COLLECTION_SYNCED,
            severity=SyncSeverity.DEBUG if target == SyncTarget.LOCAL else SyncSeverity.INFO,
            entity_kind=entity_kind,
            target=target,
            correlation_id=correlation_id,
            description=f"Synced {count} {entity_kind} to {target.value} store",
            details={"count": count},
        )

    @staticmethod
    def sync_failed(
        entity_kind: str,
        target: SyncTarget,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_FAILED,
            severity=SyncSeverity.ERROR,
            entity_kind=entity_kind,
            target=target,
            correlation_id=correlation_id,
            description=f"Failed to sync {entity_kind} to {target.value} store",
            error_message=error_message,
        )

    @staticmethod
    def sync_deferred(
        entity_kind: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_DEFERRED,
            entity_kind=entity_kind,
            target=SyncTarget.REMOTE,
            correlation_id=correlation_id,
            description=f"Remote unreachable, {count} {entity_kind} marked pending",
            details={"count": count},
        )

    @staticmethod
    def entity_deleted(
        entity_kind: str,
        entity_id: str,
        target: SyncTarget,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.ENTITY_DELETED,
            entity_kind=entity_kind,
            entity_id=entity_id,
            target=target,
            correlation_id=correlation_id,
            description=f"Deleted {entity_kind} {entity_id} from {target.value} store",
        )

    @staticmethod
    def delete_failed(
        entity_kind: str,
        entity_id: str,
        target: SyncTarget,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.DELETE_FAILED,
            severity=SyncSeverity.ERROR,
            entity_kind=entity_kind,
            entity_id=entity_id,
            target=target,
            correlation_id=correlation_id,
            description=f"Failed to delete {entity_kind} {entity_id} from {target.value} store",
            error_message=error_message,
        )

    @staticmethod
    def pending_replayed(replayed: int, remaining: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.PENDING_REPLAYED,
            severity=SyncSeverity.INFO if remaining == 0 else SyncSeverity.WARNING,
            target=SyncTarget.REMOTE,
            description=f"Replayed {replayed} pending writes, {remaining} remaining",
            details={"replayed": replayed, "remaining": remaining},
        )

    @staticmethod
    def remote_unconfigured() -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_UNCONFIGURED,
            severity=SyncSeverity.WARNING,
            target=SyncTarget.REMOTE,
            description=(
                "Remote store credentials not found. Set SUPABASE_URL and "
                "SUPABASE_ANON_KEY; running in local-cache-only mode."
            ),
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYSTEM_ERROR,
            severity=SyncSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
