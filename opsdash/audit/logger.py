"""
Sync Audit Logger

DESIGN DECISION: Every load, mirror write and deletion is logged as a
structured event. This provides:
1. Visibility into silent fallbacks (the UI never sees remote failures)
2. Debugging capability for local/remote divergence
3. Correlation of all writes triggered by one mutation

The logger never raises: a logging failure must not break the sync path.
"""

import logging
import sys
from typing import Literal, Optional
from uuid import UUID, uuid4

import structlog

from opsdash.models.sync_events import (
    SyncEvent,
    SyncEventBuilder,
    SyncSeverity,
    SyncTarget,
)


def configure_logging(
    level: Optional[str] = None,
    format: Optional[Literal["json", "console"]] = None,
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Defaults come from AppSettings (LOG_LEVEL, LOG_FORMAT).
    """
    from opsdash.config import get_settings

    app_settings = get_settings().app
    log_level = level or app_settings.log_level
    log_format = format or app_settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class SyncAuditLogger:
    """
    Central logging service for the sync engine.

    Renders SyncEvents through structlog at the level matching their
    severity. Keeps the last events in memory for inspection.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("opsdash.sync")
        self._history: list[SyncEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[SyncEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    def log(self, event: SyncEvent) -> None:
        """Log a sync event. Never raises."""
        try:
            self._history.append(event)
            if len(self._history) > self._history_size:
                del self._history[0]

            log_dict = event.to_log_dict()
            if event.severity == SyncSeverity.ERROR:
                self._logger.error("sync_event", **log_dict)
            elif event.severity == SyncSeverity.WARNING:
                self._logger.warning("sync_event", **log_dict)
            elif event.severity == SyncSeverity.DEBUG:
                self._logger.debug("sync_event", **log_dict)
            else:
                self._logger.info("sync_event", **log_dict)
        except Exception as e:
            # Last resort: stdlib logging is always available
            logging.getLogger(__name__).warning("sync event logging failed: %s", e)

    def log_load_completed(self, source: SyncTarget, counts: dict[str, int]) -> None:
        self.log(SyncEventBuilder.load_completed(source, counts))

    def log_remote_load_failed(self, error_message: str) -> None:
        self.log(SyncEventBuilder.remote_load_failed(error_message))

    def log_local_load_failed(self, error_message: str) -> None:
        self.log(SyncEventBuilder.local_load_failed(error_message))

    def log_collection_synced(
        self,
        entity_kind: str,
        count: int,
        target: SyncTarget,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(SyncEventBuilder.collection_synced(entity_kind, count, target, correlation_id))

    def log_sync_failed(
        self,
        entity_kind: str,
        target: SyncTarget,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(SyncEventBuilder.sync_failed(entity_kind, target, error_message, correlation_id))

    def log_sync_deferred(
        self,
        entity_kind: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(SyncEventBuilder.sync_deferred(entity_kind, count, correlation_id))

    def log_entity_deleted(
        self,
        entity_kind: str,
        entity_id: str,
        target: SyncTarget,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(SyncEventBuilder.entity_deleted(entity_kind, entity_id, target, correlation_id))

    def log_delete_failed(
        self,
        entity_kind: str,
        entity_id: str,
        target: SyncTarget,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(
            SyncEventBuilder.delete_failed(
                entity_kind, entity_id, target, error_message, correlation_id
            )
        )

    def log_pending_replayed(self, replayed: int, remaining: int) -> None:
        self.log(SyncEventBuilder.pending_replayed(replayed, remaining))

    def log_remote_unconfigured(self) -> None:
        self.log(SyncEventBuilder.remote_unconfigured())

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(SyncEventBuilder.system_error(error_type, error_message, details, correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One is created per mutation and passed to every write it triggers.
    """
    return uuid4()
