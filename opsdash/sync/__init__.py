"""Sync layer: orchestrator, deletion detection and the per-kind write queue."""

from opsdash.sync.deltas import (
    CollectionDelta,
    apply_delta,
    compute_delta,
    detect_deletions,
    entity_ids,
)
from opsdash.sync.orchestrator import SyncOrchestrator
from opsdash.sync.queue import KindWriteQueue

__all__ = [
    "CollectionDelta",
    "KindWriteQueue",
    "SyncOrchestrator",
    "apply_delta",
    "compute_delta",
    "detect_deletions",
    "entity_ids",
]
