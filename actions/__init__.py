"""
Actions Module
Background actions triggered by user writes
"""

from .snapshot_refresh import (
    SnapshotRefreshQueue,
    snapshot_refresh_queue,
    regenerate_snapshot_async
)


__all__ = [
    "SnapshotRefreshQueue",
    "snapshot_refresh_queue",
    "regenerate_snapshot_async",
]
