"""nostr-wot graph - local follow graph: persistence, sync and queries."""

from __future__ import annotations

from .query import PathResult, find_shortest_path
from .store import (
    FOLLOWS_PREFIX,
    META_PREFIX,
    SYNC_META_KEY,
    FollowGraphStore,
    FollowRecord,
    FollowState,
    SyncStatus,
)
from .sync import GraphSyncer, ProgressCallback, SyncProgress, SyncReport

__all__ = [
    # Store
    "FOLLOWS_PREFIX",
    "META_PREFIX",
    "SYNC_META_KEY",
    "FollowGraphStore",
    "FollowRecord",
    "FollowState",
    "SyncStatus",
    # Sync
    "GraphSyncer",
    "ProgressCallback",
    "SyncProgress",
    "SyncReport",
    # Query
    "PathResult",
    "find_shortest_path",
]
