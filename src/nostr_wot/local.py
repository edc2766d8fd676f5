"""
LocalWoT - compute Web of Trust answers locally, without an oracle.

Syncs the follow graph around ``my_pubkey`` from a pool of relays into a
storage backend, then answers distance / path / bridge / mutual queries
and trust scores from that local copy.

Example:
    wot = LocalWoT(
        my_pubkey="82341f88...",
        relays=["wss://relay.damus.io", "wss://nos.lol"],
        storage="sqlite",
        storage_options={"path": "~/.nostr-wot/graph.sqlite"},
    )
    await wot.sync(depth=2, on_progress=print)
    result = await wot.get_distance(target)
    score = await wot.get_trust_score(target)
    await wot.close()

Queries running while a sync is in progress see the partially populated
graph; no locking is done.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .core.config import WoTConfig
from .core.defaults import DEFAULT_SYNC_DEPTH
from .core.exceptions import ValidationException
from .core.identity import validate_pubkey, validate_pubkeys
from .core.scoring import ScoringConfig, calculate_trust_score
from .graph.query import find_shortest_path
from .graph.store import FollowGraphStore, SyncStatus
from .graph.sync import GraphSyncer, ProgressCallback, SyncReport
from .network.relay import RelayPool
from .storage import create_storage

logger = logging.getLogger(__name__)


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class DistanceResult:
    """Answer to a distance query."""

    hops: int
    paths: int
    bridges: List[str] = field(default_factory=list)
    mutual: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hops": self.hops,
            "paths": self.paths,
            "bridges": list(self.bridges),
            "mutual": self.mutual,
        }


@dataclass
class BatchResult:
    """Per-target entry of a batch check."""

    pubkey: str
    distance: Optional[int]
    score: float
    in_wot: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubkey": self.pubkey,
            "distance": self.distance,
            "score": self.score,
            "in_wot": self.in_wot,
        }


# =============================================================================
# LOCAL WOT
# =============================================================================


class LocalWoT:
    """Local trust graph engine: sync once, query many times."""

    def __init__(
        self,
        my_pubkey: Optional[str] = None,
        relays: Optional[List[str]] = None,
        *,
        config: Optional[WoTConfig] = None,
        pool: Optional[Any] = None,
        **options: Any,
    ):
        """
        Args:
            my_pubkey: Root identity (64 hex chars)
            relays: Relay WebSocket URLs
            config: Full configuration; replaces my_pubkey/relays/options
            pool: Pre-built relay pool (anything with connect /
                fetch_contact_lists / close); built from ``relays`` if omitted
            **options: Extra WoTConfig fields (max_hops, timeout, storage,
                storage_options, scoring, batch_size, ...)

        Raises:
            ValidationException: On malformed pubkey or empty relay list
        """
        if config is None:
            config = WoTConfig(my_pubkey=my_pubkey or "", relays=list(relays or []), **options)
        self.config = config
        self.storage = create_storage(config.storage, **config.storage_options)
        self.store = FollowGraphStore(self.storage)
        self._pool = pool
        self._sync_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def my_pubkey(self) -> str:
        return self.config.my_pubkey

    @property
    def max_hops(self) -> int:
        return self.config.max_hops

    @property
    def scoring(self) -> ScoringConfig:
        return self.config.scoring

    @property
    def pool(self) -> Any:
        """Relay pool, created on first use.

        Raises:
            ValidationException: If no relays are configured (offline config)
        """
        if self._pool is None:
            if not self.config.relays:
                raise ValidationException("At least one relay URL is required", "relays")
            self._pool = RelayPool(self.config.relays, connect_timeout=self.config.connect_timeout)
        return self._pool

    # -------------------------------------------------------------------------
    # SYNC
    # -------------------------------------------------------------------------

    async def sync(
        self,
        depth: int = DEFAULT_SYNC_DEPTH,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """
        Sync the follow graph around ``my_pubkey`` from the relays.

        A new sync re-walks the full depth; revisited identities are
        overwritten with their newest contact list.

        Raises:
            ValidationException: If depth is not positive or no relays
                are configured
            AllSourcesUnavailableError: If no relay can be connected
            StorageUnavailableError: If persisting fails
        """
        syncer = GraphSyncer(
            self.pool,
            self.store,
            batch_size=self.config.batch_size,
            timeout=self.config.timeout,
            batch_concurrency=self.config.batch_concurrency,
        )
        async with self._sync_lock:
            return await syncer.sync(self.my_pubkey, depth, on_progress)

    async def get_sync_status(self) -> Optional[SyncStatus]:
        """Depth and completion time of the last sync, or None."""
        return await self.store.get_sync_status()

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    async def get_distance(self, target: str, max_hops: Optional[int] = None) -> Optional[DistanceResult]:
        """
        Shortest-path details from ``my_pubkey`` to *target*.

        Returns:
            DistanceResult, or None if the target is not connected within
            max_hops

        Raises:
            ValidationException: On malformed target
        """
        target = validate_pubkey(target, "target")
        return await self._details(self.my_pubkey, target, self._hops(max_hops))

    async def get_distance_between(
        self,
        source: str,
        target: str,
        max_hops: Optional[int] = None,
    ) -> Optional[DistanceResult]:
        """Shortest-path details between any two pubkeys in the local graph."""
        source = validate_pubkey(source, "from")
        target = validate_pubkey(target, "to")
        return await self._details(source, target, self._hops(max_hops))

    async def is_in_my_wot(self, target: str, max_hops: Optional[int] = None) -> bool:
        """Whether *target* is within max_hops of ``my_pubkey``."""
        return await self.get_distance(target, max_hops) is not None

    async def get_trust_score(self, target: str, max_hops: Optional[int] = None) -> float:
        """Trust score of *target*; 0.0 when not connected."""
        result = await self.get_distance(target, max_hops)
        if result is None:
            return 0.0
        return self.score(result)

    def score(self, result: DistanceResult) -> float:
        """Score a distance result with the configured weights."""
        return calculate_trust_score(result.hops, result.paths, result.mutual, self.scoring)

    async def batch_check(
        self,
        targets: List[str],
        max_hops: Optional[int] = None,
    ) -> Dict[str, BatchResult]:
        """
        Check many targets at once.

        Raises:
            ValidationException: If targets is empty or has a malformed entry
        """
        if not targets:
            raise ValidationException("targets must be a non-empty list", "targets")
        normalized = validate_pubkeys(targets, "targets")
        hops = self._hops(max_hops)

        results: Dict[str, BatchResult] = {}
        for target in normalized:
            details = await self._details(self.my_pubkey, target, hops)
            results[target] = BatchResult(
                pubkey=target,
                distance=details.hops if details else None,
                score=self.score(details) if details else 0.0,
                in_wot=details is not None,
            )
        return results

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def clear(self) -> None:
        """Remove every stored follow list and sync metadata."""
        await self.store.clear()
        logger.info("Cleared local follow graph")

    async def close(self) -> None:
        """Close relay connections and the storage backend."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        close = getattr(self.storage, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "LocalWoT":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _hops(self, max_hops: Optional[int]) -> int:
        hops = self.max_hops if max_hops is None else max_hops
        if hops < 0:
            raise ValidationException("max_hops must not be negative", "max_hops")
        return hops

    async def _details(self, source: str, target: str, max_hops: int) -> Optional[DistanceResult]:
        path = await find_shortest_path(self.store, source, target, max_hops)
        if path is None:
            return None
        mutual = await self.store.does_follow(target, source)
        return DistanceResult(
            hops=path.distance,
            paths=path.paths,
            bridges=path.bridges,
            mutual=mutual,
        )
