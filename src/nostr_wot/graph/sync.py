"""Graph sync - bounded-depth breadth-first crawl of the follow graph.

Starting at a root pubkey, each round fetches the contact lists of the
current frontier in fixed-size batches, persists them, and collects the
not-yet-visited follows as the next frontier. Rounds run strictly in
depth order; batches inside a round may run concurrently.

Every identity is visited at most once per sync, which bounds the walk
on dense or cyclic graphs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from ..core.defaults import DEFAULT_BATCH_CONCURRENCY, DEFAULT_BATCH_SIZE, DEFAULT_TIMEOUT
from ..core.exceptions import RelayError, ValidationException
from ..core.identity import chunk
from ..network.relay import FetchResult
from .store import FollowGraphStore, SyncStatus

logger = logging.getLogger(__name__)


class ContactListSource(Protocol):
    """Anything that can fetch merged contact lists (e.g. RelayPool)."""

    async def connect(self) -> None: ...

    async def fetch_contact_lists(self, pubkeys: list[str], timeout: float = ...) -> FetchResult: ...


@dataclass
class SyncProgress:
    """Progress of the current sync round."""

    current_depth: int
    total_depth: int
    processed: int
    total: int

    @property
    def fraction(self) -> float:
        """Completed fraction of the current round (0.0 to 1.0)."""
        if self.total == 0:
            return 1.0
        return self.processed / self.total


@dataclass
class SyncReport:
    """Summary of a finished sync."""

    depth: int
    rounds: int = 0
    resolved: int = 0
    empty: int = 0
    unresolved: int = 0
    failed_batches: int = 0
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def visited(self) -> int:
        return self.resolved + self.empty + self.unresolved

    @property
    def duration(self) -> float:
        return self.finished_at - self.started_at


ProgressCallback = Callable[[SyncProgress], Any]


class GraphSyncer:
    """Populates a FollowGraphStore from a contact list source."""

    def __init__(
        self,
        source: ContactListSource,
        store: FollowGraphStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ):
        if batch_size < 1:
            raise ValidationException("batch_size must be at least 1", "batch_size")
        if batch_concurrency < 1:
            raise ValidationException("batch_concurrency must be at least 1", "batch_concurrency")
        self.source = source
        self.store = store
        self.batch_size = batch_size
        self.timeout = timeout
        self.batch_concurrency = batch_concurrency

    async def sync(
        self,
        root: str,
        depth: int,
        on_progress: ProgressCallback | None = None,
    ) -> SyncReport:
        """Crawl the follow graph *depth* rounds out from *root*.

        Args:
            root: Canonical root pubkey
            depth: Number of BFS rounds (1 fetches only the root's list)
            on_progress: Called at the start of each round and after every
                batch; may be a plain function or a coroutine function

        Returns:
            SyncReport with per-state counts

        Raises:
            ValidationException: If depth is not positive
            AllSourcesUnavailableError: If no relay can be connected
            StorageUnavailableError: If persisting fails
        """
        if depth < 1:
            raise ValidationException("depth must be at least 1", "depth")

        await self.source.connect()

        report = SyncReport(depth=depth, started_at=time.time())
        visited: set[str] = set()
        frontier: list[str] = [root]
        logger.info(f"Starting sync from {root[:16]}... to depth {depth}")

        for d in range(depth):
            to_fetch = [pk for pk in dict.fromkeys(frontier) if pk not in visited]
            if not to_fetch:
                break

            await self._report(on_progress, SyncProgress(d + 1, depth, 0, len(to_fetch)))

            expand = d < depth - 1
            next_layer: dict[str, None] = {}
            processed = 0
            semaphore = asyncio.Semaphore(self.batch_concurrency)

            async def run_batch(batch: list[str]) -> None:
                nonlocal processed
                async with semaphore:
                    result = await self._fetch(batch, report)
                await self._apply(batch, result, visited, next_layer if expand else None, report)
                processed += len(batch)
                await self._report(on_progress, SyncProgress(d + 1, depth, processed, len(to_fetch)))

            tasks = [asyncio.create_task(run_batch(batch)) for batch in chunk(to_fetch, self.batch_size)]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                # The first failure aborts the round; nothing may write after sync() raises
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

            report.rounds = d + 1
            frontier = [pk for pk in next_layer if pk not in visited]
            logger.debug(f"Round {d + 1}/{depth} done: {len(to_fetch)} fetched, {len(frontier)} queued")

        report.finished_at = time.time()
        await self.store.set_sync_status(SyncStatus(depth=depth, time=report.finished_at))
        logger.info(
            f"Sync finished in {report.duration:.1f}s: {report.resolved} resolved, "
            f"{report.empty} empty, {report.unresolved} unresolved"
        )
        return report

    async def _fetch(self, batch: list[str], report: SyncReport) -> FetchResult:
        try:
            return await self.source.fetch_contact_lists(batch, timeout=self.timeout)
        except RelayError as e:
            # Unanswered identities stay unresolved and are retried next sync
            report.failed_batches += 1
            logger.warning(f"Batch of {len(batch)} pubkeys failed: {e}")
            return FetchResult(events={}, complete=False)

    async def _apply(
        self,
        batch: list[str],
        result: FetchResult,
        visited: set[str],
        next_layer: dict[str, None] | None,
        report: SyncReport,
    ) -> None:
        in_batch = set(batch)

        for pubkey, event in result.events.items():
            if pubkey not in in_batch or pubkey in visited:
                continue
            visited.add(pubkey)
            record = await self.store.put_event(event)
            report.resolved += 1
            if next_layer is not None:
                for follow in record.follows:
                    if follow not in visited:
                        next_layer.setdefault(follow)

        for pubkey in batch:
            if pubkey in visited:
                continue
            visited.add(pubkey)
            if result.complete:
                await self.store.put_empty(pubkey)
                report.empty += 1
            else:
                await self.store.put_unresolved(pubkey)
                report.unresolved += 1

    async def _report(self, callback: ProgressCallback | None, progress: SyncProgress) -> None:
        if callback is None:
            return
        outcome = callback(progress)
        if inspect.isawaitable(outcome):
            await outcome
