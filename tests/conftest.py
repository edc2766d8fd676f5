"""Shared fixtures for nostr-wot tests."""

from __future__ import annotations

import asyncio

import pytest

from nostr_wot.core.exceptions import SourceUnavailableError, StorageUnavailableError
from nostr_wot.graph.store import FOLLOWS_PREFIX, FollowGraphStore
from nostr_wot.network.messages import ContactListEvent
from nostr_wot.network.relay import FetchResult
from nostr_wot.storage.backend import MemoryStorage


def _pubkey(n: int) -> str:
    return f"{n:064x}"


class FakeSource:
    """Contact list source backed by a dict of pubkey -> follows.

    Pubkeys listed in ``silent`` never answer and make the batch
    incomplete, as if every relay timed out. ``delay`` makes each fetch
    yield to the event loop for that many seconds before answering.
    """

    def __init__(
        self,
        graph: dict[str, list[str]],
        silent: set[str] | None = None,
        fail: bool = False,
        delay: float = 0.0,
    ):
        self.graph = graph
        self.silent = silent or set()
        self.fail = fail
        self.delay = delay
        self.connects = 0
        self.requests: list[list[str]] = []
        self.created_at = 1000

    async def connect(self) -> None:
        self.connects += 1

    async def fetch_contact_lists(self, pubkeys: list[str], timeout: float = 10.0) -> FetchResult:
        self.requests.append(list(pubkeys))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SourceUnavailableError("wss://fake")
        events = {}
        for pubkey in pubkeys:
            if pubkey in self.graph and pubkey not in self.silent:
                events[pubkey] = ContactListEvent(
                    id=f"ev-{pubkey[-4:]}",
                    pubkey=pubkey,
                    created_at=self.created_at,
                    tags=[["p", f] for f in self.graph[pubkey]],
                )
        complete = not any(pk in self.silent for pk in pubkeys)
        return FetchResult(events=events, complete=complete, relays_answered=1)

    async def close(self) -> None:
        pass


class FlakyStorage(MemoryStorage):
    """MemoryStorage that fails writes for chosen pubkeys, or every read."""

    def __init__(self, fail_pubkeys: set[str] | None = None, fail_get: bool = False):
        super().__init__()
        self.fail_keys = {FOLLOWS_PREFIX + pk for pk in fail_pubkeys or ()}
        self.fail_get = fail_get
        self.writes = 0

    async def get(self, key: str) -> str | None:
        if self.fail_get:
            raise StorageUnavailableError("get", "database is locked")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if key in self.fail_keys:
            raise StorageUnavailableError("set", "disk full")
        self.writes += 1
        await super().set(key, value)


@pytest.fixture
def pubkey():
    """Factory for deterministic 64-char hex pubkeys."""
    return _pubkey


@pytest.fixture
def make_event():
    """Factory for kind 3 contact list events."""

    def _make(author: str, follows: list[str], created_at: int = 1000, event_id: str = "e" * 64) -> ContactListEvent:
        return ContactListEvent(
            id=event_id,
            pubkey=author,
            created_at=created_at,
            tags=[["p", f] for f in follows],
        )

    return _make


@pytest.fixture
def memory_store():
    """FollowGraphStore on a fresh MemoryStorage."""
    return FollowGraphStore(MemoryStorage())


@pytest.fixture
def fake_source_cls():
    return FakeSource


@pytest.fixture
def populate():
    """Write a pubkey -> follows mapping into a store as resolved records."""

    async def _populate(store: FollowGraphStore, graph: dict[str, list[str]]) -> None:
        for author, follows in graph.items():
            await store.put_event(
                ContactListEvent(
                    id="",
                    pubkey=author,
                    created_at=1000,
                    tags=[["p", f] for f in follows],
                )
            )

    return _populate


@pytest.fixture
def flaky_storage_cls():
    return FlakyStorage
