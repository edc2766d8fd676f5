"""Follow graph persistence on top of a StorageAdapter.

Each identity the sync engine has touched gets one record under
``follows:<pubkey>``. The record carries an explicit state tag:

- RESOLVED: a contact list was received; ``follows`` is its p-tags
- EMPTY: the relays answered completely and had no contact list, so the
  identity is known to follow nobody
- UNRESOLVED: the identity was asked for but no relay answered
  completely; it is retried on the next sync

A missing key means the identity was never asked for. Sync metadata
lives under ``meta:sync``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..network.messages import ContactListEvent
from ..storage.backend import StorageAdapter

logger = logging.getLogger(__name__)

FOLLOWS_PREFIX = "follows:"
META_PREFIX = "meta:"
SYNC_META_KEY = META_PREFIX + "sync"


class FollowState(str, Enum):
    """What is known about an identity's follow list."""

    RESOLVED = "resolved"
    EMPTY = "empty"
    UNRESOLVED = "unresolved"


@dataclass
class FollowRecord:
    """Persisted follow list of one identity."""

    pubkey: str
    state: FollowState
    follows: list[str] = field(default_factory=list)
    created_at: int | None = None
    event_id: str | None = None

    @property
    def is_known(self) -> bool:
        """True when the follow list is authoritative (possibly empty)."""
        return self.state in (FollowState.RESOLVED, FollowState.EMPTY)

    def to_json(self) -> str:
        data: dict[str, Any] = {"state": self.state.value, "follows": self.follows}
        if self.created_at is not None:
            data["created_at"] = self.created_at
        if self.event_id:
            data["event_id"] = self.event_id
        return json.dumps(data, separators=(",", ":"))

    @classmethod
    def from_json(cls, pubkey: str, raw: str) -> FollowRecord:
        """Parse a stored record.

        Raises:
            ValueError: If the stored value is not a valid record
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("follow record must be an object")
        follows = data.get("follows", [])
        if not isinstance(follows, list):
            raise ValueError("follow record follows must be a list")
        return cls(
            pubkey=pubkey,
            state=FollowState(data.get("state")),
            follows=[str(f) for f in follows],
            created_at=data.get("created_at"),
            event_id=data.get("event_id"),
        )

    @classmethod
    def from_event(cls, event: ContactListEvent) -> FollowRecord:
        return cls(
            pubkey=event.pubkey,
            state=FollowState.RESOLVED,
            follows=event.follows,
            created_at=event.created_at,
            event_id=event.id or None,
        )


@dataclass
class SyncStatus:
    """Result of the last completed sync."""

    depth: int
    time: float

    def to_dict(self) -> dict[str, Any]:
        return {"depth": self.depth, "time": self.time}


class FollowGraphStore:
    """Reads and writes follow records and sync metadata."""

    def __init__(self, storage: StorageAdapter):
        self.storage = storage

    # -- follow records ----------------------------------------------------

    async def get_record(self, pubkey: str) -> FollowRecord | None:
        raw = await self.storage.get(FOLLOWS_PREFIX + pubkey)
        if raw is None:
            return None
        try:
            return FollowRecord.from_json(pubkey, raw)
        except ValueError as e:
            # Corrupt entries read as never fetched
            logger.warning(f"Ignoring corrupt follow record for {pubkey[:16]}...: {e}")
            return None

    async def get_follows(self, pubkey: str) -> list[str] | None:
        """Known follow list of *pubkey*, or None when not known."""
        record = await self.get_record(pubkey)
        if record is None or not record.is_known:
            return None
        return record.follows

    async def does_follow(self, follower: str, followed: str) -> bool:
        follows = await self.get_follows(follower)
        return follows is not None and followed in follows

    async def put_record(self, record: FollowRecord) -> None:
        await self.storage.set(FOLLOWS_PREFIX + record.pubkey, record.to_json())

    async def put_event(self, event: ContactListEvent) -> FollowRecord:
        record = FollowRecord.from_event(event)
        await self.put_record(record)
        return record

    async def put_empty(self, pubkey: str) -> None:
        await self.put_record(FollowRecord(pubkey=pubkey, state=FollowState.EMPTY))

    async def put_unresolved(self, pubkey: str) -> bool:
        """Mark *pubkey* as asked-but-unanswered.

        A record from an earlier sync is kept as is. Returns True when a
        new UNRESOLVED record was written.
        """
        if await self.storage.get(FOLLOWS_PREFIX + pubkey) is not None:
            return False
        await self.put_record(FollowRecord(pubkey=pubkey, state=FollowState.UNRESOLVED))
        return True

    async def pubkeys(self) -> list[str]:
        """All identities with a stored record."""
        return sorted(
            key[len(FOLLOWS_PREFIX):] for key in await self.storage.keys() if key.startswith(FOLLOWS_PREFIX)
        )

    async def snapshot(self) -> dict[str, FollowRecord]:
        """Every stored follow record keyed by pubkey."""
        records: dict[str, FollowRecord] = {}
        for pubkey in await self.pubkeys():
            record = await self.get_record(pubkey)
            if record is not None:
                records[pubkey] = record
        return records

    # -- metadata ----------------------------------------------------------

    async def set_sync_status(self, status: SyncStatus) -> None:
        await self.storage.set(SYNC_META_KEY, json.dumps(status.to_dict()))

    async def get_sync_status(self) -> SyncStatus | None:
        raw = await self.storage.get(SYNC_META_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return SyncStatus(depth=int(data["depth"]), time=float(data["time"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring corrupt sync metadata: {e}")
            return None

    async def clear(self) -> None:
        await self.storage.clear()
