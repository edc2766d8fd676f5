"""
Message formats for the Nostr relay protocol (NIP-01 subset).

Client -> relay:
    ["REQ", <subscription_id>, <filter>]
    ["CLOSE", <subscription_id>]

Relay -> client:
    ["EVENT", <subscription_id>, <event>]
    ["EOSE", <subscription_id>]          end of stored events
    ["CLOSED", <subscription_id>, <msg>] relay terminated the subscription
    ["NOTICE", <msg>]

ContactListEvent: a kind 3 event, i.e. an author's attestation of its
current follow list. Only the fields needed for the trust graph are
validated; signatures are not checked.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..core.defaults import CONTACT_LIST_KIND
from ..core.identity import is_valid_pubkey, normalize_pubkey


# =============================================================================
# FRAME TYPES
# =============================================================================


REQ = "REQ"
CLOSE = "CLOSE"
EVENT = "EVENT"
EOSE = "EOSE"
CLOSED = "CLOSED"
NOTICE = "NOTICE"


# =============================================================================
# EVENTS
# =============================================================================


@dataclass
class ContactListEvent:
    """
    A follow list attestation published by ``pubkey``.

    Attributes:
        id: Event id (hex)
        pubkey: Author pubkey, canonical lowercase hex
        created_at: Unix timestamp; the greatest one wins on merge
        kind: Nostr event kind (3 for contact lists)
        tags: Raw tag arrays, ``["p", <pubkey>, ...]`` entries are follows
        content: Free-form content (relay hints in old clients)
        sig: Schnorr signature (not verified)
    """
    id: str
    pubkey: str
    created_at: int
    kind: int = CONTACT_LIST_KIND
    tags: List[List[str]] = field(default_factory=list)
    content: str = ""
    sig: str = ""

    @property
    def follows(self) -> List[str]:
        """Followed pubkeys extracted from ``p`` tags."""
        return extract_follows(self)

    def to_dict(self) -> dict:
        """Serialize to the NIP-01 event shape."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": self.tags,
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ContactListEvent":
        """
        Deserialize and validate an event received from a relay.

        Raises:
            ValueError: If the event is structurally malformed
        """
        if not isinstance(data, dict):
            raise ValueError("event must be an object")

        pubkey = data.get("pubkey")
        if not is_valid_pubkey(pubkey):
            raise ValueError("event pubkey must be 64 hex characters")

        created_at = data.get("created_at")
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            raise ValueError("event created_at must be an integer")

        kind = data.get("kind")
        if isinstance(kind, bool) or not isinstance(kind, int):
            raise ValueError("event kind must be an integer")

        tags = data.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, list) for t in tags):
            raise ValueError("event tags must be a list of lists")

        return cls(
            id=str(data.get("id", "")),
            pubkey=normalize_pubkey(pubkey),
            created_at=created_at,
            kind=kind,
            tags=tags,
            content=data.get("content", "") if isinstance(data.get("content"), str) else "",
            sig=str(data.get("sig", "")),
        )


def extract_follows(event: ContactListEvent) -> List[str]:
    """
    Extract followed pubkeys from a contact list event.

    Only ``p`` tags whose value is a valid pubkey count. Results are
    lowercased and deduplicated, keeping first-seen order.
    """
    follows: List[str] = []
    seen = set()

    for tag in event.tags:
        if len(tag) < 2 or tag[0] != "p":
            continue
        if not is_valid_pubkey(tag[1]):
            continue
        pubkey = normalize_pubkey(tag[1])
        if pubkey not in seen:
            seen.add(pubkey)
            follows.append(pubkey)

    return follows


# =============================================================================
# FILTERS AND FRAMES
# =============================================================================


@dataclass
class SubscriptionFilter:
    """Filter selecting events by author and kind."""
    authors: List[str]
    kinds: List[int] = field(default_factory=lambda: [CONTACT_LIST_KIND])
    limit: Optional[int] = None

    def to_dict(self) -> dict:
        result: dict = {"kinds": list(self.kinds), "authors": list(self.authors)}
        if self.limit is not None:
            result["limit"] = self.limit
        return result


def req_frame(subscription_id: str, filter: SubscriptionFilter) -> list:
    """Build a REQ frame."""
    return [REQ, subscription_id, filter.to_dict()]


def close_frame(subscription_id: str) -> list:
    """Build a CLOSE frame."""
    return [CLOSE, subscription_id]


@dataclass
class RelayFrame:
    """A parsed relay -> client frame."""
    type: str
    subscription_id: Optional[str] = None
    event: Optional[Any] = None
    message: str = ""


def parse_frame(raw: str) -> Optional[RelayFrame]:
    """
    Parse a text frame from a relay.

    Returns None for anything malformed or of an unknown type; callers
    ignore such frames.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        return None

    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        return None

    frame_type = data[0]

    if frame_type == NOTICE:
        message = data[1] if len(data) > 1 and isinstance(data[1], str) else ""
        return RelayFrame(type=NOTICE, message=message)

    if len(data) < 2 or not isinstance(data[1], str):
        return None
    subscription_id = data[1]

    if frame_type == EVENT:
        if len(data) < 3:
            return None
        return RelayFrame(type=EVENT, subscription_id=subscription_id, event=data[2])

    if frame_type == EOSE:
        return RelayFrame(type=EOSE, subscription_id=subscription_id)

    if frame_type == CLOSED:
        message = data[2] if len(data) > 2 and isinstance(data[2], str) else ""
        return RelayFrame(type=CLOSED, subscription_id=subscription_id, message=message)

    return None
