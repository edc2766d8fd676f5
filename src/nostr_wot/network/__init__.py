"""
nostr-wot network - relay protocol client.

Fetches contact list (kind 3) events from Nostr relays over WebSocket,
multiplexing subscriptions per connection and merging answers across a
pool of relays.
"""

from nostr_wot.network.messages import (
    ContactListEvent,
    RelayFrame,
    SubscriptionFilter,
    extract_follows,
    parse_frame,
)
from nostr_wot.network.relay import (
    FetchResult,
    RelayConnection,
    RelayPool,
    Subscription,
    SubscriptionResult,
)

__all__ = [
    # Messages
    "ContactListEvent",
    "RelayFrame",
    "SubscriptionFilter",
    "extract_follows",
    "parse_frame",
    # Relay
    "RelayConnection",
    "RelayPool",
    "Subscription",
    "SubscriptionResult",
    "FetchResult",
]
