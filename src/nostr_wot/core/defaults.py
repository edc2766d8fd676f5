"""Centralized configurable defaults for nostr-wot.

All tunable parameters in one place. Values read from the environment
can be overridden with ``NOSTR_WOT_*`` variables.
"""

from __future__ import annotations

import os

# Nostr contact list event kind (NIP-02)
CONTACT_LIST_KIND = 3

# Query defaults
DEFAULT_MAX_HOPS = int(os.environ.get("NOSTR_WOT_MAX_HOPS", "3"))

# Sync defaults
DEFAULT_SYNC_DEPTH = int(os.environ.get("NOSTR_WOT_SYNC_DEPTH", "2"))
DEFAULT_BATCH_SIZE = 100  # authors per REQ frame
DEFAULT_BATCH_CONCURRENCY = 1

# Relay timing (seconds)
DEFAULT_TIMEOUT = float(os.environ.get("NOSTR_WOT_TIMEOUT", "10.0"))  # per subscription
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_HEARTBEAT = 30.0

# Remote oracle
DEFAULT_ORACLE = os.environ.get("NOSTR_WOT_ORACLE", "https://nostr-wot.com")
DEFAULT_ORACLE_TIMEOUT = 5.0
ORACLE_BATCH_SIZE = 50  # keeps batch URLs short

# Trust scoring
DEFAULT_DISTANCE_WEIGHTS = {1: 1.0, 2: 0.5, 3: 0.25, 4: 0.1}
DEFAULT_MUTUAL_BONUS = 0.5
DEFAULT_PATH_BONUS = 0.1
DEFAULT_MAX_PATH_BONUS = 0.5

# Durable storage
DEFAULT_DB_PATH = os.environ.get(
    "NOSTR_WOT_DB_PATH",
    os.path.join(os.path.expanduser("~"), ".nostr-wot", "graph.sqlite"),
)
DEFAULT_TABLE_NAME = "wot_data"
