"""nostr-wot - Nostr Web of Trust, computed locally.

nostr-wot provides:
- Relay client that syncs contact lists (kind 3) over WebSocket
- Local follow graph with pluggable storage (memory, sqlite, postgres)
- Distance, path count, bridge and mutual-follow queries
- Trust scoring with configurable weights
- Thin client for a remote WoT oracle
"""

__version__ = "0.3.0"

from .core import (
    DEFAULT_SCORING,
    AllSourcesUnavailableError,
    OracleError,
    OracleTimeoutError,
    RelayError,
    ScoringConfig,
    SourceUnavailableError,
    StorageUnavailableError,
    ValidationException,
    WoTConfig,
    WoTException,
    calculate_trust_score,
    is_valid_pubkey,
    merge_scoring_config,
    normalize_pubkey,
)
from .graph import SyncProgress, SyncReport, SyncStatus
from .local import BatchResult, DistanceResult, LocalWoT
from .network import ContactListEvent, RelayConnection, RelayPool, extract_follows
from .oracle import OracleClient
from .storage import MemoryStorage, PostgresStorage, SqliteStorage, StorageAdapter, create_storage

__all__ = [
    "__version__",
    # Engine
    "LocalWoT",
    "DistanceResult",
    "BatchResult",
    "SyncProgress",
    "SyncReport",
    "SyncStatus",
    # Oracle
    "OracleClient",
    # Relays
    "RelayConnection",
    "RelayPool",
    "ContactListEvent",
    "extract_follows",
    # Storage
    "StorageAdapter",
    "MemoryStorage",
    "SqliteStorage",
    "PostgresStorage",
    "create_storage",
    # Config and scoring
    "WoTConfig",
    "ScoringConfig",
    "DEFAULT_SCORING",
    "merge_scoring_config",
    "calculate_trust_score",
    "is_valid_pubkey",
    "normalize_pubkey",
    # Errors
    "WoTException",
    "ValidationException",
    "RelayError",
    "SourceUnavailableError",
    "AllSourcesUnavailableError",
    "StorageUnavailableError",
    "OracleError",
    "OracleTimeoutError",
]
