"""nostr-wot core - shared primitives: errors, defaults, config, scoring."""

from .config import WoTConfig
from .exceptions import (
    AllSourcesUnavailableError,
    OracleError,
    OracleTimeoutError,
    RelayError,
    SourceUnavailableError,
    StorageUnavailableError,
    ValidationException,
    WoTException,
)
from .identity import chunk, is_valid_pubkey, normalize_pubkey, validate_pubkey, validate_pubkeys
from .scoring import DEFAULT_SCORING, ScoringConfig, calculate_trust_score, merge_scoring_config

__all__ = [
    # Config
    "WoTConfig",
    # Exceptions
    "WoTException",
    "ValidationException",
    "RelayError",
    "SourceUnavailableError",
    "AllSourcesUnavailableError",
    "StorageUnavailableError",
    "OracleError",
    "OracleTimeoutError",
    # Identity
    "is_valid_pubkey",
    "normalize_pubkey",
    "validate_pubkey",
    "validate_pubkeys",
    "chunk",
    # Scoring
    "ScoringConfig",
    "DEFAULT_SCORING",
    "merge_scoring_config",
    "calculate_trust_score",
]
