"""Runtime configuration for the local trust graph."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from . import defaults
from .exceptions import ValidationException
from .identity import validate_pubkey
from .scoring import ScoringConfig, merge_scoring_config


@dataclass
class WoTConfig:
    """Configuration blob for :class:`~nostr_wot.local.LocalWoT`.

    ``storage`` is either a backend name understood by
    :func:`nostr_wot.storage.create_storage` or an object implementing the
    ``StorageAdapter`` protocol. ``storage_options`` are passed to the
    backend factory. An ``offline`` config only reads the local graph and
    may omit relays; syncing it raises ValidationException.
    """

    my_pubkey: str
    relays: list[str] = field(default_factory=list)
    max_hops: int = defaults.DEFAULT_MAX_HOPS
    timeout: float = defaults.DEFAULT_TIMEOUT
    connect_timeout: float = defaults.DEFAULT_CONNECT_TIMEOUT
    batch_size: int = defaults.DEFAULT_BATCH_SIZE
    batch_concurrency: int = defaults.DEFAULT_BATCH_CONCURRENCY
    storage: Any = "memory"
    storage_options: dict[str, Any] = field(default_factory=dict)
    scoring: ScoringConfig = field(default_factory=merge_scoring_config)
    offline: bool = False

    def __post_init__(self) -> None:
        self.my_pubkey = validate_pubkey(self.my_pubkey, "my_pubkey")
        self.relays = [url.strip() for url in self.relays if url and url.strip()]
        if not self.relays and not self.offline:
            raise ValidationException("At least one relay URL is required", "relays")
        if self.max_hops < 1:
            raise ValidationException("max_hops must be at least 1", "max_hops")
        if self.timeout <= 0:
            raise ValidationException("timeout must be positive", "timeout")
        if self.batch_size < 1:
            raise ValidationException("batch_size must be at least 1", "batch_size")
        if self.batch_concurrency < 1:
            raise ValidationException("batch_concurrency must be at least 1", "batch_concurrency")
        if not isinstance(self.scoring, ScoringConfig):
            self.scoring = merge_scoring_config(self.scoring)

    @classmethod
    def from_env(cls, **overrides: Any) -> WoTConfig:
        """Build a config from ``NOSTR_WOT_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        storage = os.environ.get("NOSTR_WOT_STORAGE", "sqlite")
        storage_options: dict[str, Any] = {}
        if storage == "sqlite":
            storage_options["path"] = os.environ.get("NOSTR_WOT_DB_PATH", defaults.DEFAULT_DB_PATH)
        elif storage == "postgres":
            storage_options["dsn"] = os.environ.get("NOSTR_WOT_DSN", "")

        values: dict[str, Any] = {
            "my_pubkey": os.environ.get("NOSTR_WOT_PUBKEY", ""),
            "relays": os.environ.get("NOSTR_WOT_RELAYS", "").split(","),
            "max_hops": int(os.environ.get("NOSTR_WOT_MAX_HOPS", str(defaults.DEFAULT_MAX_HOPS))),
            "timeout": float(os.environ.get("NOSTR_WOT_TIMEOUT", str(defaults.DEFAULT_TIMEOUT))),
            "storage": storage,
            "storage_options": storage_options,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
