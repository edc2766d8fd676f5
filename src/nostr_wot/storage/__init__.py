"""nostr-wot storage - pluggable persistence for the local follow graph.

Quick start::

    from nostr_wot.storage import create_storage

    storage = create_storage("sqlite", path="~/.nostr-wot/graph.sqlite")
    await storage.set("follows:<pubkey>", "...")

Adding a new backend
--------------------
1. Write a class with async ``get/set/delete/clear/keys`` (see
   :class:`StorageAdapter`).
2. Register it with :func:`register_backend` or pass an instance directly
   wherever a storage is accepted.
"""

from __future__ import annotations

import importlib
import os
from typing import Any

from ..core.exceptions import ValidationException
from .backend import MemoryStorage, PostgresStorage, SqliteStorage, StorageAdapter

# Mapping from backend name -> "module:Class" import path.
BACKEND_REGISTRY: dict[str, str] = {
    "memory": "nostr_wot.storage.backend:MemoryStorage",
    "sqlite": "nostr_wot.storage.backend:SqliteStorage",
    "postgres": "nostr_wot.storage.backend:PostgresStorage",
}


def register_backend(name: str, import_path: str) -> None:
    """Register a storage backend as ``"package.module:ClassName"``."""
    if ":" not in import_path:
        raise ValidationException(f"import_path must look like 'module:Class', got {import_path!r}", "import_path")
    BACKEND_REGISTRY[name] = import_path


def create_storage(storage: Any = "memory", **options: Any) -> StorageAdapter:
    """Instantiate a storage backend.

    Args:
        storage: Backend name from :data:`BACKEND_REGISTRY`, or an object
            already implementing :class:`StorageAdapter` (returned as is)
        **options: Keyword arguments for the backend constructor

    Raises:
        ValidationException: Unknown backend name or non-conforming object
    """
    if not isinstance(storage, str):
        if isinstance(storage, StorageAdapter):
            return storage
        raise ValidationException("storage must be a backend name or a StorageAdapter", "storage")

    import_path = BACKEND_REGISTRY.get(storage)
    if import_path is None:
        raise ValidationException(
            f"Unknown storage backend {storage!r}. Available: {', '.join(sorted(BACKEND_REGISTRY))}",
            "storage",
        )

    if storage == "sqlite" and "path" in options:
        options["path"] = os.path.expanduser(os.fspath(options["path"]))

    module_path, class_name = import_path.split(":", 1)
    cls = getattr(importlib.import_module(module_path), class_name)
    return cls(**options)


__all__ = [
    "StorageAdapter",
    "MemoryStorage",
    "SqliteStorage",
    "PostgresStorage",
    "BACKEND_REGISTRY",
    "register_backend",
    "create_storage",
]
