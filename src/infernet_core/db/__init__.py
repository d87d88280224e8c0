"""Persistence collaborators for the registry and auth session."""

from infernet_core.db.stores import (
    AuthRecordStore,
    InMemoryAuthRecordStore,
    InMemoryProviderStore,
    ProviderStore,
)

__all__ = [
    "AuthRecordStore",
    "InMemoryAuthRecordStore",
    "InMemoryProviderStore",
    "ProviderStore",
]
