"""Store interfaces consumed by the core, with in-memory implementations.

The registry and auth session only need create/read/update/delete by id;
anything with these methods can be injected (see ``db.client`` for the
Supabase-backed versions).
"""

import threading
from typing import Protocol

from infernet_core.models.identity import AuthRecord
from infernet_core.models.provider import ProviderRecord, ReputationChange


class ProviderStore(Protocol):
    """Persistence for provider records."""

    def save(self, provider: ProviderRecord) -> None: ...

    def get(self, provider_id: str) -> ProviderRecord | None: ...

    def delete(self, provider_id: str) -> bool: ...

    def list_all(self) -> list[ProviderRecord]: ...

    def record_reputation_change(self, change: ReputationChange) -> None: ...

    def reputation_history(self, provider_id: str) -> list[ReputationChange]: ...


class AuthRecordStore(Protocol):
    """Persistence for verified identities."""

    def save_auth_record(self, record: AuthRecord) -> None: ...

    def get_auth_record(self, identity: str) -> AuthRecord | None: ...


class InMemoryProviderStore:
    """Dict-backed provider store preserving insertion order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, ProviderRecord] = {}
        self._history: list[ReputationChange] = []

    def save(self, provider: ProviderRecord) -> None:
        with self._lock:
            self._providers[provider.id] = provider.model_copy(deep=True)

    def get(self, provider_id: str) -> ProviderRecord | None:
        with self._lock:
            provider = self._providers.get(provider_id)
        return provider.model_copy(deep=True) if provider else None

    def delete(self, provider_id: str) -> bool:
        with self._lock:
            return self._providers.pop(provider_id, None) is not None

    def list_all(self) -> list[ProviderRecord]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._providers.values()]

    def record_reputation_change(self, change: ReputationChange) -> None:
        with self._lock:
            self._history.append(change)

    def reputation_history(self, provider_id: str) -> list[ReputationChange]:
        with self._lock:
            return [c for c in self._history if c.provider_id == provider_id]


class InMemoryAuthRecordStore:
    """Dict-backed auth record store keyed by identity."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, AuthRecord] = {}

    def save_auth_record(self, record: AuthRecord) -> None:
        with self._lock:
            self._records[record.identity] = record

    def get_auth_record(self, identity: str) -> AuthRecord | None:
        with self._lock:
            return self._records.get(identity)
