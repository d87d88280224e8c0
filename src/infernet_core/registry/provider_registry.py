"""Provider registry.

Tracks GPU providers, their capabilities, status and reputation.
Used by discovery to rank candidates for a job.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timedelta, UTC
from typing import Any

from infernet_core.db.stores import InMemoryProviderStore, ProviderStore
from infernet_core.exceptions import InvalidConfiguration, NotFound
from infernet_core.models.provider import (
    REPUTATION_MAX,
    REPUTATION_MIN,
    CapabilityQuery,
    Page,
    ProviderRecord,
    ProviderRegistration,
    ProviderStatus,
    ReputationChange,
)

logger = logging.getLogger(__name__)

# Provider ids hash onto a fixed set of locks
LOCK_STRIPES = 64


def clamp_reputation(value: float) -> float:
    return max(REPUTATION_MIN, min(REPUTATION_MAX, value))


class ProviderRegistry:
    """Registry of provider nodes.

    The registry is the only writer of provider records. Reads hand out
    copies. Writes take the lock stripe the provider id hashes to, so
    concurrent deltas on one provider all land. The stripe set is fixed:
    an id always maps to the same lock, even across deregistration.
    """

    def __init__(
        self,
        store: ProviderStore | None = None,
        heartbeat_timeout: int = 120,
        default_reputation: float = 50.0,
    ) -> None:
        """Initialize the registry.

        Args:
            store: Persistence collaborator
            heartbeat_timeout: Seconds before a silent provider is marked offline
            default_reputation: Starting reputation for new providers
        """
        self._store = store or InMemoryProviderStore()
        self._heartbeat_timeout = heartbeat_timeout
        self._default_reputation = clamp_reputation(default_reputation)
        self._record_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _lock_for(self, provider_id: str) -> threading.Lock:
        return self._record_locks[hash(provider_id) % LOCK_STRIPES]

    def _require(self, provider_id: str) -> ProviderRecord:
        provider = self._store.get(provider_id)
        if provider is None:
            raise NotFound(provider_id)
        return provider

    def register(self, registration: ProviderRegistration) -> ProviderRecord:
        """Register a new provider or refresh an existing one.

        Re-registration replaces endpoint, key, capabilities and price but
        keeps the earned reputation.

        Args:
            registration: Provider registration info

        Returns:
            The registered ProviderRecord
        """
        with self._lock_for(registration.id):
            existing = self._store.get(registration.id)
            now = datetime.now(UTC)
            if existing is not None:
                provider = existing.model_copy(update={
                    "public_key": registration.public_key,
                    "endpoint": registration.endpoint,
                    "capabilities": registration.capabilities,
                    "price": registration.price,
                    "status": ProviderStatus.AVAILABLE,
                    "last_seen": now,
                })
                logger.info(f"Updating existing provider: {registration.id}")
            else:
                reputation = registration.reputation
                provider = ProviderRecord(
                    id=registration.id,
                    public_key=registration.public_key,
                    endpoint=registration.endpoint,
                    capabilities=registration.capabilities,
                    price=registration.price,
                    reputation=self._default_reputation if reputation is None else reputation,
                    registered_at=now,
                    last_seen=now,
                )
                logger.info(f"Registering new provider: {registration.id}")
            self._store.save(provider)
        return provider

    def deregister(self, provider_id: str) -> bool:
        """Remove a provider.

        Returns:
            True if the provider was found and removed
        """
        with self._lock_for(provider_id):
            removed = self._store.delete(provider_id)
        if removed:
            logger.info(f"Provider deregistered: {provider_id}")
        return removed

    def get(self, provider_id: str) -> ProviderRecord:
        """Get a provider by id.

        Raises:
            NotFound: If the provider does not exist
        """
        return self._require(provider_id)

    def list(
        self,
        page: int = 1,
        page_size: int = 20,
        status: ProviderStatus | None = None,
    ) -> Page:
        """List providers in registration order.

        Args:
            page: 1-based page number
            page_size: Providers per page
            status: Only include providers in this status

        Returns:
            The requested Page (empty when past the end)

        Raises:
            InvalidConfiguration: If page or page_size is not positive
        """
        if page < 1 or page_size < 1:
            raise InvalidConfiguration(
                f"page and page_size must be positive, got page={page} page_size={page_size}"
            )

        providers = self._store.list_all()
        if status is not None:
            providers = [p for p in providers if p.status == status]
        start = (page - 1) * page_size
        return Page(
            items=providers[start:start + page_size],
            page=page,
            page_size=page_size,
            total_items=len(providers),
            total_pages=math.ceil(len(providers) / page_size),
        )

    def find_by_capability(self, query: CapabilityQuery) -> list[ProviderRecord]:
        """Filter providers by query and rank them.

        Ranking is reputation descending, then price ascending. Equal
        reputation and price keep registration order.

        Args:
            query: Capability requirements

        Returns:
            Matching providers, best first
        """
        candidates = [p for p in self._store.list_all() if query.matches(p)]
        candidates.sort(key=lambda p: (-p.reputation, p.price))
        if query.limit is not None:
            candidates = candidates[:query.limit]
        return candidates

    def update_status(self, provider_id: str, status: ProviderStatus) -> ProviderRecord:
        """Replace a provider's status.

        Raises:
            NotFound: If the provider does not exist
        """
        with self._lock_for(provider_id):
            provider = self._require(provider_id)
            provider.status = status
            self._store.save(provider)
        logger.info(f"Provider {provider_id} status updated to {status.value}")
        return provider

    def heartbeat(self, provider_id: str, status: ProviderStatus | None = None) -> ProviderRecord:
        """Record that a provider is alive, optionally updating its status.

        An offline provider that heartbeats without a status comes back as
        available.

        Raises:
            NotFound: If the provider does not exist
        """
        with self._lock_for(provider_id):
            provider = self._require(provider_id)
            provider.last_seen = datetime.now(UTC)
            if status is not None:
                provider.status = status
            elif provider.status == ProviderStatus.OFFLINE:
                provider.status = ProviderStatus.AVAILABLE
            self._store.save(provider)
        return provider

    def apply_reputation_delta(
        self,
        provider_id: str,
        delta: float,
        reason: str | None = None,
        job_id: str | None = None,
    ) -> ProviderRecord:
        """Add ``delta`` to a provider's reputation, clamped to [0, 100].

        Args:
            provider_id: Provider to adjust
            delta: Signed adjustment of any magnitude
            reason: Why the adjustment was made
            job_id: Job that produced the adjustment

        Returns:
            The updated ProviderRecord

        Raises:
            NotFound: If the provider does not exist
            InvalidConfiguration: If delta is NaN or infinite
        """
        if not math.isfinite(delta):
            raise InvalidConfiguration(f"reputation delta must be finite, got {delta}")

        with self._lock_for(provider_id):
            provider = self._require(provider_id)
            old_score = provider.reputation
            provider.reputation = clamp_reputation(old_score + delta)
            self._store.save(provider)
            change = ReputationChange(
                provider_id=provider_id,
                old_score=old_score,
                new_score=provider.reputation,
                delta=delta,
                reason=reason,
                job_id=job_id,
            )
            self._store.record_reputation_change(change)

        logger.debug(
            f"Provider {provider_id} reputation {old_score:.1f} -> {provider.reputation:.1f} "
            f"(delta={delta:+.1f})"
        )
        return provider

    def reputation_history(self, provider_id: str) -> list[ReputationChange]:
        """Applied reputation changes for a provider, oldest first.

        Raises:
            NotFound: If the provider does not exist
        """
        self._require(provider_id)
        return self._store.reputation_history(provider_id)

    def mark_stale(self, now: datetime | None = None) -> list[str]:
        """Mark providers offline if their heartbeat timed out.

        Returns:
            Ids of providers that were marked offline
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(seconds=self._heartbeat_timeout)
        marked = []
        for snapshot in self._store.list_all():
            if snapshot.status == ProviderStatus.OFFLINE or snapshot.last_seen >= cutoff:
                continue
            with self._lock_for(snapshot.id):
                provider = self._store.get(snapshot.id)
                if provider is None or provider.status == ProviderStatus.OFFLINE:
                    continue
                if provider.last_seen < cutoff:
                    provider.status = ProviderStatus.OFFLINE
                    self._store.save(provider)
                    marked.append(provider.id)
                    logger.warning(f"Provider timed out: {provider.id}")
        return marked

    def stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        providers = self._store.list_all()
        return {
            "total_providers": len(providers),
            "providers_by_status": {
                s.value: sum(1 for p in providers if p.status == s)
                for s in ProviderStatus
            },
        }
