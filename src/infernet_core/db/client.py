"""Supabase database client for provider and identity persistence."""

import logging
import time
from typing import Any

from supabase import create_client, Client

from infernet_core.config import get_settings
from infernet_core.models.identity import AuthRecord
from infernet_core.models.provider import ProviderRecord, ReputationChange

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Supabase-backed ProviderStore and AuthRecordStore.

    Methods are synchronous: the registry calls them while holding a
    per-provider lock.
    """

    def __init__(self, client: Client | None = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client: Client = client

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def save(self, provider: ProviderRecord) -> None:
        """Insert or replace a provider row."""
        self.client.table("providers").upsert(provider.model_dump(mode="json")).execute()
        logger.debug(f"Saved provider {provider.id}")

    def get(self, provider_id: str) -> ProviderRecord | None:
        """Get provider by id.

        Args:
            provider_id: The provider id

        Returns:
            ProviderRecord or None if not found
        """
        result = (
            self.client.table("providers")
            .select("*")
            .eq("id", provider_id)
            .execute()
        )

        if result.data:
            return ProviderRecord.model_validate(result.data[0])
        return None

    def delete(self, provider_id: str) -> bool:
        """Delete a provider row.

        Returns:
            True if a row was deleted
        """
        result = (
            self.client.table("providers")
            .delete()
            .eq("id", provider_id)
            .execute()
        )
        return bool(result.data)

    def list_all(self) -> list[ProviderRecord]:
        """All providers in registration order."""
        result = (
            self.client.table("providers")
            .select("*")
            .order("registered_at")
            .execute()
        )
        return [ProviderRecord.model_validate(row) for row in result.data]

    def record_reputation_change(self, change: ReputationChange) -> None:
        """Append a row to the reputation history."""
        self.client.table("reputation_history").insert(change.model_dump(mode="json")).execute()

    def reputation_history(self, provider_id: str) -> list[ReputationChange]:
        """Reputation changes for a provider, oldest first."""
        result = (
            self.client.table("reputation_history")
            .select("*")
            .eq("provider_id", provider_id)
            .order("timestamp")
            .execute()
        )
        return [ReputationChange.model_validate(row) for row in result.data]

    # -------------------------------------------------------------------------
    # Auth records
    # -------------------------------------------------------------------------

    def save_auth_record(self, record: AuthRecord) -> None:
        """Upsert the auth record for an identity."""
        self.client.table("auth_records").upsert(
            record.model_dump(mode="json"), on_conflict="identity"
        ).execute()
        logger.debug(f"Saved auth record for {record.identity[:8]}...")

    def get_auth_record(self, identity: str) -> AuthRecord | None:
        """Latest auth record for an identity, or None."""
        result = (
            self.client.table("auth_records")
            .select("*")
            .eq("identity", identity)
            .execute()
        )

        if result.data:
            return AuthRecord.model_validate(result.data[0])
        return None

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def health_check(self) -> dict[str, Any]:
        """Check database connectivity.

        Returns:
            Dict with ``healthy``, ``latency_ms`` and ``error``
        """
        start = time.perf_counter()
        try:
            self.client.table("providers").select("id").limit(1).execute()
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "healthy": True,
                "latency_ms": round(latency_ms, 2),
                "error": None,
            }
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(f"Database health check failed: {e}")
            return {
                "healthy": False,
                "latency_ms": round(latency_ms, 2),
                "error": str(e),
            }
