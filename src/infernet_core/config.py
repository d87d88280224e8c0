"""Configuration and environment loading for Infernet Core."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server identity (x-only Nostr public key, 64 hex chars)
    server_public_key: str

    # Supabase (optional; in-memory stores are used when unset)
    supabase_url: str | None = None
    supabase_key: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Authentication challenges
    challenge_ttl_seconds: int = 300
    challenge_sweep_interval: int = 60  # Seconds between expired-challenge sweeps
    challenge_sweep_every: int = 256  # Issues between inline sweeps
    challenge_consumed_retention: int = 3600  # Seconds a used challenge id is remembered past expiry

    # Provider registry
    provider_heartbeat_timeout: int = 120  # Seconds before a provider is marked offline
    default_provider_reputation: float = 50.0
    discovery_default_limit: int = 10

    # Background maintenance loop
    maintenance_enabled: bool = False

    @property
    def use_supabase(self) -> bool:
        """Whether the hosted backend is configured."""
        return bool(self.supabase_url and self.supabase_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
