"""Provider registry with reputation tracking."""

from infernet_core.registry.provider_registry import ProviderRegistry, clamp_reputation

__all__ = ["ProviderRegistry", "clamp_reputation"]
