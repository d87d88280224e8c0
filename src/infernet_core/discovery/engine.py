"""Discovery engine: ranks providers for a compute request."""

import logging

from infernet_core.models.provider import CapabilityQuery, ProviderRecord
from infernet_core.registry.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class DiscoveryEngine:
    """Request-scoped policy over ``ProviderRegistry.find_by_capability``.

    Holds no state of its own and never writes to the registry.
    """

    def __init__(self, registry: ProviderRegistry, default_limit: int | None = None) -> None:
        self.registry = registry
        self.default_limit = default_limit

    def discover(
        self,
        requirements: CapabilityQuery,
        exclude: set[str] | None = None,
    ) -> list[ProviderRecord]:
        """Find providers meeting ``requirements``, best first.

        Args:
            requirements: Capability requirements
            exclude: Provider ids to leave out (e.g. already assigned)

        Returns:
            Ranked candidate providers
        """
        limit = requirements.limit or self.default_limit
        query = requirements
        if exclude:
            # Filter before truncating so exclusions don't shrink the result
            query = requirements.model_copy(update={"limit": None})

        candidates = self.registry.find_by_capability(query)
        if exclude:
            candidates = [p for p in candidates if p.id not in exclude]
        if limit is not None:
            candidates = candidates[:limit]

        logger.debug(f"Discovery matched {len(candidates)} providers")
        return candidates
