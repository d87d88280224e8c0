"""Pydantic models for Infernet Core - the contracts."""

from infernet_core.models.identity import (
    AUTH_EVENT_KIND,
    AuthChallenge,
    AuthMethod,
    AuthRecord,
    AuthState,
    ChallengeRequest,
    ChallengeResponse,
    SignedEvent,
    UnsignedEvent,
)
from infernet_core.models.provider import (
    CapabilityQuery,
    DiscoveryRequest,
    Page,
    ProviderCapabilities,
    ProviderRecord,
    ProviderRegistration,
    ProviderStatus,
    ReputationChange,
    ReputationDelta,
    StatusUpdate,
)

__all__ = [
    # Identity
    "AUTH_EVENT_KIND",
    "AuthChallenge",
    "AuthMethod",
    "AuthRecord",
    "AuthState",
    "ChallengeRequest",
    "ChallengeResponse",
    "SignedEvent",
    "UnsignedEvent",
    # Provider
    "CapabilityQuery",
    "DiscoveryRequest",
    "Page",
    "ProviderCapabilities",
    "ProviderRecord",
    "ProviderRegistration",
    "ProviderStatus",
    "ReputationChange",
    "ReputationDelta",
    "StatusUpdate",
]
