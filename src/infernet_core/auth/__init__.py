"""Challenge-response authentication over Nostr identities."""

from infernet_core.auth.challenges import ChallengeIssuer
from infernet_core.auth.session import AuthSession
from infernet_core.auth.verifier import (
    IdentityVerifier,
    compute_event_id,
    validate_key_format,
)

__all__ = [
    "AuthSession",
    "ChallengeIssuer",
    "IdentityVerifier",
    "compute_event_id",
    "validate_key_format",
]
