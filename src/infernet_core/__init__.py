"""Infernet Core - Nostr challenge authentication and GPU provider discovery."""

__version__ = "0.1.0"

from infernet_core.exceptions import (
    ChallengeConsumed,
    ChallengeExpired,
    ChallengeMismatch,
    InfernetError,
    InvalidConfiguration,
    InvalidIdentity,
    NotFound,
    SignatureMismatch,
    UnknownChallenge,
)

__all__ = [
    "__version__",
    "ChallengeConsumed",
    "ChallengeExpired",
    "ChallengeMismatch",
    "InfernetError",
    "InvalidConfiguration",
    "InvalidIdentity",
    "NotFound",
    "SignatureMismatch",
    "UnknownChallenge",
]
