"""Custom exceptions for Infernet Core."""


class InfernetError(Exception):
    """Base class for errors raised by the auth and discovery core."""


class InvalidIdentity(InfernetError):
    """Raised when a public key is not 64 lowercase hex characters."""

    def __init__(self, key: str) -> None:
        self.key = key
        shown = key[:8] + "..." if len(key) > 8 else key
        super().__init__(f"Invalid identity key: {shown!r} (len={len(key)})")


class SignatureMismatch(InfernetError):
    """Raised when an event signature does not validate against its key."""

    def __init__(self, public_key: str, reason: str = "signature does not verify") -> None:
        self.public_key = public_key
        self.reason = reason
        super().__init__(f"Signature mismatch for {public_key[:8]}...: {reason}")


class UnknownChallenge(InfernetError):
    """Raised when an event references a challenge that is not pending."""

    def __init__(self, challenge_id: str | None) -> None:
        self.challenge_id = challenge_id
        super().__init__(f"Unknown challenge: {challenge_id}")


class ChallengeExpired(InfernetError):
    """Raised when a challenge is verified after its expiry time."""

    def __init__(self, challenge_id: str, expires_at: int, now: int) -> None:
        self.challenge_id = challenge_id
        self.expires_at = expires_at
        self.now = now
        super().__init__(
            f"Challenge {challenge_id[:8]}... expired at {expires_at} (now={now})"
        )


class ChallengeMismatch(InfernetError):
    """Raised when an event does not match the challenge it references."""

    def __init__(self, challenge_id: str, reason: str) -> None:
        self.challenge_id = challenge_id
        self.reason = reason
        super().__init__(f"Challenge {challenge_id[:8]}... mismatch: {reason}")


class ChallengeConsumed(InfernetError):
    """Raised on a replay against a challenge that already reached a terminal state."""

    def __init__(self, challenge_id: str) -> None:
        self.challenge_id = challenge_id
        super().__init__(f"Challenge {challenge_id[:8]}... already consumed")


class NotFound(InfernetError):
    """Raised when a provider id does not exist in the registry."""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} not found")


class InvalidConfiguration(InfernetError):
    """Raised for invalid arguments such as a non-positive TTL or page size."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
