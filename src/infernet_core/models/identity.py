"""Identity and authentication models.

Challenges and signed events keep the NIP-01 field names on the wire
(``pubkey``, ``sig``, ``created_at``) so browser signing extensions can
sign the template returned by the server without any translation.
"""

from datetime import datetime, UTC
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Event kind reserved for authentication challenges
AUTH_EVENT_KIND = 22242
AUTH_EVENT_CONTENT = "Authenticate with Infernet Protocol"

# Tag names carried by an authentication event
SERVER_KEY_TAG = "p"
CHALLENGE_TAG = "challenge"


class AuthMethod(str, Enum):
    """How an identity was verified."""

    NOSTR = "nostr"  # Schnorr signature over a challenge event


class AuthState(str, Enum):
    """Lifecycle of a single authentication challenge.

    ISSUED: Challenge handed to the client
    VERIFYING: A signed event referencing the challenge is being checked
    AUTHENTICATED: Signature verified, auth record emitted
    REJECTED: Verification failed
    EXPIRED: Event arrived after the challenge expiry
    """

    ISSUED = "issued"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (AuthState.AUTHENTICATED, AuthState.REJECTED, AuthState.EXPIRED)


class UnsignedEvent(BaseModel):
    """Event template a client signs to answer a challenge."""

    kind: int = AUTH_EVENT_KIND
    created_at: int
    tags: list[list[str]]
    content: str = AUTH_EVENT_CONTENT


class AuthChallenge(BaseModel):
    """A time-bound, single-use authentication challenge."""

    model_config = ConfigDict(frozen=True)

    challenge_id: str
    server_public_key: str
    claimant_public_key: str
    issued_at: int
    expires_at: int

    @model_validator(mode="after")
    def _check_window(self) -> "AuthChallenge":
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self

    def is_expired(self, now: int) -> bool:
        """Whether the challenge is past its expiry at ``now``."""
        return now > self.expires_at

    def to_unsigned_event(self) -> UnsignedEvent:
        """Build the event template the claimant must sign."""
        return UnsignedEvent(
            created_at=self.issued_at,
            tags=[
                [SERVER_KEY_TAG, self.server_public_key],
                [CHALLENGE_TAG, self.challenge_id],
            ],
        )


class SignedEvent(BaseModel):
    """A signed event submitted in response to a challenge."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = None
    kind: int
    created_at: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""
    signature: str = Field(alias="sig")
    public_key: str = Field(alias="pubkey")

    def tag_value(self, name: str) -> str | None:
        """Return the first value of the first tag called ``name``."""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] == name:
                return tag[1]
        return None

    @property
    def challenge_id(self) -> str | None:
        return self.tag_value(CHALLENGE_TAG)

    @property
    def server_public_key(self) -> str | None:
        return self.tag_value(SERVER_KEY_TAG)


class AuthRecord(BaseModel):
    """Durable record of a verified identity."""

    identity: str
    method: AuthMethod = AuthMethod.NOSTR
    challenge_id: str
    verified_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ChallengeRequest(BaseModel):
    """Request body for a new challenge."""

    public_key: str
    ttl_seconds: int | None = None


class ChallengeResponse(BaseModel):
    """Challenge plus the event template to sign."""

    challenge: AuthChallenge
    event: UnsignedEvent
