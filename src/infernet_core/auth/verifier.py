"""Nostr identity verification.

Checks key format and BIP-340 Schnorr signatures over NIP-01 events.
The event id is SHA-256 over the compact JSON array
``[0, pubkey, created_at, kind, tags, content]`` and the signature is
made over that 32-byte digest.
"""

import hashlib
import json
import logging
import re

from coincurve import PublicKeyXOnly

from infernet_core.exceptions import InvalidIdentity, SignatureMismatch
from infernet_core.models.identity import SignedEvent

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"[0-9a-f]{64}")
_SIGNATURE_PATTERN = re.compile(r"[0-9a-f]{128}")


def validate_key_format(key: str) -> bool:
    """Return True iff ``key`` is exactly 64 lowercase hex characters."""
    return isinstance(key, str) and _KEY_PATTERN.fullmatch(key) is not None


def serialize_event(event: SignedEvent) -> str:
    """Canonical NIP-01 serialization of an event's signed fields."""
    return json.dumps(
        [0, event.public_key, event.created_at, event.kind, event.tags, event.content],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_event_id(event: SignedEvent) -> str:
    """Hex SHA-256 digest of the canonical serialization."""
    return hashlib.sha256(serialize_event(event).encode("utf-8")).hexdigest()


class IdentityVerifier:
    """Verifies signed events against the public key they claim."""

    def validate_key_format(self, key: str) -> bool:
        return validate_key_format(key)

    def verify_signature(self, event: SignedEvent) -> None:
        """Verify ``event.signature`` against ``event.public_key``.

        Args:
            event: The signed event

        Raises:
            InvalidIdentity: If the public key is malformed
            SignatureMismatch: If the digest or signature does not validate
        """
        if not validate_key_format(event.public_key):
            raise InvalidIdentity(event.public_key)

        event_id = compute_event_id(event)
        if event.id is not None and event.id != event_id:
            raise SignatureMismatch(event.public_key, "event id does not match content")

        if not _SIGNATURE_PATTERN.fullmatch(event.signature):
            raise SignatureMismatch(event.public_key, "signature is not 64 hex-encoded bytes")

        try:
            key = PublicKeyXOnly(bytes.fromhex(event.public_key))
        except ValueError as e:
            # 64 hex chars but not an x coordinate on the curve
            raise SignatureMismatch(event.public_key, "public key is not a curve point") from e

        if not key.verify(bytes.fromhex(event.signature), bytes.fromhex(event_id)):
            logger.debug(f"Schnorr check failed for {event.public_key[:8]}...")
            raise SignatureMismatch(event.public_key)
