"""Issuing and consuming authentication challenges."""

import logging
import secrets
import threading
import time
from typing import Callable

from infernet_core.auth.verifier import validate_key_format
from infernet_core.exceptions import (
    ChallengeConsumed,
    InvalidConfiguration,
    InvalidIdentity,
    UnknownChallenge,
)
from infernet_core.models.identity import AuthChallenge

logger = logging.getLogger(__name__)


def _unix_now() -> int:
    return int(time.time())


class ChallengeIssuer:
    """Pending-challenge store with single-use enforcement.

    A challenge lives in ``_pending`` from issue until it is claimed or
    invalidated. Claimed ids are remembered in ``_consumed`` until
    ``consumed_retention`` seconds past their expiry, so replays can be
    told apart from ids that were never issued. Every ``sweep_every``
    issues the store reclaims expired entries on its own.
    """

    def __init__(
        self,
        clock: Callable[[], int] = _unix_now,
        sweep_every: int = 256,
        consumed_retention: int = 3600,
    ) -> None:
        if sweep_every < 1 or consumed_retention < 0:
            raise InvalidConfiguration(
                f"sweep_every must be positive and consumed_retention non-negative, "
                f"got {sweep_every} and {consumed_retention}"
            )
        self._clock = clock
        self._sweep_every = sweep_every
        self._consumed_retention = consumed_retention
        self._lock = threading.Lock()
        self._pending: dict[str, AuthChallenge] = {}
        self._consumed: dict[str, int] = {}  # challenge_id -> expires_at
        self._issued_since_sweep = 0

    def now(self) -> int:
        return self._clock()

    def issue(
        self,
        server_public_key: str,
        claimant_public_key: str,
        ttl_seconds: int,
    ) -> AuthChallenge:
        """Create and register a new challenge.

        Args:
            server_public_key: Key of the server the claimant authenticates to
            claimant_public_key: Key the claimant must sign with
            ttl_seconds: Lifetime of the challenge

        Returns:
            The registered AuthChallenge

        Raises:
            InvalidConfiguration: If ttl_seconds is not positive
            InvalidIdentity: If either key is malformed
        """
        if ttl_seconds <= 0:
            raise InvalidConfiguration(f"ttl_seconds must be positive, got {ttl_seconds}")
        for key in (server_public_key, claimant_public_key):
            if not validate_key_format(key):
                raise InvalidIdentity(key)

        now = self.now()
        challenge = AuthChallenge(
            challenge_id=secrets.token_hex(32),
            server_public_key=server_public_key,
            claimant_public_key=claimant_public_key,
            issued_at=now,
            expires_at=now + ttl_seconds,
        )

        with self._lock:
            self._pending[challenge.challenge_id] = challenge
            self._issued_since_sweep += 1
            sweep_due = self._issued_since_sweep >= self._sweep_every

        logger.debug(
            f"Issued challenge {challenge.challenge_id[:8]}... "
            f"for {claimant_public_key[:8]}... (ttl={ttl_seconds}s)"
        )
        if sweep_due:
            self.sweep_expired(now)
        return challenge

    def get(self, challenge_id: str) -> AuthChallenge | None:
        """Look up a pending challenge without consuming it."""
        with self._lock:
            return self._pending.get(challenge_id)

    def is_consumed(self, challenge_id: str) -> bool:
        with self._lock:
            return challenge_id in self._consumed

    def claim(self, challenge_id: str) -> AuthChallenge:
        """Atomically remove a pending challenge and mark it consumed.

        Exactly one caller can claim a given challenge.

        Raises:
            ChallengeConsumed: If the challenge was already claimed
            UnknownChallenge: If the challenge is not pending
        """
        with self._lock:
            challenge = self._pending.pop(challenge_id, None)
            if challenge is None:
                if challenge_id in self._consumed:
                    raise ChallengeConsumed(challenge_id)
                raise UnknownChallenge(challenge_id)
            self._consumed[challenge_id] = challenge.expires_at
        return challenge

    def invalidate(self, challenge_id: str) -> None:
        """Drop a pending challenge. Unknown ids are ignored."""
        with self._lock:
            removed = self._pending.pop(challenge_id, None)
        if removed is not None:
            logger.debug(f"Invalidated challenge {challenge_id[:8]}...")

    def sweep_expired(self, now: int | None = None) -> int:
        """Reclaim expired pending challenges and stale consumed markers.

        Returns:
            Number of entries removed
        """
        now = self.now() if now is None else now
        with self._lock:
            self._issued_since_sweep = 0
            expired = [cid for cid, c in self._pending.items() if c.is_expired(now)]
            for cid in expired:
                del self._pending[cid]
            stale = [
                cid for cid, expires_at in self._consumed.items()
                if now > expires_at + self._consumed_retention
            ]
            for cid in stale:
                del self._consumed[cid]

        removed = len(expired) + len(stale)
        if removed:
            logger.info(
                f"Swept {len(expired)} expired challenges and {len(stale)} consumed markers"
            )
        return removed

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)
