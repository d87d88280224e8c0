"""Challenge-response authentication session.

Drives each challenge through
``ISSUED -> VERIFYING -> {AUTHENTICATED, REJECTED, EXPIRED}``.
A challenge is claimed (consumed) as soon as a signed event referencing it
arrives, so every outcome is terminal and a failed attempt needs a fresh
challenge.
"""

import logging
import threading

from infernet_core.auth.challenges import ChallengeIssuer
from infernet_core.auth.verifier import IdentityVerifier
from infernet_core.db.stores import AuthRecordStore, InMemoryAuthRecordStore
from infernet_core.exceptions import (
    ChallengeExpired,
    ChallengeMismatch,
    InvalidIdentity,
    SignatureMismatch,
    UnknownChallenge,
)
from infernet_core.models.identity import (
    AUTH_EVENT_KIND,
    AuthChallenge,
    AuthMethod,
    AuthRecord,
    AuthState,
    SignedEvent,
)

logger = logging.getLogger(__name__)


class AuthSession:
    """Orchestrates issue -> external signing -> verification -> auth record."""

    def __init__(
        self,
        server_public_key: str,
        issuer: ChallengeIssuer | None = None,
        verifier: IdentityVerifier | None = None,
        records: AuthRecordStore | None = None,
        default_ttl: int = 300,
        sweep_every: int = 256,
    ) -> None:
        """Initialize the session.

        Args:
            server_public_key: Key challenges are bound to
            issuer: Pending-challenge store
            verifier: Signature verifier
            records: Where verified identities are persisted
            default_ttl: Challenge lifetime when the caller gives none
            sweep_every: Forget finished challenge states every this many begins
        """
        self.server_public_key = server_public_key
        self.issuer = issuer or ChallengeIssuer()
        self.verifier = verifier or IdentityVerifier()
        self.records = records or InMemoryAuthRecordStore()
        self.default_ttl = default_ttl
        self._lock = threading.Lock()
        self._states: dict[str, AuthState] = {}
        self._sweep_every = sweep_every
        self._begun_since_sweep = 0

    def _set_state(self, challenge_id: str, state: AuthState) -> None:
        with self._lock:
            self._states[challenge_id] = state

    def state(self, challenge_id: str) -> AuthState | None:
        """Current state of a challenge, or None if untracked."""
        with self._lock:
            return self._states.get(challenge_id)

    def begin(self, claimant_public_key: str, ttl_seconds: int | None = None) -> AuthChallenge:
        """Issue a challenge for ``claimant_public_key``."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        challenge = self.issuer.issue(self.server_public_key, claimant_public_key, ttl)
        with self._lock:
            self._states[challenge.challenge_id] = AuthState.ISSUED
            self._begun_since_sweep += 1
            sweep_due = self._begun_since_sweep >= self._sweep_every
        if sweep_due:
            self._forget_untracked()
        return challenge

    def cancel(self, challenge_id: str) -> None:
        """Withdraw a pending challenge before it is answered."""
        self.issuer.invalidate(challenge_id)
        with self._lock:
            if self._states.get(challenge_id) == AuthState.ISSUED:
                del self._states[challenge_id]

    def submit(self, event: SignedEvent) -> AuthRecord:
        """Verify a signed answer to a pending challenge.

        Args:
            event: Signed event carrying a ``challenge`` tag

        Returns:
            The AuthRecord for the verified identity

        Raises:
            UnknownChallenge: No pending challenge matches the event
            ChallengeConsumed: The challenge already reached a terminal state
            ChallengeExpired: The challenge expired before submission
            ChallengeMismatch: Event kind or keys differ from the challenge
            InvalidIdentity: The event's public key is malformed
            SignatureMismatch: The signature does not verify
        """
        challenge_id = event.challenge_id
        if challenge_id is None:
            raise UnknownChallenge(None)

        try:
            challenge = self.issuer.claim(challenge_id)
        except UnknownChallenge:
            with self._lock:
                if challenge_id in self._states:
                    self._states[challenge_id] = AuthState.REJECTED
            logger.warning(f"Rejected event for unknown challenge {challenge_id[:8]}...")
            raise

        self._set_state(challenge_id, AuthState.VERIFYING)
        try:
            return self._verify(challenge, event)
        except Exception as e:
            with self._lock:
                current = self._states.get(challenge_id)
                unfinished = current is None or not current.is_terminal
                if unfinished:
                    self._states[challenge_id] = AuthState.REJECTED
            if unfinished:
                logger.error(f"Verification of challenge {challenge_id[:8]}... failed: {e}")
            raise

    def _verify(self, challenge: AuthChallenge, event: SignedEvent) -> AuthRecord:
        """Check a claimed challenge's answer and emit the auth record."""
        challenge_id = challenge.challenge_id
        now = self.issuer.now()
        if challenge.is_expired(now):
            self._set_state(challenge_id, AuthState.EXPIRED)
            logger.info(f"Challenge {challenge_id[:8]}... expired before verification")
            raise ChallengeExpired(challenge_id, challenge.expires_at, now)

        try:
            self._check_binding(challenge, event)
            self.verifier.verify_signature(event)
        except (ChallengeMismatch, InvalidIdentity, SignatureMismatch) as e:
            self._set_state(challenge_id, AuthState.REJECTED)
            logger.warning(f"Authentication rejected for {event.public_key[:8]}...: {e}")
            raise

        record = AuthRecord(
            identity=event.public_key,
            method=AuthMethod.NOSTR,
            challenge_id=challenge_id,
        )
        self.records.save_auth_record(record)
        self._set_state(challenge_id, AuthState.AUTHENTICATED)
        logger.info(f"Authenticated {event.public_key[:8]}...")
        return record

    def _check_binding(self, challenge: AuthChallenge, event: SignedEvent) -> None:
        """Confirm the event answers this challenge for this server and claimant."""
        if event.kind != AUTH_EVENT_KIND:
            raise ChallengeMismatch(
                challenge.challenge_id, f"event kind {event.kind} is not {AUTH_EVENT_KIND}"
            )
        if event.server_public_key != challenge.server_public_key:
            raise ChallengeMismatch(challenge.challenge_id, "server key tag differs")
        if event.public_key != challenge.claimant_public_key:
            raise ChallengeMismatch(challenge.challenge_id, "claimant key differs")

    def sweep_expired(self) -> int:
        """Reclaim expired challenges and forget states nothing refers to."""
        removed = self.issuer.sweep_expired()
        self._forget_untracked()
        return removed

    def _forget_untracked(self) -> None:
        with self._lock:
            self._begun_since_sweep = 0
            forgotten = [
                cid for cid in self._states
                if self.issuer.get(cid) is None and not self.issuer.is_consumed(cid)
            ]
            for cid in forgotten:
                del self._states[cid]
