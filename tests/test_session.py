"""Tests for the authentication session state machine."""

import threading
from unittest.mock import MagicMock

import pytest

from infernet_core.auth.challenges import ChallengeIssuer
from infernet_core.auth.session import AuthSession
from infernet_core.db.stores import InMemoryAuthRecordStore
from infernet_core.exceptions import (
    ChallengeConsumed,
    ChallengeExpired,
    ChallengeMismatch,
    InvalidIdentity,
    SignatureMismatch,
    UnknownChallenge,
)
from infernet_core.models.identity import AuthMethod, AuthState


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def records() -> InMemoryAuthRecordStore:
    return InMemoryAuthRecordStore()


@pytest.fixture
def session(server_key, clock, records) -> AuthSession:
    return AuthSession(
        server_public_key=server_key.public_key,
        issuer=ChallengeIssuer(clock=clock),
        records=records,
        default_ttl=60,
    )


# ---------------------------------------------------------------------------
# TestHappyPath
# ---------------------------------------------------------------------------

class TestHappyPath:
    """A correctly signed answer authenticates exactly once."""

    def test_authenticates(self, session, claimant, records):
        challenge = session.begin(claimant.public_key)
        assert session.state(challenge.challenge_id) == AuthState.ISSUED

        event = claimant.sign_template(challenge.to_unsigned_event())
        record = session.submit(event)

        assert record.identity == claimant.public_key
        assert record.method == AuthMethod.NOSTR
        assert record.challenge_id == challenge.challenge_id
        assert records.get_auth_record(claimant.public_key) == record
        assert session.state(challenge.challenge_id) == AuthState.AUTHENTICATED

    def test_replay_is_consumed(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())
        session.submit(event)

        with pytest.raises(ChallengeConsumed):
            session.submit(event)

        assert session.state(challenge.challenge_id) == AuthState.AUTHENTICATED

    def test_replay_after_expiry_sweep_is_consumed(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())
        session.submit(event)

        clock.advance(61)
        session.sweep_expired()

        with pytest.raises(ChallengeConsumed):
            session.submit(event)

    def test_custom_ttl(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key, ttl_seconds=5)
        assert challenge.expires_at == clock.now + 5

    def test_concurrent_submissions_single_success(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())
        barrier = threading.Barrier(8)
        outcomes = []

        def worker():
            barrier.wait()
            try:
                session.submit(event)
                outcomes.append("ok")
            except ChallengeConsumed:
                outcomes.append("consumed")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("consumed") == 7


# ---------------------------------------------------------------------------
# TestRejections
# ---------------------------------------------------------------------------

class TestRejections:
    """Failures are terminal for the challenge."""

    def test_expired_even_with_valid_signature(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())

        clock.advance(61)

        with pytest.raises(ChallengeExpired):
            session.submit(event)

        assert session.state(challenge.challenge_id) == AuthState.EXPIRED
        with pytest.raises(ChallengeConsumed):
            session.submit(event)

    def test_exactly_at_expiry_still_valid(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())

        clock.advance(60)

        assert session.submit(event).identity == claimant.public_key

    def test_missing_challenge_tag(self, session, claimant):
        event = claimant.sign(22242, 1, [["p", session.server_public_key]])

        with pytest.raises(UnknownChallenge):
            session.submit(event)

    def test_never_issued(self, session, claimant):
        event = claimant.sign(22242, 1, [["p", session.server_public_key], ["challenge", "nope"]])

        with pytest.raises(UnknownChallenge):
            session.submit(event)

    def test_invalidated_challenge_is_unknown(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())

        session.issuer.invalidate(challenge.challenge_id)

        with pytest.raises(UnknownChallenge):
            session.submit(event)
        assert session.state(challenge.challenge_id) == AuthState.REJECTED

    def test_cancel(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())

        session.cancel(challenge.challenge_id)

        assert session.state(challenge.challenge_id) is None
        with pytest.raises(UnknownChallenge):
            session.submit(event)

    def test_wrong_claimant(self, session, claimant, other_key):
        challenge = session.begin(claimant.public_key)
        event = other_key.sign_template(challenge.to_unsigned_event())

        with pytest.raises(ChallengeMismatch, match="claimant"):
            session.submit(event)

        assert session.state(challenge.challenge_id) == AuthState.REJECTED
        with pytest.raises(ChallengeConsumed):
            session.submit(claimant.sign_template(challenge.to_unsigned_event()))

    def test_wrong_server_tag(self, session, claimant, other_key):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign(
            22242,
            challenge.issued_at,
            [["p", other_key.public_key], ["challenge", challenge.challenge_id]],
        )

        with pytest.raises(ChallengeMismatch, match="server"):
            session.submit(event)

    def test_wrong_kind(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        template = challenge.to_unsigned_event()
        event = claimant.sign(1, template.created_at, template.tags, template.content)

        with pytest.raises(ChallengeMismatch, match="kind"):
            session.submit(event)

    def test_bad_signature(self, session, claimant):
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())
        tampered = event.model_copy(update={"content": "something else", "id": None})

        with pytest.raises(SignatureMismatch):
            session.submit(tampered)

        assert session.state(challenge.challenge_id) == AuthState.REJECTED

    def test_verifier_error_propagates(self, server_key, claimant, clock):
        verifier = MagicMock()
        verifier.verify_signature.side_effect = InvalidIdentity("bad")
        session = AuthSession(
            server_public_key=server_key.public_key,
            issuer=ChallengeIssuer(clock=clock),
            verifier=verifier,
        )
        challenge = session.begin(claimant.public_key)

        with pytest.raises(InvalidIdentity):
            session.submit(claimant.sign_template(challenge.to_unsigned_event()))

        assert session.state(challenge.challenge_id) == AuthState.REJECTED

    def test_no_record_on_failure(self, session, claimant, other_key, records):
        challenge = session.begin(claimant.public_key)
        with pytest.raises(ChallengeMismatch):
            session.submit(other_key.sign_template(challenge.to_unsigned_event()))

        assert records.get_auth_record(claimant.public_key) is None
        assert records.get_auth_record(other_key.public_key) is None

    def test_store_failure_is_terminal(self, server_key, claimant, clock):
        records = MagicMock()
        records.save_auth_record.side_effect = RuntimeError("store unavailable")
        session = AuthSession(
            server_public_key=server_key.public_key,
            issuer=ChallengeIssuer(clock=clock),
            records=records,
        )
        challenge = session.begin(claimant.public_key)
        event = claimant.sign_template(challenge.to_unsigned_event())

        with pytest.raises(RuntimeError):
            session.submit(event)

        assert session.state(challenge.challenge_id) == AuthState.REJECTED
        with pytest.raises(ChallengeConsumed):
            session.submit(event)

    def test_unexpected_verifier_error_is_terminal(self, server_key, claimant, clock):
        verifier = MagicMock()
        verifier.verify_signature.side_effect = ValueError("boom")
        session = AuthSession(
            server_public_key=server_key.public_key,
            issuer=ChallengeIssuer(clock=clock),
            verifier=verifier,
        )
        challenge = session.begin(claimant.public_key)

        with pytest.raises(ValueError):
            session.submit(claimant.sign_template(challenge.to_unsigned_event()))

        assert session.state(challenge.challenge_id).is_terminal


class TestSweep:
    """Tests for AuthSession.sweep_expired."""

    def test_forgets_swept_states(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key)

        clock.advance(61)
        assert session.sweep_expired() == 1

        assert session.state(challenge.challenge_id) is None

    def test_keeps_states_of_remembered_challenges(self, session, claimant, clock):
        challenge = session.begin(claimant.public_key)
        session.submit(claimant.sign_template(challenge.to_unsigned_event()))

        clock.advance(61)
        session.sweep_expired()

        assert session.state(challenge.challenge_id) == AuthState.AUTHENTICATED

    def test_begin_forgets_states_inline(self, server_key, claimant, clock):
        session = AuthSession(
            server_public_key=server_key.public_key,
            issuer=ChallengeIssuer(clock=clock, sweep_every=3),
            default_ttl=10,
            sweep_every=3,
        )
        stale = [session.begin(claimant.public_key) for _ in range(2)]

        clock.advance(11)
        fresh = session.begin(claimant.public_key)

        assert all(session.state(c.challenge_id) is None for c in stale)
        assert session.state(fresh.challenge_id) == AuthState.ISSUED
        assert session.issuer.pending_count() == 1
