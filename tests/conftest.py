"""Global test configuration for Infernet Core."""

import os

import pytest
from coincurve import PrivateKey, PublicKeyXOnly

from infernet_core.auth.verifier import compute_event_id
from infernet_core.models.identity import SignedEvent, UnsignedEvent

SERVER_SECRET = bytes.fromhex("11" * 32)
CLAIMANT_SECRET = bytes.fromhex("22" * 32)
OTHER_SECRET = bytes.fromhex("33" * 32)


class NostrKey:
    """Test keypair that signs events the way a NIP-07 extension would."""

    def __init__(self, secret: bytes) -> None:
        self._private = PrivateKey(secret)
        self.public_key = PublicKeyXOnly.from_secret(secret).format().hex()

    def sign(
        self,
        kind: int,
        created_at: int,
        tags: list[list[str]],
        content: str = "",
    ) -> SignedEvent:
        draft = SignedEvent(
            kind=kind,
            created_at=created_at,
            tags=tags,
            content=content,
            sig="0" * 128,
            pubkey=self.public_key,
        )
        event_id = compute_event_id(draft)
        signature = self._private.sign_schnorr(bytes.fromhex(event_id))
        return draft.model_copy(update={"id": event_id, "signature": signature.hex()})

    def sign_template(self, template: UnsignedEvent) -> SignedEvent:
        return self.sign(template.kind, template.created_at, template.tags, template.content)


class FakeClock:
    """Settable unix-seconds clock."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


SERVER_KEY = NostrKey(SERVER_SECRET)


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Set environment variables for Settings validation.

    Only sets values that aren't already present, so real env vars take
    precedence.
    """
    defaults = {
        "SERVER_PUBLIC_KEY": SERVER_KEY.public_key,
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    # Clear the lru_cache on get_settings so it picks up the new env vars
    from infernet_core.config import get_settings
    get_settings.cache_clear()

    yield

    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


@pytest.fixture
def server_key() -> NostrKey:
    return SERVER_KEY


@pytest.fixture
def claimant() -> NostrKey:
    return NostrKey(CLAIMANT_SECRET)


@pytest.fixture
def other_key() -> NostrKey:
    return NostrKey(OTHER_SECRET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
