import hashlib
import time

import pytest

from nostr_crypto.events import create_event
from nostr_crypto.keys import derive_public_key
from nostr_crypto.signing import sign_event


def _key(label: str) -> str:
    return hashlib.sha256(label.encode()).hexdigest()


@pytest.fixture
def alice_sk() -> str:
    return _key("alice")


@pytest.fixture
def bob_sk() -> str:
    return _key("bob")


@pytest.fixture
def eve_sk() -> str:
    return _key("eve")


@pytest.fixture
def alice_pub(alice_sk):
    return derive_public_key(alice_sk)


@pytest.fixture
def bob_pub(bob_sk):
    return derive_public_key(bob_sk)


@pytest.fixture
def now() -> int:
    return int(time.time())


@pytest.fixture
def signed_note(alice_sk, now):
    return sign_event(create_event(kind=1, content="Hello, Nostr!", tags=[], created_at=now), alice_sk)
