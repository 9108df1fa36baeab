from __future__ import annotations

import pytest
from conftest import (
    DeterministicHasher,
    FakeClock,
    InMemoryIdentityRepository,
    InMemorySessionRepository,
    InMemoryTokenRepository,
)

from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.password_hashing import WerkzeugPasswordHasher
from authgate.domain.users.entities import Role
from authgate.domain.users.exceptions import (
    DuplicateEmailError,
    IdentityNotFoundError,
    InvalidCredentialsError,
)
from authgate.domain.users.policies import has_role


@pytest.fixture()
def store(clock: FakeClock) -> CredentialStore:
    identities = InMemoryIdentityRepository(InMemorySessionRepository(), InMemoryTokenRepository())
    return CredentialStore(identities=identities, password_hasher=DeterministicHasher(), clock=clock)


def test_create_identity_normalises_and_hashes(store: CredentialStore, clock: FakeClock) -> None:
    identity = store.create_identity(
        email=" Alice@Example.COM", password="pw-123456789A!", display_name=" Alice "
    )

    assert identity.email == "alice@example.com"
    assert identity.password_hash == "hashed:pw-123456789A!"
    assert identity.display_name == "Alice"
    assert identity.role is Role.STANDARD
    assert identity.created_at == clock.now


def test_create_identity_rejects_duplicates(store: CredentialStore) -> None:
    store.create_identity(email="alice@example.com", password="x", display_name="A")

    with pytest.raises(DuplicateEmailError):
        store.create_identity(email="ALICE@example.com", password="y", display_name="B")


def test_verify_password(store: CredentialStore) -> None:
    created = store.create_identity(email="alice@example.com", password="right", display_name="A")

    assert store.verify_password("ALICE@example.com", "right").id == created.id
    with pytest.raises(InvalidCredentialsError):
        store.verify_password("alice@example.com", "wrong")
    with pytest.raises(InvalidCredentialsError):
        store.verify_password("ghost@example.com", "right")


def test_unknown_email_costs_the_same_as_a_wrong_password(clock: FakeClock) -> None:
    hasher = DeterministicHasher()
    identities = InMemoryIdentityRepository(InMemorySessionRepository(), InMemoryTokenRepository())
    store = CredentialStore(identities=identities, password_hasher=hasher, clock=clock)
    store.create_identity(email="alice@example.com", password="right", display_name="A")
    hashes_before = hasher.hash_calls

    with pytest.raises(InvalidCredentialsError):
        store.verify_password("ghost@example.com", "right")
    unknown_cost = (hasher.hash_calls - hashes_before, hasher.verify_calls)
    with pytest.raises(InvalidCredentialsError):
        store.verify_password("alice@example.com", "wrong")

    assert unknown_cost == (0, 1)
    assert (hasher.hash_calls - hashes_before, hasher.verify_calls) == (0, 2)


def test_mark_verified_is_set_once(store: CredentialStore, clock: FakeClock) -> None:
    identity = store.create_identity(email="alice@example.com", password="x", display_name="A")
    verified_at = clock.now
    verified = store.mark_verified(identity)
    clock.advance(60)

    again = store.mark_verified(verified)

    assert verified.email_verified_at == verified_at
    assert again.email_verified_at == verified_at


def test_get_unknown_identity(store: CredentialStore) -> None:
    with pytest.raises(IdentityNotFoundError):
        store.get(404)


def test_has_role_ranks_and_respects_disable(store: CredentialStore) -> None:
    identity = store.create_identity(email="alice@example.com", password="x", display_name="A")
    admin = store.grant_role(identity, Role.ADMIN)

    assert has_role(identity, Role.STANDARD)
    assert not has_role(identity, Role.ADMIN)
    assert has_role(admin, Role.ADMIN)
    assert has_role(admin, Role.STANDARD)
    assert not has_role(store.disable(admin), Role.ADMIN)


def test_werkzeug_hasher_round_trip() -> None:
    hasher = WerkzeugPasswordHasher(method="pbkdf2:sha256:1000")

    hashed = hasher.hash("Correct-Horse-42")

    assert hashed.startswith("pbkdf2:sha256:1000$")
    assert hasher.verify("Correct-Horse-42", hashed)
    assert not hasher.verify("wrong", hashed)
    assert not hasher.verify("Correct-Horse-42", "not-a-hash")
