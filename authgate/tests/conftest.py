from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from authgate.application.gateway import AuthGateway
from authgate.application.policy import GatewayPolicy
from authgate.domain.users.entities import (
    ArtifactPurpose,
    Identity,
    OneTimeArtifact,
    Session,
    Token,
)
from authgate.domain.users.exceptions import DuplicateEmailError
from authgate.domain.users.repositories import (
    ArtifactRepository,
    IdentityRepository,
    NotificationDispatcher,
    PasswordHasher,
    SessionRepository,
    TokenRepository,
)
from authgate.infrastructure.auth.rate_limiter import InMemoryRateLimiter

TRUSTED_ORIGIN = "https://app.example.com"
UNTRUSTED_ORIGIN = "https://other.example.com"
STRONG_PASSWORD = "Correct-Horse-42"
OTHER_PASSWORD = "Battery-Staple-77"


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.now.timestamp()

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemorySessionRepository(SessionRepository):
    def __init__(self) -> None:
        self._sessions: dict[int, Session] = {}
        self._seq = 1
        self._lock = threading.Lock()

    def add(self, session: Session) -> Session:
        with self._lock:
            stored = replace(session, id=self._seq)
            self._seq += 1
            self._sessions[stored.id] = stored
            return stored

    def find_by_digest(self, digest: str) -> Session | None:
        return next((s for s in self._sessions.values() if s.digest == digest), None)

    def touch(
        self, session_id: int, *, last_activity_at: datetime, idle_expires_at: datetime
    ) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions[session_id] = replace(
                session, last_activity_at=last_activity_at, idle_expires_at=idle_expires_at
            )

    def delete(self, session_id: int) -> None:
        self._sessions.pop(session_id, None)

    def delete_for_identity(self, identity_id: int) -> int:
        doomed = [sid for sid, s in self._sessions.items() if s.identity_id == identity_id]
        for sid in doomed:
            del self._sessions[sid]
        return len(doomed)

    def delete_expired(self, now: datetime) -> int:
        doomed = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for sid in doomed:
            del self._sessions[sid]
        return len(doomed)

    def count(self) -> int:
        return len(self._sessions)


class InMemoryTokenRepository(TokenRepository):
    def __init__(self) -> None:
        self._tokens: dict[int, Token] = {}
        self._seq = 1
        self._lock = threading.Lock()

    def add(self, token: Token) -> Token:
        with self._lock:
            stored = replace(token, id=self._seq)
            self._seq += 1
            self._tokens[stored.id] = stored
            return stored

    def find_by_digest(self, digest: str) -> Token | None:
        return next((t for t in self._tokens.values() if t.digest == digest), None)

    def find_by_id(self, token_id: int) -> Token | None:
        return self._tokens.get(token_id)

    def list_for_identity(self, identity_id: int) -> Sequence[Token]:
        return [t for t in self._tokens.values() if t.identity_id == identity_id]

    def mark_used(self, token_id: int, at: datetime) -> None:
        self._tokens[token_id] = replace(self._tokens[token_id], last_used_at=at)

    def revoke(self, token_id: int, at: datetime) -> None:
        token = self._tokens.get(token_id)
        if token is not None and token.revoked_at is None:
            self._tokens[token_id] = replace(token, revoked_at=at)

    def revoke_for_identity(self, identity_id: int, at: datetime) -> int:
        revoked = 0
        for token in list(self._tokens.values()):
            if token.identity_id == identity_id and token.revoked_at is None:
                self._tokens[token.id] = replace(token, revoked_at=at)
                revoked += 1
        return revoked

    def delete_expired(self, now: datetime) -> int:
        doomed = [tid for tid, t in self._tokens.items() if t.is_expired(now)]
        for tid in doomed:
            del self._tokens[tid]
        return len(doomed)


class InMemoryIdentityRepository(IdentityRepository):
    def __init__(
        self, sessions: InMemorySessionRepository, tokens: InMemoryTokenRepository
    ) -> None:
        self._identities: dict[int, Identity] = {}
        self._seq = 1
        self._sessions = sessions
        self._tokens = tokens
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> Identity | None:
        return next((i for i in self._identities.values() if i.email == email), None)

    def find_by_id(self, identity_id: int) -> Identity | None:
        return self._identities.get(identity_id)

    def add(self, identity: Identity) -> Identity:
        with self._lock:
            if self.find_by_email(identity.email) is not None:
                raise DuplicateEmailError()
            stored = replace(identity, id=self._seq)
            self._seq += 1
            self._identities[stored.id] = stored
            return stored

    def update(self, identity: Identity) -> Identity:
        self._identities[identity.id] = identity
        return identity

    def replace_password(
        self, identity_id: int, password_hash: str, *, revoked_at: datetime
    ) -> None:
        with self._lock:
            self._identities[identity_id] = replace(
                self._identities[identity_id], password_hash=password_hash
            )
            self._sessions.delete_for_identity(identity_id)
            self._tokens.revoke_for_identity(identity_id, revoked_at)

    def list(self, *, limit: int, offset: int) -> Sequence[Identity]:
        ordered = sorted(self._identities.values(), key=lambda i: i.id)
        return ordered[offset : offset + limit]


class InMemoryArtifactRepository(ArtifactRepository):
    def __init__(self) -> None:
        self._artifacts: dict[int, OneTimeArtifact] = {}
        self._seq = 1
        self._lock = threading.Lock()

    def add(self, artifact: OneTimeArtifact) -> OneTimeArtifact:
        stored = replace(artifact, id=self._seq)
        self._seq += 1
        self._artifacts[stored.id] = stored
        return stored

    def consume(
        self, purpose: ArtifactPurpose, digest: str, now: datetime
    ) -> OneTimeArtifact | None:
        with self._lock:
            for artifact in self._artifacts.values():
                if artifact.digest == digest and artifact.purpose == purpose:
                    if not artifact.is_usable(now):
                        return None
                    used = replace(artifact, used_at=now)
                    self._artifacts[used.id] = used
                    return used
            return None

    def invalidate_for_identity(
        self, identity_id: int, purpose: ArtifactPurpose, now: datetime
    ) -> None:
        with self._lock:
            for artifact in list(self._artifacts.values()):
                if (
                    artifact.identity_id == identity_id
                    and artifact.purpose == purpose
                    and artifact.used_at is None
                ):
                    self._artifacts[artifact.id] = replace(artifact, used_at=now)


class DeterministicHasher(PasswordHasher):
    def __init__(self) -> None:
        self.hash_calls = 0
        self.verify_calls = 0

    def hash(self, password: str) -> str:
        self.hash_calls += 1
        return f"hashed:{password}"

    def verify(self, password: str, hashed: str) -> bool:
        self.verify_calls += 1
        return hashed == f"hashed:{password}"


@dataclass
class SentNotification:
    identity: Identity
    template_kind: str
    payload: Mapping[str, Any]


@dataclass
class RecordingNotifier(NotificationDispatcher):
    sent: list[SentNotification] = field(default_factory=list)

    def send(self, identity: Identity, template_kind: str, payload: Mapping[str, Any]) -> None:
        self.sent.append(SentNotification(identity, template_kind, dict(payload)))

    def last(self, template_kind: str) -> SentNotification:
        return next(n for n in reversed(self.sent) if n.template_kind == template_kind)


@dataclass
class GatewayHarness:
    gateway: AuthGateway
    clock: FakeClock
    identities: InMemoryIdentityRepository
    sessions: InMemorySessionRepository
    tokens: InMemoryTokenRepository
    artifacts: InMemoryArtifactRepository
    hasher: DeterministicHasher
    limiter: InMemoryRateLimiter
    notifier: RecordingNotifier

    def register(self, email: str = "alice@example.com", password: str = STRONG_PASSWORD) -> Identity:
        return self.gateway.register(
            email=email, password=password, display_name=email.split("@")[0].title()
        ).identity


def build_harness(policy: GatewayPolicy | None = None) -> GatewayHarness:
    policy = policy or GatewayPolicy(stateful_domains=("app.example.com",))
    clock = FakeClock()
    sessions = InMemorySessionRepository()
    tokens = InMemoryTokenRepository()
    identities = InMemoryIdentityRepository(sessions, tokens)
    artifacts = InMemoryArtifactRepository()
    hasher = DeterministicHasher()
    limiter = InMemoryRateLimiter(policy.rate_limits, clock=clock.monotonic)
    notifier = RecordingNotifier()
    gateway = AuthGateway.build(
        policy,
        identities=identities,
        sessions=sessions,
        tokens=tokens,
        artifacts=artifacts,
        password_hasher=hasher,
        limiter=limiter,
        notifier=notifier,
        clock=clock,
    )
    return GatewayHarness(
        gateway=gateway,
        clock=clock,
        identities=identities,
        sessions=sessions,
        tokens=tokens,
        artifacts=artifacts,
        hasher=hasher,
        limiter=limiter,
        notifier=notifier,
    )


@pytest.fixture()
def harness() -> GatewayHarness:
    return build_harness()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
