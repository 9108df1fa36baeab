# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class Role(StrEnum):
    STANDARD = "standard"
    ADMIN = "admin"


class AuthFlow(StrEnum):
    SESSION = "session"
    TOKEN = "token"


class ArtifactPurpose(StrEnum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


@dataclass(slots=True, frozen=True)
class Profile:
    phone: str | None = None
    address: str | None = None
    locale: str | None = None


@dataclass(slots=True, frozen=True)
class Identity:
    """One account. Email is always stored lower-cased."""

    id: int
    email: str
    password_hash: str
    display_name: str
    role: Role = Role.STANDARD
    profile: Profile = field(default_factory=Profile)
    provenance: str = "registration"
    email_verified_at: datetime | None = None
    disabled_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def is_active(self) -> bool:
        return self.disabled_at is None


@dataclass(slots=True, frozen=True)
class Session:
    id: int
    identity_id: int
    digest: str
    origin: str
    created_at: datetime
    last_activity_at: datetime
    idle_expires_at: datetime
    absolute_expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.idle_expires_at or now >= self.absolute_expires_at


@dataclass(slots=True, frozen=True)
class Token:
    id: int
    identity_id: int
    name: str
    digest: str
    abilities: frozenset[str]
    created_at: datetime
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    last_used_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def can(self, ability: str) -> bool:
        # An empty ability set grants full access.
        if not self.abilities or "*" in self.abilities:
            return True
        return ability in self.abilities


@dataclass(slots=True, frozen=True)
class OneTimeArtifact:
    id: int
    identity_id: int
    purpose: ArtifactPurpose
    digest: str
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None

    def is_usable(self, now: datetime) -> bool:
        return self.used_at is None and now < self.expires_at


@dataclass(slots=True)
class RateLimitBucket:
    """Attempt counter for one (action, key) pair within a fixed window."""

    count: int
    window_start: float

    def is_expired(self, now: float, window_seconds: float) -> bool:
        return now - self.window_start >= window_seconds


@dataclass(slots=True, frozen=True)
class SessionHandle:
    session: Session
    value: str


@dataclass(slots=True, frozen=True)
class IssuedToken:
    token: Token
    plain_text: str


@dataclass(slots=True, frozen=True)
class Credential:
    flow: AuthFlow
    value: str


@dataclass(slots=True, frozen=True)
class AuthContext:
    identity: Identity
    flow: AuthFlow
    session: Session | None = None
    token: Token | None = None

    def can(self, ability: str) -> bool:
        if self.token is None:
            return True
        return self.token.can(ability)
