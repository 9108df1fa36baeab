# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from .entities import ArtifactPurpose, Identity, OneTimeArtifact, Session, Token


class IdentityRepository(Protocol):
    def find_by_email(self, email: str) -> Identity | None: ...
    def find_by_id(self, identity_id: int) -> Identity | None: ...
    def add(self, identity: Identity) -> Identity: ...
    def update(self, identity: Identity) -> Identity: ...
    def replace_password(
        self, identity_id: int, password_hash: str, *, revoked_at: datetime
    ) -> None: ...
    def list(self, *, limit: int, offset: int) -> Sequence[Identity]: ...


class SessionRepository(Protocol):
    def add(self, session: Session) -> Session: ...
    def find_by_digest(self, digest: str) -> Session | None: ...
    def touch(
        self, session_id: int, *, last_activity_at: datetime, idle_expires_at: datetime
    ) -> None: ...
    def delete(self, session_id: int) -> None: ...
    def delete_for_identity(self, identity_id: int) -> int: ...
    def delete_expired(self, now: datetime) -> int: ...


class TokenRepository(Protocol):
    def add(self, token: Token) -> Token: ...
    def find_by_digest(self, digest: str) -> Token | None: ...
    def find_by_id(self, token_id: int) -> Token | None: ...
    def list_for_identity(self, identity_id: int) -> Sequence[Token]: ...
    def mark_used(self, token_id: int, at: datetime) -> None: ...
    def revoke(self, token_id: int, at: datetime) -> None: ...
    def revoke_for_identity(self, identity_id: int, at: datetime) -> int: ...
    def delete_expired(self, now: datetime) -> int: ...


class ArtifactRepository(Protocol):
    def add(self, artifact: OneTimeArtifact) -> OneTimeArtifact: ...
    def consume(
        self, purpose: ArtifactPurpose, digest: str, now: datetime
    ) -> OneTimeArtifact | None: ...
    def invalidate_for_identity(
        self, identity_id: int, purpose: ArtifactPurpose, now: datetime
    ) -> None: ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...
    def verify(self, password: str, hashed: str) -> bool: ...


class NotificationDispatcher(Protocol):
    def send(
        self, identity: Identity, template_kind: str, payload: Mapping[str, Any]
    ) -> None: ...
