# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from authgate.domain.users.entities import ArtifactPurpose
from authgate.domain.users.entities import OneTimeArtifact as DomainArtifact
from authgate.domain.users.entities import Session as DomainSession
from authgate.domain.users.entities import Token as DomainToken
from authgate.domain.users.repositories import (
    ArtifactRepository,
    SessionRepository,
    TokenRepository,
)
from authgate.infrastructure.db.models import AccessToken, BrowserSession, OneTimeArtifact
from authgate.infrastructure.unit_of_work import unit_of_work_scope
from authgate.shared.utils.time import ensure_aware


def _session_to_domain(row: BrowserSession) -> DomainSession:
    return DomainSession(
        id=row.id,
        identity_id=row.identity_id,
        digest=row.digest,
        origin=row.origin,
        created_at=ensure_aware(row.created_at),
        last_activity_at=ensure_aware(row.last_activity_at),
        idle_expires_at=ensure_aware(row.idle_expires_at),
        absolute_expires_at=ensure_aware(row.absolute_expires_at),
    )


def _token_to_domain(row: AccessToken) -> DomainToken:
    return DomainToken(
        id=row.id,
        identity_id=row.identity_id,
        name=row.name,
        digest=row.digest,
        abilities=frozenset(row.abilities or ()),
        created_at=ensure_aware(row.created_at),
        expires_at=ensure_aware(row.expires_at),
        revoked_at=ensure_aware(row.revoked_at),
        last_used_at=ensure_aware(row.last_used_at),
    )


def _artifact_to_domain(row: OneTimeArtifact) -> DomainArtifact:
    return DomainArtifact(
        id=row.id,
        identity_id=row.identity_id,
        purpose=ArtifactPurpose(row.purpose),
        digest=row.digest,
        created_at=ensure_aware(row.created_at),
        expires_at=ensure_aware(row.expires_at),
        used_at=ensure_aware(row.used_at),
    )


class SqlAlchemySessionRepository(SessionRepository):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def add(self, session: DomainSession) -> DomainSession:
        with unit_of_work_scope(self._session_factory) as db:
            row = BrowserSession(
                identity_id=session.identity_id,
                digest=session.digest,
                origin=session.origin,
                created_at=session.created_at,
                last_activity_at=session.last_activity_at,
                idle_expires_at=session.idle_expires_at,
                absolute_expires_at=session.absolute_expires_at,
            )
            db.add(row)
            db.flush()
            return _session_to_domain(row)

    def find_by_digest(self, digest: str) -> DomainSession | None:
        with unit_of_work_scope(self._session_factory) as db:
            row = db.scalars(select(BrowserSession).where(BrowserSession.digest == digest)).first()
            return _session_to_domain(row) if row else None

    def touch(
        self, session_id: int, *, last_activity_at: datetime, idle_expires_at: datetime
    ) -> None:
        with unit_of_work_scope(self._session_factory) as db:
            db.execute(
                update(BrowserSession)
                .where(BrowserSession.id == session_id)
                .values(last_activity_at=last_activity_at, idle_expires_at=idle_expires_at)
            )

    def delete(self, session_id: int) -> None:
        with unit_of_work_scope(self._session_factory) as db:
            db.execute(delete(BrowserSession).where(BrowserSession.id == session_id))

    def delete_for_identity(self, identity_id: int) -> int:
        with unit_of_work_scope(self._session_factory) as db:
            result = db.execute(
                delete(BrowserSession).where(BrowserSession.identity_id == identity_id)
            )
            return result.rowcount or 0

    def delete_expired(self, now: datetime) -> int:
        with unit_of_work_scope(self._session_factory) as db:
            result = db.execute(
                delete(BrowserSession).where(
                    or_(
                        BrowserSession.idle_expires_at <= now,
                        BrowserSession.absolute_expires_at <= now,
                    )
                )
            )
            return result.rowcount or 0


class SqlAlchemyTokenRepository(TokenRepository):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def add(self, token: DomainToken) -> DomainToken:
        with unit_of_work_scope(self._session_factory) as db:
            row = AccessToken(
                identity_id=token.identity_id,
                name=token.name,
                digest=token.digest,
                abilities=sorted(token.abilities),
                created_at=token.created_at,
                expires_at=token.expires_at,
            )
            db.add(row)
            db.flush()
            return _token_to_domain(row)

    def find_by_digest(self, digest: str) -> DomainToken | None:
        with unit_of_work_scope(self._session_factory) as db:
            row = db.scalars(select(AccessToken).where(AccessToken.digest == digest)).first()
            return _token_to_domain(row) if row else None

    def find_by_id(self, token_id: int) -> DomainToken | None:
        with unit_of_work_scope(self._session_factory) as db:
            row = db.get(AccessToken, token_id)
            return _token_to_domain(row) if row else None

    def list_for_identity(self, identity_id: int) -> Sequence[DomainToken]:
        with unit_of_work_scope(self._session_factory) as db:
            rows = db.scalars(
                select(AccessToken)
                .where(AccessToken.identity_id == identity_id)
                .order_by(AccessToken.id.asc())
            ).all()
            return [_token_to_domain(row) for row in rows]

    def mark_used(self, token_id: int, at: datetime) -> None:
        with unit_of_work_scope(self._session_factory) as db:
            db.execute(update(AccessToken).where(AccessToken.id == token_id).values(last_used_at=at))

    def revoke(self, token_id: int, at: datetime) -> None:
        with unit_of_work_scope(self._session_factory) as db:
            db.execute(
                update(AccessToken)
                .where(AccessToken.id == token_id, AccessToken.revoked_at.is_(None))
                .values(revoked_at=at)
            )

    def revoke_for_identity(self, identity_id: int, at: datetime) -> int:
        with unit_of_work_scope(self._session_factory) as db:
            result = db.execute(
                update(AccessToken)
                .where(AccessToken.identity_id == identity_id, AccessToken.revoked_at.is_(None))
                .values(revoked_at=at)
            )
            return result.rowcount or 0

    def delete_expired(self, now: datetime) -> int:
        with unit_of_work_scope(self._session_factory) as db:
            result = db.execute(
                delete(AccessToken).where(
                    AccessToken.expires_at.is_not(None), AccessToken.expires_at <= now
                )
            )
            return result.rowcount or 0


class SqlAlchemyArtifactRepository(ArtifactRepository):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def add(self, artifact: DomainArtifact) -> DomainArtifact:
        with unit_of_work_scope(self._session_factory) as db:
            row = OneTimeArtifact(
                identity_id=artifact.identity_id,
                purpose=artifact.purpose.value,
                digest=artifact.digest,
                created_at=artifact.created_at,
                expires_at=artifact.expires_at,
            )
            db.add(row)
            db.flush()
            return _artifact_to_domain(row)

    def consume(
        self, purpose: ArtifactPurpose, digest: str, now: datetime
    ) -> DomainArtifact | None:
        with unit_of_work_scope(self._session_factory) as db:
            # Conditional UPDATE: of two concurrent consumers only one matches.
            result = db.execute(
                update(OneTimeArtifact)
                .where(
                    OneTimeArtifact.digest == digest,
                    OneTimeArtifact.purpose == purpose.value,
                    OneTimeArtifact.used_at.is_(None),
                    OneTimeArtifact.expires_at > now,
                )
                .values(used_at=now)
            )
            if result.rowcount != 1:
                return None
            row = db.scalars(select(OneTimeArtifact).where(OneTimeArtifact.digest == digest)).one()
            return _artifact_to_domain(row)

    def invalidate_for_identity(
        self, identity_id: int, purpose: ArtifactPurpose, now: datetime
    ) -> None:
        with unit_of_work_scope(self._session_factory) as db:
            db.execute(
                update(OneTimeArtifact)
                .where(
                    OneTimeArtifact.identity_id == identity_id,
                    OneTimeArtifact.purpose == purpose.value,
                    OneTimeArtifact.used_at.is_(None),
                )
                .values(used_at=now)
            )


__all__ = [
    "SqlAlchemyArtifactRepository",
    "SqlAlchemySessionRepository",
    "SqlAlchemyTokenRepository",
]
