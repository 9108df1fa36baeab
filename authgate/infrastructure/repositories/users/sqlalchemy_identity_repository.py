# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authgate.domain.users.entities import Identity as DomainIdentity
from authgate.domain.users.entities import Profile, Role
from authgate.domain.users.exceptions import DuplicateEmailError
from authgate.domain.users.repositories import IdentityRepository
from authgate.infrastructure.db.models import AccessToken, BrowserSession, Identity
from authgate.infrastructure.unit_of_work import unit_of_work_scope
from authgate.shared.utils.time import ensure_aware, utcnow


def _to_domain(row: Identity) -> DomainIdentity:
    return DomainIdentity(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        display_name=row.display_name,
        role=Role(row.role),
        profile=Profile(phone=row.phone, address=row.address, locale=row.locale),
        provenance=row.provenance,
        email_verified_at=ensure_aware(row.email_verified_at),
        disabled_at=ensure_aware(row.disabled_at),
        created_at=ensure_aware(row.created_at),
    )


def _apply(row: Identity, identity: DomainIdentity) -> None:
    row.email = identity.email
    row.password_hash = identity.password_hash
    row.display_name = identity.display_name
    row.role = identity.role.value
    row.phone = identity.profile.phone
    row.address = identity.profile.address
    row.locale = identity.profile.locale
    row.provenance = identity.provenance
    row.email_verified_at = identity.email_verified_at
    row.disabled_at = identity.disabled_at


class SqlAlchemyIdentityRepository(IdentityRepository):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_by_email(self, email: str) -> DomainIdentity | None:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.scalars(select(Identity).where(Identity.email == email)).first()
            return _to_domain(row) if row else None

    def find_by_id(self, identity_id: int) -> DomainIdentity | None:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.get(Identity, identity_id)
            return _to_domain(row) if row else None

    def add(self, identity: DomainIdentity) -> DomainIdentity:
        try:
            with unit_of_work_scope(self._session_factory) as session:
                row = Identity(created_at=identity.created_at or utcnow())
                _apply(row, identity)
                session.add(row)
                session.flush()
                return _to_domain(row)
        except IntegrityError as exc:
            # Unique index on email closes the find-then-insert race.
            raise DuplicateEmailError() from exc

    def update(self, identity: DomainIdentity) -> DomainIdentity:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.get(Identity, identity.id)
            if row is None:
                raise LookupError(f"identity {identity.id} does not exist")
            _apply(row, identity)
            session.flush()
            return _to_domain(row)

    def replace_password(
        self, identity_id: int, password_hash: str, *, revoked_at: datetime
    ) -> None:
        with unit_of_work_scope(self._session_factory) as session:
            session.execute(
                update(Identity)
                .where(Identity.id == identity_id)
                .values(password_hash=password_hash)
            )
            session.execute(
                delete(BrowserSession).where(BrowserSession.identity_id == identity_id)
            )
            session.execute(
                update(AccessToken)
                .where(AccessToken.identity_id == identity_id, AccessToken.revoked_at.is_(None))
                .values(revoked_at=revoked_at)
            )

    def list(self, *, limit: int, offset: int) -> Sequence[DomainIdentity]:
        with unit_of_work_scope(self._session_factory) as session:
            rows = session.scalars(
                select(Identity).order_by(Identity.id.asc()).limit(limit).offset(offset)
            ).all()
            return [_to_domain(row) for row in rows]


__all__ = ["SqlAlchemyIdentityRepository"]
