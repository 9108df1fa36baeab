# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import timedelta

from authgate.domain.users.entities import (
    AuthContext,
    AuthFlow,
    Identity,
    Session,
    SessionHandle,
)
from authgate.domain.users.exceptions import (
    SessionExpiredError,
    SessionInvalidError,
    UntrustedOriginError,
)
from authgate.domain.users.repositories import IdentityRepository, SessionRepository
from authgate.shared.logging import logger
from authgate.shared.utils.time import Clock, utcnow

from .artifacts import lookup_digest, new_secret
from .origin import is_trusted_origin, origin_host


class SessionIssuer:
    """Cookie-backed server sessions for trusted browser origins.

    Idle expiry slides forward on every successful resolve but never past
    the absolute lifetime fixed at issue time.
    """

    def __init__(
        self,
        *,
        sessions: SessionRepository,
        identities: IdentityRepository,
        stateful_domains: Iterable[str],
        idle_timeout: timedelta,
        max_lifetime: timedelta,
        clock: Clock = utcnow,
    ) -> None:
        self._sessions = sessions
        self._identities = identities
        self._stateful_domains = tuple(stateful_domains)
        self._idle_timeout = idle_timeout
        self._max_lifetime = max_lifetime
        self._clock = clock

    def is_trusted(self, origin: str | None) -> bool:
        return is_trusted_origin(origin, self._stateful_domains)

    def issue(self, identity: Identity, origin: str | None) -> SessionHandle:
        if not self.is_trusted(origin):
            logger.warning(f"sessions: refused untrusted origin={origin_host(origin)}")
            raise UntrustedOriginError()

        value = new_secret()
        now = self._clock()
        absolute = now + self._max_lifetime
        session = self._sessions.add(
            Session(
                id=0,
                identity_id=identity.id,
                digest=lookup_digest(value),
                origin=origin_host(origin) or "",
                created_at=now,
                last_activity_at=now,
                idle_expires_at=min(now + self._idle_timeout, absolute),
                absolute_expires_at=absolute,
            )
        )
        logger.info(f"sessions: issued session={session.id} identity={identity.id}")
        return SessionHandle(session=session, value=value)

    def resolve(self, handle: str) -> AuthContext:
        session = self._sessions.find_by_digest(lookup_digest(handle or ""))
        if session is None:
            logger.info("sessions: rejected kind=session_invalid")
            raise SessionInvalidError()

        now = self._clock()
        if session.is_expired(now):
            self._sessions.delete(session.id)
            logger.info(f"sessions: rejected kind=session_expired session={session.id}")
            raise SessionExpiredError()

        identity = self._identities.find_by_id(session.identity_id)
        if identity is None or not identity.is_active:
            self._sessions.delete(session.id)
            logger.info(f"sessions: rejected kind=session_invalid session={session.id}")
            raise SessionInvalidError()

        idle_expires_at = min(now + self._idle_timeout, session.absolute_expires_at)
        self._sessions.touch(session.id, last_activity_at=now, idle_expires_at=idle_expires_at)
        refreshed = replace(session, last_activity_at=now, idle_expires_at=idle_expires_at)
        return AuthContext(identity=identity, flow=AuthFlow.SESSION, session=refreshed)

    def revoke(self, handle: str) -> None:
        session = self._sessions.find_by_digest(lookup_digest(handle or ""))
        if session is None:
            return
        self._sessions.delete(session.id)
        logger.info(f"sessions: revoked session={session.id}")

    def revoke_all(self, identity: Identity) -> int:
        removed = self._sessions.delete_for_identity(identity.id)
        logger.info(f"sessions: revoked {removed} sessions identity={identity.id}")
        return removed

    def sweep(self) -> int:
        return self._sessions.delete_expired(self._clock())


__all__ = ["SessionIssuer"]
