# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass

from authgate.application.interfaces import RateLimiter
from authgate.application.policy import LOGIN
from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.session_issuer import SessionIssuer
from authgate.application.services.token_issuer import TokenIssuer
from authgate.domain.users.entities import AuthFlow, Identity, IssuedToken, SessionHandle
from authgate.domain.users.policies import normalize_email, rate_limit_key
from authgate.shared.logging import logger
from authgate.shared.utils.locks import KeyedLocks


@dataclass(slots=True, frozen=True)
class LoginResult:
    identity: Identity
    flow: AuthFlow
    session: SessionHandle | None = None
    token: IssuedToken | None = None


class LoginUserUseCase:
    """Received -> RateChecked -> CredentialVerified -> ArtifactIssued."""

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        sessions: SessionIssuer,
        tokens: TokenIssuer,
        limiter: RateLimiter,
        locks: KeyedLocks,
    ) -> None:
        self._credentials = credentials
        self._sessions = sessions
        self._tokens = tokens
        self._limiter = limiter
        self._locks = locks

    def execute(
        self,
        email: str,
        password: str,
        *,
        origin: str | None,
        client_address: str | None,
        device_name: str = "login",
    ) -> LoginResult:
        key = rate_limit_key(email, client_address)
        # Reserves the attempt before any password comparison.
        self._limiter.hit(LOGIN, key)

        with self._locks.hold(identity_lock_key(email)):
            identity = self._credentials.verify_password(email, password)
            self._limiter.reset(LOGIN, key)

            if self._sessions.is_trusted(origin):
                handle = self._sessions.issue(identity, origin)
                logger.info(f"auth.login: session issued identity={identity.id}")
                return LoginResult(identity=identity, flow=AuthFlow.SESSION, session=handle)

            issued = self._tokens.issue(identity, name=device_name)
            logger.info(f"auth.login: token issued identity={identity.id}")
            return LoginResult(identity=identity, flow=AuthFlow.TOKEN, token=issued)


def identity_lock_key(email: str) -> str:
    return f"identity:{normalize_email(email)}"


__all__ = ["LoginResult", "LoginUserUseCase", "identity_lock_key"]
