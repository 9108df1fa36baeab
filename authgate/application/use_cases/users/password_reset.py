# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import timedelta

from authgate.application.interfaces import RateLimiter
from authgate.application.notifications import PASSWORD_CHANGED, PASSWORD_RESET
from authgate.application.policy import PASSWORD_RESET as PASSWORD_RESET_ACTION
from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.one_time_artifacts import OneTimeArtifactService
from authgate.domain.users.entities import ArtifactPurpose, Identity
from authgate.domain.users.policies import rate_limit_key
from authgate.domain.users.repositories import NotificationDispatcher
from authgate.shared.logging import logger
from authgate.shared.utils.locks import KeyedLocks

from .login_user import identity_lock_key


class RequestPasswordResetUseCase:
    """Same outcome whether or not the email belongs to an account."""

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        artifacts: OneTimeArtifactService,
        notifier: NotificationDispatcher,
        limiter: RateLimiter,
        ttl: timedelta,
    ) -> None:
        self._credentials = credentials
        self._artifacts = artifacts
        self._notifier = notifier
        self._limiter = limiter
        self._ttl = ttl

    def execute(self, email: str, client_address: str | None) -> None:
        self._limiter.hit(PASSWORD_RESET_ACTION, rate_limit_key(email, client_address))

        identity = self._credentials.find_by_email(email)
        if identity is None or not identity.is_active:
            logger.info("auth.password_reset: request for unknown or disabled account")
            return

        raw = self._artifacts.issue(identity, ArtifactPurpose.PASSWORD_RESET, self._ttl)
        self._notifier.send(
            identity,
            PASSWORD_RESET,
            {"token": raw, "expires_in": int(self._ttl.total_seconds())},
        )


class ResetPasswordUseCase:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        artifacts: OneTimeArtifactService,
        notifier: NotificationDispatcher,
        locks: KeyedLocks,
    ) -> None:
        self._credentials = credentials
        self._artifacts = artifacts
        self._notifier = notifier
        self._locks = locks

    def execute(self, artifact: str, new_password: str) -> Identity:
        consumed = self._artifacts.consume(ArtifactPurpose.PASSWORD_RESET, artifact)
        identity = self._credentials.get(consumed.identity_id)

        # Password swap and credential revocation land together; a racing
        # login for the same identity waits on this lock.
        with self._locks.hold(identity_lock_key(identity.email)):
            self._credentials.update_password(identity, new_password)

        self._notifier.send(identity, PASSWORD_CHANGED, {})
        logger.info(f"auth.password_reset: completed identity={identity.id}")
        return identity


__all__ = ["RequestPasswordResetUseCase", "ResetPasswordUseCase"]
