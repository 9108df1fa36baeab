# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import timedelta

from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.one_time_artifacts import OneTimeArtifactService
from authgate.domain.users.entities import ArtifactPurpose, Identity
from authgate.domain.users.repositories import NotificationDispatcher
from authgate.shared.logging import logger

from .register_user import send_verification


class VerifyEmailUseCase:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        artifacts: OneTimeArtifactService,
        notifier: NotificationDispatcher,
        ttl: timedelta,
    ) -> None:
        self._credentials = credentials
        self._artifacts = artifacts
        self._notifier = notifier
        self._ttl = ttl

    def execute(self, artifact: str) -> Identity:
        consumed = self._artifacts.consume(ArtifactPurpose.EMAIL_VERIFICATION, artifact)
        identity = self._credentials.get(consumed.identity_id)
        return self._credentials.mark_verified(identity)

    def resend(self, identity: Identity) -> bool:
        if identity.is_verified:
            logger.info(f"auth.verify_email: already verified identity={identity.id}")
            return False
        send_verification(
            identity, artifacts=self._artifacts, notifier=self._notifier, ttl=self._ttl
        )
        return True


__all__ = ["VerifyEmailUseCase"]
