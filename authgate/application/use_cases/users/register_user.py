# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from authgate.application.notifications import VERIFY_EMAIL
from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.one_time_artifacts import OneTimeArtifactService
from authgate.domain.users.entities import ArtifactPurpose, Identity, Profile
from authgate.domain.users.repositories import NotificationDispatcher


@dataclass(slots=True, frozen=True)
class RegistrationResult:
    identity: Identity
    pending_verification: bool


class RegisterUserUseCase:
    """Create an identity without authenticating it."""

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        artifacts: OneTimeArtifactService,
        notifier: NotificationDispatcher,
        require_verification: bool,
        verification_ttl: timedelta,
    ) -> None:
        self._credentials = credentials
        self._artifacts = artifacts
        self._notifier = notifier
        self._require_verification = require_verification
        self._verification_ttl = verification_ttl

    def execute(
        self,
        email: str,
        password: str,
        display_name: str,
        profile: Profile | None = None,
    ) -> RegistrationResult:
        identity = self._credentials.create_identity(
            email=email,
            password=password,
            display_name=display_name,
            profile=profile,
        )
        if not self._require_verification:
            return RegistrationResult(identity=identity, pending_verification=False)

        send_verification(
            identity,
            artifacts=self._artifacts,
            notifier=self._notifier,
            ttl=self._verification_ttl,
        )
        return RegistrationResult(identity=identity, pending_verification=True)


def send_verification(
    identity: Identity,
    *,
    artifacts: OneTimeArtifactService,
    notifier: NotificationDispatcher,
    ttl: timedelta,
) -> None:
    raw = artifacts.issue(identity, ArtifactPurpose.EMAIL_VERIFICATION, ttl)
    notifier.send(
        identity,
        VERIFY_EMAIL,
        {"token": raw, "expires_in": int(ttl.total_seconds())},
    )


__all__ = ["RegisterUserUseCase", "RegistrationResult", "send_verification"]
