# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from authgate.application.services.credential_store import CredentialStore
from authgate.application.use_cases.users.logout_user import LogoutUserUseCase
from authgate.domain.users.entities import Identity
from authgate.shared.logging import logger


class DisableIdentityUseCase:
    """Soft-disable an account and drop every credential it holds."""

    def __init__(self, credentials: CredentialStore, logout: LogoutUserUseCase) -> None:
        self._credentials = credentials
        self._logout = logout

    def execute(self, identity_id: int) -> Identity:
        identity = self._credentials.get(identity_id)
        disabled = self._credentials.disable(identity)
        self._logout.execute_all(disabled)
        logger.info(f"admin: disabled identity_id={identity_id}")
        return disabled


__all__ = ["DisableIdentityUseCase"]
