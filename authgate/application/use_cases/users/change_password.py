# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from authgate.application.notifications import PASSWORD_CHANGED
from authgate.application.services.credential_store import CredentialStore
from authgate.domain.users.entities import Identity
from authgate.domain.users.exceptions import InvalidCredentialsError
from authgate.domain.users.repositories import NotificationDispatcher
from authgate.shared.errors.base import ValidationError
from authgate.shared.errors.validation_types import ValidationErrorType
from authgate.shared.utils.locks import KeyedLocks

from .login_user import identity_lock_key


class ChangePasswordUseCase:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        notifier: NotificationDispatcher,
        locks: KeyedLocks,
    ) -> None:
        self._credentials = credentials
        self._notifier = notifier
        self._locks = locks

    def execute(self, identity: Identity, current_password: str, new_password: str) -> None:
        with self._locks.hold(identity_lock_key(identity.email)):
            try:
                self._credentials.verify_password(identity.email, current_password)
            except InvalidCredentialsError as exc:
                raise ValidationError(
                    context={
                        "fields": ["current_password"],
                        "errors": [
                            {
                                "field": "current_password",
                                "type": ValidationErrorType.PASSWORD_MISMATCH.value,
                            }
                        ],
                    }
                ) from exc
            self._credentials.update_password(identity, new_password)
        self._notifier.send(identity, PASSWORD_CHANGED, {})


__all__ = ["ChangePasswordUseCase"]
