# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Sequence

from authgate.application.services.credential_store import CredentialStore
from authgate.domain.users.entities import Identity


class ListIdentitiesUseCase:
    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    def execute(self, *, limit: int = 100, offset: int = 0) -> Sequence[Identity]:
        return self._credentials.list(limit=limit, offset=offset)


__all__ = ["ListIdentitiesUseCase"]
