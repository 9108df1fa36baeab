# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from authgate.application.services.credential_store import CredentialStore
from authgate.domain.users.entities import Identity

PROFILE_FIELDS = ("phone", "address", "locale")


class UpdateProfileUseCase:
    def __init__(self, *, credentials: CredentialStore) -> None:
        self._credentials = credentials

    def execute(self, identity: Identity, changes: Mapping[str, Any]) -> Identity:
        """Apply only the keys present in ``changes``; ``None`` clears a field."""
        profile_changes = {key: changes[key] for key in PROFILE_FIELDS if key in changes}
        profile = replace(identity.profile, **profile_changes) if profile_changes else None
        return self._credentials.update_profile(
            identity,
            display_name=changes.get("display_name"),
            profile=profile,
        )


__all__ = ["PROFILE_FIELDS", "UpdateProfileUseCase"]
