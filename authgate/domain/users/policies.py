# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from .entities import Identity, Role

_ROLE_RANK: dict[Role, int] = {
    Role.STANDARD: 0,
    Role.ADMIN: 1,
}


def has_role(identity: Identity, required: Role) -> bool:
    if not identity.is_active:
        return False
    return _ROLE_RANK[identity.role] >= _ROLE_RANK[required]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def rate_limit_key(email: str, client_address: str | None) -> str:
    return f"{normalize_email(email)}|{client_address or 'unknown'}"


__all__ = ["has_role", "normalize_email", "rate_limit_key"]
