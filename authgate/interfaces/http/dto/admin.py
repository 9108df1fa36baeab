# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from authgate.domain.users.entities import Identity


class IdentityListFilterDTO(BaseModel):
    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)


class IdentityInfoDTO(BaseModel):
    id: int
    email: str
    display_name: str
    role: str
    provenance: str
    email_verified: bool
    disabled: bool
    created_at: datetime | None

    @classmethod
    def from_identity(cls, identity: Identity) -> IdentityInfoDTO:
        return cls(
            id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            role=identity.role.value,
            provenance=identity.provenance,
            email_verified=identity.is_verified,
            disabled=not identity.is_active,
            created_at=identity.created_at,
        )


class IdentityListDTO(BaseModel):
    identities: list[IdentityInfoDTO]
    limit: int
    offset: int


__all__ = ["IdentityInfoDTO", "IdentityListDTO", "IdentityListFilterDTO"]
