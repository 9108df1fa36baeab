# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from authgate.domain.users.entities import Identity
from authgate.shared.errors.validation_types import ValidationErrorType

_LOCALE = re.compile(r"^[a-z]{2,3}([-_][A-Za-z]{2,4})?$")


class ProfileDTO(BaseModel):
    id: int
    email: str
    display_name: str
    role: str
    email_verified: bool
    phone: str | None
    address: str | None
    locale: str | None
    created_at: datetime | None

    @classmethod
    def from_identity(cls, identity: Identity) -> ProfileDTO:
        return cls(
            id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            role=identity.role.value,
            email_verified=identity.is_verified,
            phone=identity.profile.phone,
            address=identity.profile.address,
            locale=identity.profile.locale,
            created_at=identity.created_at,
        )


class ProfileUpdateDTO(BaseModel):
    """Partial update: only fields present in the body are applied."""

    display_name: str | None = Field(None, min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=32)
    address: str | None = Field(None, max_length=512)
    locale: str | None = Field(None, max_length=16)

    model_config = ConfigDict(extra="forbid")

    @field_validator("locale")
    @classmethod
    def _locale(cls, value: str | None) -> str | None:
        if value is not None and not _LOCALE.match(value):
            raise PydanticCustomError(
                ValidationErrorType.LOCALE_INVALID,
                "Locale must look like 'en' or 'en-US'",
                {},
            )
        return value

    def changes(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in self.model_fields_set}


__all__ = ["ProfileDTO", "ProfileUpdateDTO"]
