# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from authgate.domain.users.entities import Token
from authgate.shared.errors.validation_types import ValidationErrorType

_ABILITY = re.compile(r"^(\*|[a-z][a-z0-9_.:-]{0,63})$")


class TokenCreateDTO(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    abilities: list[str] = Field(default_factory=list, max_length=32)

    @field_validator("abilities")
    @classmethod
    def _abilities(cls, value: list[str]) -> list[str]:
        for ability in value:
            if not _ABILITY.match(ability):
                raise PydanticCustomError(
                    ValidationErrorType.ABILITY_INVALID,
                    "Ability names are lower-case words such as 'profile:read'",
                    {"ability": ability},
                )
        return sorted(set(value))


class TokenDTO(BaseModel):
    id: int
    name: str
    abilities: list[str]
    created_at: datetime
    expires_at: datetime | None
    last_used_at: datetime | None

    @classmethod
    def from_token(cls, token: Token) -> TokenDTO:
        return cls(
            id=token.id,
            name=token.name,
            abilities=sorted(token.abilities),
            created_at=token.created_at,
            expires_at=token.expires_at,
            last_used_at=token.last_used_at,
        )


class TokenCreatedDTO(TokenDTO):
    token: str


class TokenListDTO(BaseModel):
    tokens: list[TokenDTO]


__all__ = ["TokenCreateDTO", "TokenCreatedDTO", "TokenDTO", "TokenListDTO"]
