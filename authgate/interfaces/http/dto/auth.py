# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from authgate.shared.errors.validation_types import ValidationErrorType

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SPECIAL = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\\/;'`~]")
_WEAK_PASSWORDS = frozenset(
    {
        "123456789012",
        "password1234",
        "qwerty123456",
        "admin1234567",
        "letmein12345",
    }
)


def validate_email(value: str) -> str:
    value = value.strip()
    if not value:
        raise PydanticCustomError(ValidationErrorType.MISSING, "Email cannot be empty", {})
    if not EMAIL_PATTERN.match(value):
        raise PydanticCustomError(
            ValidationErrorType.EMAIL_INVALID, "Email address is not valid", {}
        )
    return value


def validate_password_strength(value: str) -> str:
    if len(value) < 12:
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_TOO_SHORT,
            "Password must be at least 12 characters long",
            {"min_length": 12},
        )
    if not re.search(r"[A-Z]", value):
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_NO_UPPERCASE,
            "Password must contain at least one uppercase letter",
            {},
        )
    if not re.search(r"[a-z]", value):
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_NO_LOWERCASE,
            "Password must contain at least one lowercase letter",
            {},
        )
    if not re.search(r"\d", value):
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_NO_DIGIT,
            "Password must contain at least one digit",
            {},
        )
    if not _SPECIAL.search(value):
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_NO_SPECIAL,
            "Password must contain at least one special character",
            {},
        )
    if value.lower() in _WEAK_PASSWORDS:
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_WEAK,
            "Password is too weak, please choose a stronger password",
            {},
        )
    return value


class RegisterRequestDTO(BaseModel):
    email: str = Field(max_length=320)
    password: str = Field(max_length=128)
    display_name: str = Field(min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=32)
    address: str | None = Field(None, max_length=512)
    locale: str | None = Field(None, max_length=16)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return validate_password_strength(value)


class LoginRequestDTO(BaseModel):
    email: str = Field(max_length=320)
    password: str = Field(min_length=1, max_length=128)  # No strength check on login
    device_name: str = Field("login", min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return validate_email(value)


class PasswordResetRequestDTO(BaseModel):
    email: str = Field(max_length=320)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return validate_email(value)


class PasswordResetDTO(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    password: str = Field(max_length=128)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return validate_password_strength(value)


class ChangePasswordDTO(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    password: str = Field(max_length=128)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return validate_password_strength(value)


class EmailVerificationDTO(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class AuthSuccessDTO(BaseModel):
    ok: bool = True


class RegistrationDTO(BaseModel):
    id: int
    email: str
    pending_verification: bool


class SessionLoginDTO(BaseModel):
    ok: bool = True
    flow: str = "session"


class LoginTokenDTO(BaseModel):
    ok: bool = True
    flow: str = "token"
    token: str
    token_type: str = "Bearer"
    expires_at: datetime | None = None


class GenericAcknowledgementDTO(BaseModel):
    ok: bool = True
    message: str = "If the address is registered, a reset link has been sent."


__all__ = [
    "AuthSuccessDTO",
    "ChangePasswordDTO",
    "EmailVerificationDTO",
    "GenericAcknowledgementDTO",
    "LoginRequestDTO",
    "LoginTokenDTO",
    "PasswordResetDTO",
    "PasswordResetRequestDTO",
    "RegisterRequestDTO",
    "RegistrationDTO",
    "SessionLoginDTO",
    "validate_email",
    "validate_password_strength",
]
