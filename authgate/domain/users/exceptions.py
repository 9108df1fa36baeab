# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import math
from http import HTTPStatus
from typing import ClassVar

from authgate.shared.errors.base import DomainError


class DuplicateEmailError(DomainError):
    code = "duplicate_email"
    status = HTTPStatus.CONFLICT


class InvalidCredentialsError(DomainError):
    code = "invalid_credentials"
    status = HTTPStatus.UNAUTHORIZED


class TooManyAttemptsError(DomainError):
    code = "too_many_attempts"
    status = HTTPStatus.TOO_MANY_REQUESTS

    def __init__(self, retry_after: float) -> None:
        seconds = max(1, math.ceil(retry_after))
        super().__init__(context={"retry_after": seconds})
        self.retry_after = seconds

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class UnauthorizedError(DomainError):
    """Generic authentication failure.

    Subclasses carry the precise ``kind`` for internal logs only; the
    external payload is always ``{"error": "unauthorized"}``.
    """

    code = "unauthorized"
    status = HTTPStatus.UNAUTHORIZED
    kind: ClassVar[str] = "unauthenticated"


class SessionExpiredError(UnauthorizedError):
    kind = "session_expired"


class SessionInvalidError(UnauthorizedError):
    kind = "session_invalid"


class TokenExpiredError(UnauthorizedError):
    kind = "token_expired"


class TokenRevokedError(UnauthorizedError):
    kind = "token_revoked"


class TokenMalformedError(UnauthorizedError):
    kind = "token_malformed"


class ExpiredOrUsedArtifactError(DomainError):
    code = "expired_or_used_artifact"
    status = HTTPStatus.GONE


class ForbiddenError(DomainError):
    code = "forbidden"
    status = HTTPStatus.FORBIDDEN


class UntrustedOriginError(DomainError):
    code = "untrusted_origin"
    status = HTTPStatus.FORBIDDEN


class IdentityNotFoundError(DomainError):
    code = "identity_not_found"
    status = HTTPStatus.NOT_FOUND


class TokenNotFoundError(DomainError):
    code = "token_not_found"
    status = HTTPStatus.NOT_FOUND
