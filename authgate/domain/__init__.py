# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .users.entities import (
    ArtifactPurpose,
    AuthContext,
    AuthFlow,
    Credential,
    Identity,
    IssuedToken,
    OneTimeArtifact,
    Profile,
    RateLimitBucket,
    Role,
    Session,
    SessionHandle,
    Token,
)
from .users.policies import has_role, normalize_email

__all__ = [
    "ArtifactPurpose",
    "AuthContext",
    "AuthFlow",
    "Credential",
    "Identity",
    "IssuedToken",
    "OneTimeArtifact",
    "Profile",
    "RateLimitBucket",
    "Role",
    "Session",
    "SessionHandle",
    "Token",
    "has_role",
    "normalize_email",
]
