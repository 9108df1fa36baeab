# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .credential_store import CredentialStore
from .one_time_artifacts import OneTimeArtifactService
from .password_hashing import WerkzeugPasswordHasher
from .session_issuer import SessionIssuer
from .token_issuer import TokenIssuer

__all__ = [
    "CredentialStore",
    "OneTimeArtifactService",
    "SessionIssuer",
    "TokenIssuer",
    "WerkzeugPasswordHasher",
]
