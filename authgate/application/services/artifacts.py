# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Opaque secret generation and one-way lookup digests."""

from __future__ import annotations

import hashlib
import hmac
import secrets

# 32 random bytes -> 256 bits of entropy, 43 url-safe characters.
SECRET_BYTES = 32


def new_secret() -> str:
    return secrets.token_urlsafe(SECRET_BYTES)


def lookup_digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def digests_match(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("ascii"), right.encode("ascii"))


__all__ = ["SECRET_BYTES", "digests_match", "lookup_digest", "new_secret"]
