# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import base64
import binascii
import os
import sys
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from authgate.shared.logging import logger

_DEV_KEY_RAW = b"authgate-local-development-key!!"


class EncryptionService:
    """Fernet wrapper used for PII columns."""

    def __init__(self, key: bytes | None = None) -> None:
        self._fernet = Fernet(key if key is not None else self._load_key_from_env())

    @staticmethod
    def _load_key_from_env() -> bytes:
        key_str = os.getenv("ENCRYPTION_KEY", "")
        is_production = os.getenv("APP_ENV", "development").lower() in ("production", "prod")
        if not key_str:
            if is_production:
                print(
                    "\n❌ CRITICAL: ENCRYPTION_KEY not set in production!\n"
                    "   Profile PII cannot be stored without a key.\n",
                    file=sys.stderr,
                )
                sys.exit(1)
            logger.warning("ENCRYPTION_KEY not set, using the fixed development key")
            return base64.urlsafe_b64encode(_DEV_KEY_RAW)

        try:
            raw = base64.urlsafe_b64decode(key_str)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("ENCRYPTION_KEY is not url-safe base64") from exc
        if len(raw) != 32:
            raise ValueError("ENCRYPTION_KEY must decode to 32 bytes")
        return key_str.encode("utf-8")

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt: invalid token or corrupted data") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")


@lru_cache(maxsize=1)
def get_encryption_service() -> EncryptionService:
    return EncryptionService()


def encrypt_value(plaintext: str) -> str:
    return get_encryption_service().encrypt(plaintext)


def decrypt_value(ciphertext: str) -> str:
    return get_encryption_service().decrypt(ciphertext)


__all__ = [
    "EncryptionService",
    "decrypt_value",
    "encrypt_value",
    "get_encryption_service",
]
