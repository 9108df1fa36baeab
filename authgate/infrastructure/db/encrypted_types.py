# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from sqlalchemy import String, TypeDecorator

from authgate.infrastructure.encryption import decrypt_value, encrypt_value


class EncryptedString(TypeDecorator):
    """Fernet-encrypted text column; the database only ever sees ciphertext."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: str | None, dialect) -> str | None:
        if value is None:
            return None
        return encrypt_value(value)

    def process_result_value(self, value: str | None, dialect) -> str | None:
        if value is None:
            return None
        return decrypt_value(value)


__all__ = ["EncryptedString"]
