"""Password hashing strategies."""

from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from authgate.domain.users.repositories import PasswordHasher


class WerkzeugPasswordHasher(PasswordHasher):
    """Salted adaptive hash; the work factor is part of ``method``.

    ``check_password_hash`` compares digests with ``hmac.compare_digest``.
    """

    def __init__(self, method: str = "scrypt") -> None:
        self._method = method

    @property
    def method(self) -> str:
        return self._method

    def hash(self, password: str) -> str:
        return str(generate_password_hash(password, method=self._method))

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return bool(check_password_hash(hashed, password))
        except ValueError:
            # Unknown or corrupted hash format.
            return False
