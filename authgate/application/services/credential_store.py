# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import secrets
from collections.abc import Sequence
from dataclasses import replace

from authgate.domain.users.entities import Identity, Profile, Role
from authgate.domain.users.exceptions import (
    DuplicateEmailError,
    IdentityNotFoundError,
    InvalidCredentialsError,
)
from authgate.domain.users.policies import normalize_email
from authgate.domain.users.repositories import IdentityRepository, PasswordHasher
from authgate.shared.logging import logger
from authgate.shared.utils.time import Clock, utcnow


class CredentialStore:
    """Identity persistence plus password verification."""

    def __init__(
        self,
        *,
        identities: IdentityRepository,
        password_hasher: PasswordHasher,
        clock: Clock = utcnow,
    ) -> None:
        self._identities = identities
        self._password_hasher = password_hasher
        self._clock = clock
        # Unknown emails are verified against this so both failure paths
        # pay for exactly one hash verification.
        self._dummy_hash = password_hasher.hash(secrets.token_urlsafe(16))

    def create_identity(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        profile: Profile | None = None,
        role: Role = Role.STANDARD,
        provenance: str = "registration",
    ) -> Identity:
        normalized = normalize_email(email)
        if self._identities.find_by_email(normalized) is not None:
            raise DuplicateEmailError()

        identity = Identity(
            id=0,
            email=normalized,
            password_hash=self._password_hasher.hash(password),
            display_name=display_name.strip(),
            role=role,
            profile=profile or Profile(),
            provenance=provenance,
            created_at=self._clock(),
        )
        persisted = self._identities.add(identity)
        logger.info(f"credentials: created identity id={persisted.id} provenance={provenance}")
        return persisted

    def verify_password(self, email: str, plaintext: str) -> Identity:
        identity = self._identities.find_by_email(normalize_email(email))
        if identity is None:
            self._password_hasher.verify(plaintext, self._dummy_hash)
            logger.info("credentials: verification failed reason=unknown_email")
            raise InvalidCredentialsError()

        if not self._password_hasher.verify(plaintext, identity.password_hash):
            logger.info(
                f"credentials: verification failed reason=password_mismatch id={identity.id}"
            )
            raise InvalidCredentialsError()

        if not identity.is_active:
            logger.info(f"credentials: verification failed reason=disabled id={identity.id}")
            raise InvalidCredentialsError()

        return identity

    def update_password(self, identity: Identity, new_plaintext: str) -> None:
        """Rehash with the current work factor and revoke every session and token."""
        self._identities.replace_password(
            identity.id,
            self._password_hasher.hash(new_plaintext),
            revoked_at=self._clock(),
        )
        logger.info(f"credentials: password updated id={identity.id}")

    def mark_verified(self, identity: Identity) -> Identity:
        if identity.is_verified:
            return identity
        verified = self._identities.update(replace(identity, email_verified_at=self._clock()))
        logger.info(f"credentials: email verified id={identity.id}")
        return verified

    def update_profile(
        self,
        identity: Identity,
        *,
        display_name: str | None = None,
        profile: Profile | None = None,
    ) -> Identity:
        changed = replace(
            identity,
            display_name=display_name.strip() if display_name else identity.display_name,
            profile=profile or identity.profile,
        )
        return self._identities.update(changed)

    def grant_role(self, identity: Identity, role: Role) -> Identity:
        if identity.role == role:
            return identity
        return self._identities.update(replace(identity, role=role))

    def disable(self, identity: Identity) -> Identity:
        if not identity.is_active:
            return identity
        disabled = self._identities.update(replace(identity, disabled_at=self._clock()))
        logger.warning(f"credentials: identity disabled id={identity.id}")
        return disabled

    def get(self, identity_id: int) -> Identity:
        identity = self._identities.find_by_id(identity_id)
        if identity is None:
            raise IdentityNotFoundError(context={"identity_id": identity_id})
        return identity

    def find_by_email(self, email: str) -> Identity | None:
        return self._identities.find_by_email(normalize_email(email))

    def list(self, *, limit: int = 100, offset: int = 0) -> Sequence[Identity]:
        return self._identities.list(limit=limit, offset=offset)


__all__ = ["CredentialStore"]
