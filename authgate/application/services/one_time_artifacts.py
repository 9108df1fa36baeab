# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import timedelta

from authgate.domain.users.entities import ArtifactPurpose, Identity, OneTimeArtifact
from authgate.domain.users.exceptions import ExpiredOrUsedArtifactError
from authgate.domain.users.repositories import ArtifactRepository
from authgate.shared.logging import logger
from authgate.shared.utils.time import Clock, utcnow

from .artifacts import lookup_digest, new_secret


class OneTimeArtifactService:
    """Single-use, time-bounded secrets (password reset, email verification)."""

    def __init__(self, *, artifacts: ArtifactRepository, clock: Clock = utcnow) -> None:
        self._artifacts = artifacts
        self._clock = clock

    def issue(self, identity: Identity, purpose: ArtifactPurpose, ttl: timedelta) -> str:
        now = self._clock()
        # Only the newest artifact of a purpose stays valid.
        self._artifacts.invalidate_for_identity(identity.id, purpose, now)
        raw = new_secret()
        stored = self._artifacts.add(
            OneTimeArtifact(
                id=0,
                identity_id=identity.id,
                purpose=purpose,
                digest=lookup_digest(raw),
                created_at=now,
                expires_at=now + ttl,
            )
        )
        logger.info(
            f"artifacts: issued purpose={purpose.value} artifact={stored.id} identity={identity.id}"
        )
        return raw

    def consume(self, purpose: ArtifactPurpose, raw: str) -> OneTimeArtifact:
        artifact = self._artifacts.consume(purpose, lookup_digest(raw or ""), self._clock())
        if artifact is None:
            logger.warning(f"artifacts: rejected purpose={purpose.value} reason=expired_unknown_or_used")
            raise ExpiredOrUsedArtifactError()
        return artifact


__all__ = ["OneTimeArtifactService"]
