# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import timedelta

from authgate.domain.users.entities import (
    AuthContext,
    AuthFlow,
    Identity,
    IssuedToken,
    Token,
)
from authgate.domain.users.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    TokenRevokedError,
    UnauthorizedError,
)
from authgate.domain.users.repositories import IdentityRepository, TokenRepository
from authgate.shared.logging import logger
from authgate.shared.utils.time import Clock, utcnow

from .artifacts import digests_match, lookup_digest, new_secret

# "<token id>|<43 url-safe characters>"
TOKEN_PATTERN = re.compile(r"^(\d{1,18})\|([A-Za-z0-9_-]{43})$")


class TokenIssuer:
    """Opaque bearer tokens stored only as SHA-256 lookup digests."""

    def __init__(
        self,
        *,
        tokens: TokenRepository,
        identities: IdentityRepository,
        default_ttl: timedelta | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._tokens = tokens
        self._identities = identities
        self._default_ttl = default_ttl
        self._clock = clock

    def issue(
        self,
        identity: Identity,
        abilities: Iterable[str] | None = None,
        *,
        name: str = "api",
        ttl: timedelta | None = None,
    ) -> IssuedToken:
        secret = new_secret()
        now = self._clock()
        lifetime = ttl or self._default_ttl
        token = self._tokens.add(
            Token(
                id=0,
                identity_id=identity.id,
                name=name,
                digest=lookup_digest(secret),
                abilities=frozenset(abilities or ()),
                created_at=now,
                expires_at=now + lifetime if lifetime else None,
            )
        )
        logger.info(
            f"tokens: issued token={token.id} identity={identity.id} "
            f"abilities={sorted(token.abilities) or '*'}"
        )
        return IssuedToken(token=token, plain_text=f"{token.id}|{secret}")

    def resolve(self, raw: str) -> AuthContext:
        # Every path below hashes and looks up once, so malformed, revoked
        # and expired tokens cost the same before the caller sees one error.
        match = TOKEN_PATTERN.match(raw or "")
        digest = lookup_digest(match.group(2)) if match else lookup_digest(raw or "")
        token = self._tokens.find_by_digest(digest)
        now = self._clock()

        failure: type[UnauthorizedError] | None = None
        identity: Identity | None = None
        if match is None or token is None:
            failure = TokenMalformedError
        elif not digests_match(token.digest, digest) or str(token.id) != match.group(1):
            failure = TokenMalformedError
        elif token.is_revoked:
            failure = TokenRevokedError
        elif token.is_expired(now):
            failure = TokenExpiredError
        else:
            identity = self._identities.find_by_id(token.identity_id)
            if identity is None or not identity.is_active:
                failure = TokenRevokedError

        if failure is not None:
            logger.info(f"tokens: rejected kind={failure.kind} token={token.id if token else '-'}")
            raise failure()
        assert token is not None and identity is not None

        self._tokens.mark_used(token.id, now)
        return AuthContext(
            identity=identity,
            flow=AuthFlow.TOKEN,
            token=replace(token, last_used_at=now),
        )

    def revoke(self, token: Token) -> None:
        if token.is_revoked:
            return
        self._tokens.revoke(token.id, self._clock())
        logger.info(f"tokens: revoked token={token.id}")

    def revoke_plain_text(self, raw: str) -> None:
        match = TOKEN_PATTERN.match(raw or "")
        if match is None:
            return
        token = self._tokens.find_by_digest(lookup_digest(match.group(2)))
        if token is None or str(token.id) != match.group(1):
            return
        self.revoke(token)

    def revoke_all(self, identity: Identity) -> int:
        revoked = self._tokens.revoke_for_identity(identity.id, self._clock())
        logger.info(f"tokens: revoked {revoked} tokens identity={identity.id}")
        return revoked

    def find(self, token_id: int) -> Token | None:
        return self._tokens.find_by_id(token_id)

    def list_for(self, identity: Identity) -> Sequence[Token]:
        return [token for token in self._tokens.list_for_identity(identity.id) if not token.is_revoked]

    def sweep(self) -> int:
        return self._tokens.delete_expired(self._clock())


__all__ = ["TOKEN_PATTERN", "TokenIssuer"]
