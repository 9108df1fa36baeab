# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from authgate.application.interfaces import RateLimiter
from authgate.application.policy import GatewayPolicy
from authgate.application.services.credential_store import CredentialStore
from authgate.application.services.one_time_artifacts import OneTimeArtifactService
from authgate.application.services.origin import classify_origin
from authgate.application.services.session_issuer import SessionIssuer
from authgate.application.services.token_issuer import TokenIssuer
from authgate.application.use_cases.admin.disable_identity import DisableIdentityUseCase
from authgate.application.use_cases.admin.list_identities import ListIdentitiesUseCase
from authgate.application.use_cases.users.change_password import ChangePasswordUseCase
from authgate.application.use_cases.users.login_user import LoginResult, LoginUserUseCase
from authgate.application.use_cases.users.logout_user import LogoutUserUseCase
from authgate.application.use_cases.users.password_reset import (
    RequestPasswordResetUseCase,
    ResetPasswordUseCase,
)
from authgate.application.use_cases.users.register_user import (
    RegisterUserUseCase,
    RegistrationResult,
)
from authgate.application.use_cases.users.update_profile import UpdateProfileUseCase
from authgate.application.use_cases.users.verify_email import VerifyEmailUseCase
from authgate.domain.users.entities import (
    AuthContext,
    AuthFlow,
    Credential,
    Identity,
    IssuedToken,
    Profile,
    Role,
    Token,
)
from authgate.domain.users.exceptions import (
    ForbiddenError,
    TokenNotFoundError,
    UnauthorizedError,
)
from authgate.domain.users.policies import has_role
from authgate.domain.users.repositories import (
    ArtifactRepository,
    IdentityRepository,
    NotificationDispatcher,
    PasswordHasher,
    SessionRepository,
    TokenRepository,
)
from authgate.shared.logging import logger
from authgate.shared.utils.locks import KeyedLocks
from authgate.shared.utils.time import Clock, utcnow


class AuthGateway:
    """Single entry point for every authentication action.

    Holds no global state: trusted origins, limits and lifetimes all come
    from the ``GatewayPolicy`` it was built with, so independent gateways
    can coexist in one process.
    """

    def __init__(
        self,
        policy: GatewayPolicy,
        *,
        credentials: CredentialStore,
        sessions: SessionIssuer,
        tokens: TokenIssuer,
        artifacts: OneTimeArtifactService,
        limiter: RateLimiter,
        notifier: NotificationDispatcher,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.policy = policy
        self._credentials = credentials
        self._sessions = sessions
        self._tokens = tokens
        self._limiter = limiter
        locks = locks or KeyedLocks()

        self._register = RegisterUserUseCase(
            credentials=credentials,
            artifacts=artifacts,
            notifier=notifier,
            require_verification=policy.require_email_verification,
            verification_ttl=policy.verification_ttl,
        )
        self._login = LoginUserUseCase(
            credentials=credentials,
            sessions=sessions,
            tokens=tokens,
            limiter=limiter,
            locks=locks,
        )
        self._logout = LogoutUserUseCase(sessions=sessions, tokens=tokens)
        self._request_reset = RequestPasswordResetUseCase(
            credentials=credentials,
            artifacts=artifacts,
            notifier=notifier,
            limiter=limiter,
            ttl=policy.password_reset_ttl,
        )
        self._reset = ResetPasswordUseCase(
            credentials=credentials,
            artifacts=artifacts,
            notifier=notifier,
            locks=locks,
        )
        self._verify_email = VerifyEmailUseCase(
            credentials=credentials,
            artifacts=artifacts,
            notifier=notifier,
            ttl=policy.verification_ttl,
        )
        self._change_password = ChangePasswordUseCase(
            credentials=credentials, notifier=notifier, locks=locks
        )
        self._update_profile = UpdateProfileUseCase(credentials=credentials)
        self._list_identities = ListIdentitiesUseCase(credentials)
        self._disable_identity = DisableIdentityUseCase(credentials, self._logout)

    @classmethod
    def build(
        cls,
        policy: GatewayPolicy,
        *,
        identities: IdentityRepository,
        sessions: SessionRepository,
        tokens: TokenRepository,
        artifacts: ArtifactRepository,
        password_hasher: PasswordHasher,
        limiter: RateLimiter,
        notifier: NotificationDispatcher,
        clock: Clock = utcnow,
    ) -> AuthGateway:
        return cls(
            policy,
            credentials=CredentialStore(
                identities=identities, password_hasher=password_hasher, clock=clock
            ),
            sessions=SessionIssuer(
                sessions=sessions,
                identities=identities,
                stateful_domains=policy.stateful_domains,
                idle_timeout=policy.session_idle_timeout,
                max_lifetime=policy.session_max_lifetime,
                clock=clock,
            ),
            tokens=TokenIssuer(
                tokens=tokens,
                identities=identities,
                default_ttl=policy.token_ttl,
                clock=clock,
            ),
            artifacts=OneTimeArtifactService(artifacts=artifacts, clock=clock),
            limiter=limiter,
            notifier=notifier,
        )

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    # Account lifecycle

    def register(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        profile: Profile | None = None,
    ) -> RegistrationResult:
        return self._register.execute(email, password, display_name, profile)

    def login(
        self,
        email: str,
        password: str,
        *,
        origin: str | None,
        client_address: str | None = None,
        device_name: str = "login",
    ) -> LoginResult:
        return self._login.execute(
            email,
            password,
            origin=origin,
            client_address=client_address,
            device_name=device_name,
        )

    def logout(self, credential: Credential | None) -> None:
        self._logout.execute(credential)

    def logout_all(self, identity: Identity) -> None:
        self._logout.execute_all(identity)

    def request_password_reset(self, email: str, client_address: str | None = None) -> None:
        self._request_reset.execute(email, client_address)

    def reset_password(self, artifact: str, new_password: str) -> Identity:
        return self._reset.execute(artifact, new_password)

    def verify_email(self, artifact: str) -> Identity:
        return self._verify_email.execute(artifact)

    def resend_verification(self, identity: Identity) -> bool:
        return self._verify_email.resend(identity)

    def change_password(self, identity: Identity, current_password: str, new_password: str) -> None:
        self._change_password.execute(identity, current_password, new_password)

    def update_profile(self, identity: Identity, changes: Mapping[str, Any]) -> Identity:
        return self._update_profile.execute(identity, changes)

    # Request authentication

    def classify(self, origin: str | None) -> AuthFlow:
        return classify_origin(origin, self.policy.stateful_domains)

    def authenticate(
        self,
        credential: Credential | None,
        *,
        origin: str | None = None,
        ability: str | None = None,
    ) -> AuthContext:
        if credential is None or not credential.value:
            raise UnauthorizedError()

        if credential.flow is AuthFlow.SESSION:
            # A cookie replayed from an untrusted page is treated as absent.
            if self.classify(origin) is not AuthFlow.SESSION:
                logger.info("auth: session cookie ignored for untrusted origin")
                raise UnauthorizedError()
            context = self._sessions.resolve(credential.value)
        else:
            context = self._tokens.resolve(credential.value)

        if ability is not None and not context.can(ability):
            logger.info(
                f"auth: ability denied ability={ability} identity={context.identity.id}"
            )
            raise ForbiddenError(context={"ability": ability})
        return context

    def require_admin(self, identity: Identity) -> None:
        if not has_role(identity, Role.ADMIN):
            raise ForbiddenError()

    # Personal access tokens

    def create_token(
        self,
        identity: Identity,
        *,
        name: str,
        abilities: Iterable[str] | None = None,
    ) -> IssuedToken:
        return self._tokens.issue(identity, abilities, name=name)

    def list_tokens(self, identity: Identity) -> Sequence[Token]:
        return self._tokens.list_for(identity)

    def revoke_token(self, identity: Identity, token_id: int) -> None:
        token = self._tokens.find(token_id)
        # Other identities' tokens look exactly like missing ones.
        if token is None or token.identity_id != identity.id:
            raise TokenNotFoundError(context={"token_id": token_id})
        self._tokens.revoke(token)

    # Administration

    def list_identities(self, *, limit: int = 100, offset: int = 0) -> Sequence[Identity]:
        return self._list_identities.execute(limit=limit, offset=offset)

    def disable_identity(self, identity_id: int) -> Identity:
        return self._disable_identity.execute(identity_id)

    def sweep(self) -> dict[str, int]:
        return {
            "sessions": self._sessions.sweep(),
            "tokens": self._tokens.sweep(),
            "rate_limits": self._limiter.sweep(),
        }


__all__ = ["AuthGateway"]
