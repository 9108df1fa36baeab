# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from functools import cached_property

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from authgate.application.gateway import AuthGateway
from authgate.application.policy import GatewayPolicy
from authgate.application.services.password_hashing import WerkzeugPasswordHasher
from authgate.domain.users.repositories import NotificationDispatcher
from authgate.infrastructure.audit import AuditLogger
from authgate.infrastructure.auth.rate_limiter import InMemoryRateLimiter
from authgate.infrastructure.db import build_engine, build_session_factory
from authgate.infrastructure.notifications import (
    LoggingNotificationSink,
    QueuedNotificationDispatcher,
)
from authgate.infrastructure.repositories.users.sqlalchemy_credential_repositories import (
    SqlAlchemyArtifactRepository,
    SqlAlchemySessionRepository,
    SqlAlchemyTokenRepository,
)
from authgate.infrastructure.repositories.users.sqlalchemy_identity_repository import (
    SqlAlchemyIdentityRepository,
)
from authgate.interfaces.http.controllers.admin_controller import AdminController
from authgate.interfaces.http.controllers.auth_controller import AuthController
from authgate.interfaces.http.controllers.misc_controller import MiscController
from authgate.interfaces.http.controllers.profile_controller import ProfileController
from authgate.interfaces.http.controllers.tokens_controller import TokensController
from authgate.shared.config import AppConfig
from authgate.shared.utils.time import Clock, utcnow


class Container:
    """Wires one gateway, its SQL repositories and the HTTP controllers."""

    def __init__(
        self,
        config: AppConfig,
        *,
        engine: Engine | None = None,
        notifier: NotificationDispatcher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config
        self._engine = engine
        self._notifier = notifier
        self._clock = clock

    @cached_property
    def engine(self) -> Engine:
        return self._engine or build_engine(self.config.database)

    @cached_property
    def session_factory(self) -> sessionmaker[Session]:
        return build_session_factory(self.engine)

    @cached_property
    def policy(self) -> GatewayPolicy:
        return GatewayPolicy.from_config(self.config)

    @cached_property
    def password_hasher(self) -> WerkzeugPasswordHasher:
        return WerkzeugPasswordHasher(method=self.config.auth.password_hash_method)

    @cached_property
    def identity_repository(self) -> SqlAlchemyIdentityRepository:
        return SqlAlchemyIdentityRepository(self.session_factory)

    @cached_property
    def session_repository(self) -> SqlAlchemySessionRepository:
        return SqlAlchemySessionRepository(self.session_factory)

    @cached_property
    def token_repository(self) -> SqlAlchemyTokenRepository:
        return SqlAlchemyTokenRepository(self.session_factory)

    @cached_property
    def artifact_repository(self) -> SqlAlchemyArtifactRepository:
        return SqlAlchemyArtifactRepository(self.session_factory)

    @cached_property
    def rate_limiter(self) -> InMemoryRateLimiter:
        return InMemoryRateLimiter(self.policy.rate_limits)

    @cached_property
    def notifier(self) -> NotificationDispatcher:
        if self._notifier is not None:
            return self._notifier
        return QueuedNotificationDispatcher(LoggingNotificationSink(), self.config.notifications)

    @cached_property
    def audit(self) -> AuditLogger:
        return AuditLogger(self.session_factory, clock=self._clock)

    @cached_property
    def gateway(self) -> AuthGateway:
        return AuthGateway.build(
            self.policy,
            identities=self.identity_repository,
            sessions=self.session_repository,
            tokens=self.token_repository,
            artifacts=self.artifact_repository,
            password_hasher=self.password_hasher,
            limiter=self.rate_limiter,
            notifier=self.notifier,
            clock=self._clock,
        )

    # Controllers

    @cached_property
    def auth_controller(self) -> AuthController:
        return AuthController(gateway=self.gateway, audit=self.audit, config=self.config)

    @cached_property
    def profile_controller(self) -> ProfileController:
        return ProfileController(gateway=self.gateway, audit=self.audit)

    @cached_property
    def tokens_controller(self) -> TokensController:
        return TokensController(gateway=self.gateway, audit=self.audit)

    @cached_property
    def admin_controller(self) -> AdminController:
        return AdminController(gateway=self.gateway, audit=self.audit)

    @cached_property
    def misc_controller(self) -> MiscController:
        return MiscController(
            engine=self.engine,
            metrics_enabled=self.config.observability.metrics_enabled,
        )


__all__ = ["Container"]
