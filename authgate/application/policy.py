# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType

from authgate.shared.config import AppConfig

LOGIN = "login"
PASSWORD_RESET = "password_reset"
TWO_FACTOR = "two_factor"


@dataclass(slots=True, frozen=True)
class RateLimitPolicy:
    max_attempts: int = 5
    window_seconds: float = 60.0


def _default_rate_limits() -> Mapping[str, RateLimitPolicy]:
    return MappingProxyType(
        {
            LOGIN: RateLimitPolicy(),
            PASSWORD_RESET: RateLimitPolicy(),
            TWO_FACTOR: RateLimitPolicy(),
        }
    )


@dataclass(slots=True, frozen=True)
class GatewayPolicy:
    """Explicit configuration value the gateway is built with."""

    stateful_domains: tuple[str, ...] = ("localhost", "127.0.0.1")
    session_idle_timeout: timedelta = timedelta(minutes=120)
    session_max_lifetime: timedelta = timedelta(hours=12)
    token_ttl: timedelta | None = None
    password_reset_ttl: timedelta = timedelta(minutes=60)
    verification_ttl: timedelta = timedelta(hours=24)
    require_email_verification: bool = True
    rate_limits: Mapping[str, RateLimitPolicy] = field(default_factory=_default_rate_limits)

    @classmethod
    def from_config(cls, config: AppConfig) -> GatewayPolicy:
        auth = config.auth
        return cls(
            stateful_domains=tuple(auth.stateful_domains),
            session_idle_timeout=timedelta(seconds=auth.session_idle_timeout),
            session_max_lifetime=timedelta(seconds=auth.session_max_lifetime),
            token_ttl=timedelta(seconds=auth.token_ttl) if auth.token_ttl else None,
            password_reset_ttl=timedelta(seconds=auth.password_reset_ttl),
            verification_ttl=timedelta(seconds=auth.verification_ttl),
            require_email_verification=auth.require_email_verification,
            rate_limits=MappingProxyType(
                {
                    LOGIN: RateLimitPolicy(auth.login_max_attempts, auth.login_window),
                    PASSWORD_RESET: RateLimitPolicy(
                        auth.password_reset_max_attempts, auth.password_reset_window
                    ),
                    TWO_FACTOR: RateLimitPolicy(
                        auth.two_factor_max_attempts, auth.two_factor_window
                    ),
                }
            ),
        )


__all__ = [
    "GatewayPolicy",
    "LOGIN",
    "PASSWORD_RESET",
    "RateLimitPolicy",
    "TWO_FACTOR",
]
