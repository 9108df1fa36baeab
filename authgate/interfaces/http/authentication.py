# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Request-side credential extraction and the ``authenticated`` guard."""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar, cast

from flask import current_app, g, request

from authgate.domain.users.entities import AuthContext, AuthFlow, Credential
from authgate.shared.config import AppConfig, load_config
from authgate.shared.logging import logger

F = TypeVar("F", bound=Callable[..., Any])

CONFIG_KEY = "AUTHGATE_CONFIG"


def app_config() -> AppConfig:
    config = current_app.config.get(CONFIG_KEY)
    return config if config is not None else load_config()


def client_address() -> str | None:
    # Forwarded headers are only honoured through ProxyFix, see app.create_app.
    return request.remote_addr


def request_origin() -> str | None:
    return request.headers.get("Origin") or request.headers.get("Referer")


def presented_credential() -> Credential | None:
    """Bearer header wins over the session cookie when both are sent."""
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        value = header[7:].strip()
        if value:
            return Credential(flow=AuthFlow.TOKEN, value=value)

    cookie = request.cookies.get(app_config().security.session_cookie_name, "")
    if cookie:
        return Credential(flow=AuthFlow.SESSION, value=cookie)
    return None


def authenticated(ability: str | None = None) -> Callable[[F], F]:
    """Guard a controller method; the controller must expose ``_gateway``."""

    def decorator(view: F) -> F:
        @wraps(view)
        def wrapper(self, *args: Any, **kwargs: Any) -> Any:
            credential = presented_credential()
            if credential is None:
                logger.info(
                    f"No Authorization header/cookie on {request.method} {request.path}"
                )
            context = self._gateway.authenticate(
                credential, origin=request_origin(), ability=ability
            )
            g.auth = context
            g.user_id = context.identity.id
            return view(self, *args, **kwargs)

        return cast(F, wrapper)

    return decorator


def current_auth() -> AuthContext:
    return cast(AuthContext, g.auth)


__all__ = [
    "CONFIG_KEY",
    "app_config",
    "authenticated",
    "client_address",
    "current_auth",
    "presented_credential",
    "request_origin",
]
