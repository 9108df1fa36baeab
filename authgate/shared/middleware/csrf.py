# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import hmac
import secrets

from flask import Flask, Response, jsonify, request

from authgate.domain.users.entities import AuthFlow
from authgate.interfaces.http.authentication import presented_credential
from authgate.shared.config import AppConfig
from authgate.shared.logging import logger

SAFE_METHODS: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def issue_csrf_cookie(response: Response, config: AppConfig) -> str:
    token = secrets.token_urlsafe(32)
    response.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,
        samesite=config.security.cookie_samesite,
        secure=config.security.cookie_secure,
        max_age=config.auth.session_max_lifetime,
    )
    return token


def configure_csrf(app: Flask, config: AppConfig) -> None:
    """Double-submit check for cookie-authenticated, state-changing requests.

    Bearer-token clients never carry ambient credentials, so the check is
    skipped only when the request actually authenticates with a token.
    """
    if not config.security.enable_csrf:
        return

    @app.before_request
    def _verify_csrf():
        if request.method in SAFE_METHODS:
            return None
        credential = presented_credential()
        if credential is None or credential.flow is AuthFlow.TOKEN:
            return None

        header = (request.headers.get(CSRF_HEADER) or "").strip()
        cookie = (request.cookies.get(CSRF_COOKIE) or "").strip()
        if not header or not cookie or not hmac.compare_digest(header, cookie):
            logger.warning(f"csrf: rejected {request.method} {request.path}")
            return jsonify({"error": "csrf"}), 403
        return None


__all__ = ["CSRF_COOKIE", "CSRF_HEADER", "configure_csrf", "issue_csrf_cookie"]
