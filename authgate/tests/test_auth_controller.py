from __future__ import annotations

from datetime import UTC, datetime
from typing import cast
from unittest.mock import MagicMock

import pytest
from flask import Flask

from authgate.application.gateway import AuthGateway
from authgate.application.use_cases.users.login_user import LoginResult
from authgate.application.use_cases.users.register_user import RegistrationResult
from authgate.domain.users.entities import (
    AuthContext,
    AuthFlow,
    Credential,
    Identity,
    IssuedToken,
    Session,
    SessionHandle,
    Token,
)
from authgate.domain.users.exceptions import TooManyAttemptsError, UnauthorizedError
from authgate.infrastructure.audit import AuditAction, AuditLogger
from authgate.interfaces.http.authentication import CONFIG_KEY
from authgate.interfaces.http.controllers.auth_controller import AuthController
from authgate.shared.config import AppConfig
from authgate.shared.middleware.error_handler import configure_error_handling

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
IDENTITY = Identity(id=1, email="alice@example.com", password_hash="hash", display_name="Alice")


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig(SECRET_KEY="test-secret")


@pytest.fixture()
def gateway() -> MagicMock:
    return MagicMock(spec=AuthGateway)


@pytest.fixture()
def audit() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture()
def flask_app(config: AppConfig, gateway: MagicMock, audit: MagicMock) -> Flask:
    app = Flask(__name__)
    app.config[CONFIG_KEY] = config
    configure_error_handling(app)
    controller = AuthController(
        gateway=cast(AuthGateway, gateway), audit=cast(AuditLogger, audit), config=config
    )
    app.register_blueprint(controller.as_blueprint())
    return app


def _session_handle() -> SessionHandle:
    session = Session(
        id=3,
        identity_id=1,
        digest="d" * 64,
        origin="localhost",
        created_at=NOW,
        last_activity_at=NOW,
        idle_expires_at=NOW,
        absolute_expires_at=NOW,
    )
    return SessionHandle(session=session, value="cookie-value")


def test_register_pending_verification_returns_202(flask_app: Flask, gateway: MagicMock) -> None:
    gateway.register.return_value = RegistrationResult(identity=IDENTITY, pending_verification=True)

    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/register",
            json={
                "email": "Alice@example.com",
                "password": "Correct-Horse-42",
                "display_name": "Alice",
            },
        )

    assert response.status_code == 202
    assert response.get_json() == {
        "id": 1,
        "email": "alice@example.com",
        "pending_verification": True,
    }
    assert "Set-Cookie" not in response.headers
    kwargs = gateway.register.call_args.kwargs
    assert kwargs["email"] == "Alice@example.com"
    assert kwargs["display_name"] == "Alice"


def test_login_invalid_payload_returns_422(flask_app: Flask, gateway: MagicMock) -> None:
    with flask_app.test_client() as client:
        response = client.post("/api/auth/login", json={"email": "not-an-email"})

    assert response.status_code == 422
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert payload["context"]["fields"] == ["email", "password"]
    gateway.login.assert_not_called()


def test_login_session_flow_sets_cookies(
    flask_app: Flask, gateway: MagicMock, audit: MagicMock
) -> None:
    gateway.login.return_value = LoginResult(
        identity=IDENTITY, flow=AuthFlow.SESSION, session=_session_handle()
    )

    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "pw"},
            headers={"Origin": "http://localhost", "X-Forwarded-For": "198.51.100.7"},
            environ_base={"REMOTE_ADDR": "203.0.113.9"},
        )

    assert response.status_code == 200
    assert response.get_json() == {"ok": True, "flow": "session"}
    cookies = response.headers.getlist("Set-Cookie")
    assert any(c.startswith("authgate_session=cookie-value") and "HttpOnly" in c for c in cookies)
    assert any(c.startswith("csrf_token=") for c in cookies)
    assert gateway.login.call_args.kwargs["origin"] == "http://localhost"
    assert gateway.login.call_args.kwargs["client_address"] == "203.0.113.9"
    assert audit.log.call_args.args[0] is AuditAction.LOGIN_SUCCESS


def test_login_token_flow_returns_plain_token_once(flask_app: Flask, gateway: MagicMock) -> None:
    token = Token(
        id=9, identity_id=1, name="login", digest="e" * 64, abilities=frozenset(), created_at=NOW
    )
    gateway.login.return_value = LoginResult(
        identity=IDENTITY,
        flow=AuthFlow.TOKEN,
        token=IssuedToken(token=token, plain_text="9|secret"),
    )

    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "pw"}
        )

    assert response.status_code == 200
    assert response.get_json() == {
        "ok": True,
        "flow": "token",
        "token": "9|secret",
        "token_type": "Bearer",
        "expires_at": None,
    }
    assert "Set-Cookie" not in response.headers


def test_throttled_login_sets_retry_after(
    flask_app: Flask, gateway: MagicMock, audit: MagicMock
) -> None:
    gateway.login.side_effect = TooManyAttemptsError(retry_after=41.2)

    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/login", json={"email": "bob@example.com", "password": "pw"}
        )

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "42"
    assert response.get_json() == {"error": "too_many_attempts", "context": {"retry_after": 42}}
    assert audit.log.call_args.args[0] is AuditAction.LOGIN_THROTTLED


def test_logout_passes_bearer_before_cookie(flask_app: Flask, gateway: MagicMock) -> None:
    with flask_app.test_client() as client:
        client.set_cookie("authgate_session", "cookie-value")
        response = client.post("/api/auth/logout", headers={"Authorization": "Bearer 5|abc"})

    assert response.status_code == 204
    gateway.logout.assert_called_once_with(Credential(flow=AuthFlow.TOKEN, value="5|abc"))
    cleared = response.headers.getlist("Set-Cookie")
    assert any(c.startswith("authgate_session=;") for c in cleared)


def test_authenticated_route_maps_failures_to_generic_401(
    flask_app: Flask, gateway: MagicMock
) -> None:
    gateway.authenticate.side_effect = UnauthorizedError()

    with flask_app.test_client() as client:
        response = client.post("/api/auth/logout-all")

    assert response.status_code == 401
    assert response.get_json() == {"error": "unauthorized"}
    gateway.authenticate.assert_called_once_with(None, origin=None, ability=None)
    gateway.logout_all.assert_not_called()


def test_resend_verification_uses_authenticated_identity(
    flask_app: Flask, gateway: MagicMock
) -> None:
    gateway.authenticate.return_value = AuthContext(identity=IDENTITY, flow=AuthFlow.TOKEN)
    gateway.resend_verification.return_value = True

    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/email/verification-notification",
            headers={"Authorization": "Bearer 5|abc"},
        )

    assert response.status_code == 202
    assert response.get_json() == {"ok": True, "sent": True}
    gateway.resend_verification.assert_called_once_with(IDENTITY)


def test_reset_request_acknowledges_generically(flask_app: Flask, gateway: MagicMock) -> None:
    with flask_app.test_client() as client:
        response = client.post(
            "/api/auth/password/reset-request", json={"email": "ghost@example.com"}
        )

    assert response.status_code == 200
    assert response.get_json()["ok"] is True
    gateway.request_password_reset.assert_called_once_with("ghost@example.com", "127.0.0.1")
