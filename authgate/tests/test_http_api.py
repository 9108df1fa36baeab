from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import pytest
from conftest import OTHER_PASSWORD, STRONG_PASSWORD, TRUSTED_ORIGIN, UNTRUSTED_ORIGIN, RecordingNotifier
from flask import Flask
from flask.testing import FlaskClient

from authgate.app import create_app
from authgate.application.notifications import PASSWORD_RESET, VERIFY_EMAIL
from authgate.domain.users.entities import Role
from authgate.infrastructure.container import Container
from authgate.shared.config import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    ObservabilityConfig,
    SecurityConfig,
)
from authgate.shared.middleware.csrf import CSRF_COOKIE, CSRF_HEADER

SESSION_COOKIE = "authgate_session"


@dataclass
class Api:
    app: Flask
    client: FlaskClient
    container: Container
    notifier: RecordingNotifier

    def register(self, email: str, password: str = STRONG_PASSWORD, **extra: Any) -> Any:
        body = {"email": email, "password": password, "display_name": email.split("@")[0]}
        body.update(extra)
        return self.client.post("/api/auth/register", json=body)

    def login(
        self,
        email: str,
        password: str = STRONG_PASSWORD,
        *,
        origin: str | None = None,
        forwarded_for: str | None = None,
    ) -> Any:
        headers = {"Origin": origin} if origin else {}
        if forwarded_for:
            headers["X-Forwarded-For"] = forwarded_for
        return self.client.post(
            "/api/auth/login", json={"email": email, "password": password}, headers=headers
        )

    def bearer_token(self, email: str, password: str = STRONG_PASSWORD) -> str:
        response = self.login(email, password, origin=UNTRUSTED_ORIGIN)
        assert response.status_code == 200
        return response.get_json()["token"]


def _build_api(
    *,
    enable_csrf: bool = False,
    require_verification: bool = False,
    trusted_proxy_hops: int = 0,
) -> Api:
    config = AppConfig(
        SECRET_KEY="test-secret",
        database=DatabaseConfig(DATABASE_URL="sqlite://"),
        observability=ObservabilityConfig(METRICS_ENABLED=True),
        security=SecurityConfig(
            ALLOWED_ORIGINS=[TRUSTED_ORIGIN],
            ENABLE_CSRF=enable_csrf,
            TRUSTED_PROXY_HOPS=trusted_proxy_hops,
        ),
        auth=AuthConfig(
            STATEFUL_DOMAINS=["app.example.com"],
            REQUIRE_EMAIL_VERIFICATION=require_verification,
            PASSWORD_HASH_METHOD="pbkdf2:sha256:1000",
        ),
    )
    notifier = RecordingNotifier()
    container = Container(config, notifier=notifier)
    app = create_app(config, container)
    app.config.update(TESTING=True)
    return Api(app=app, client=app.test_client(), container=container, notifier=notifier)


@pytest.fixture()
def api() -> Iterator[Api]:
    built = _build_api()
    yield built
    built.container.engine.dispose()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_trusted_origin_gets_cookie_session_and_others_get_token(api: Api) -> None:
    assert api.register("alice@example.com").status_code == 201

    response = api.login("alice@example.com", origin=TRUSTED_ORIGIN)
    assert response.status_code == 200
    assert response.get_json() == {"ok": True, "flow": "session"}
    set_cookie = " ".join(response.headers.getlist("Set-Cookie"))
    assert f"{SESSION_COOKIE}=" in set_cookie
    assert "HttpOnly" in set_cookie

    profile = api.client.get("/api/profile", headers={"Origin": TRUSTED_ORIGIN})
    assert profile.status_code == 200
    assert profile.get_json()["email"] == "alice@example.com"

    token_response = api.login("alice@example.com", origin=UNTRUSTED_ORIGIN)
    payload = token_response.get_json()
    assert payload["flow"] == "token"
    assert payload["token_type"] == "Bearer"

    fresh = api.app.test_client()
    via_token = fresh.get("/api/profile", headers=bearer(payload["token"]))
    assert via_token.status_code == 200
    assert via_token.get_json()["email"] == "alice@example.com"


def test_session_cookie_from_untrusted_page_is_ignored(api: Api) -> None:
    api.register("alice@example.com")
    api.login("alice@example.com", origin=TRUSTED_ORIGIN)

    response = api.client.get("/api/profile", headers={"Origin": UNTRUSTED_ORIGIN})

    assert response.status_code == 401
    assert response.get_json() == {"error": "unauthorized"}


def test_missing_credentials_return_generic_unauthorized(api: Api) -> None:
    response = api.client.get("/api/profile")

    assert response.status_code == 401
    assert response.get_json() == {"error": "unauthorized"}


def test_repeated_failures_are_throttled_with_retry_after(api: Api) -> None:
    api.register("bob@example.com")

    statuses = [api.login("bob@example.com", "Wrong-Password-1").status_code for _ in range(5)]
    throttled = api.login("bob@example.com", STRONG_PASSWORD)

    assert statuses == [401] * 5
    assert throttled.status_code == 429
    assert throttled.get_json()["error"] == "too_many_attempts"
    assert int(throttled.headers["Retry-After"]) >= 1


def test_spoofed_forwarded_for_does_not_reset_the_throttle(api: Api) -> None:
    api.register("bob@example.com")

    statuses = [
        api.login(
            "bob@example.com", "Wrong-Password-1", forwarded_for=f"10.0.0.{i}"
        ).status_code
        for i in range(1, 7)
    ]

    assert statuses == [401] * 5 + [429]


def test_trusted_proxy_address_is_the_only_forwarded_hop_honoured() -> None:
    api = _build_api(trusted_proxy_hops=1)
    api.register("bob@example.com")

    # The proxy appends the real peer; anything to its left is client supplied.
    statuses = [
        api.login(
            "bob@example.com",
            "Wrong-Password-1",
            forwarded_for=f"198.51.100.{i}, 203.0.113.5",
        ).status_code
        for i in range(1, 7)
    ]
    other_client = api.login(
        "bob@example.com", "Wrong-Password-1", forwarded_for="203.0.113.6"
    )

    assert statuses == [401] * 5 + [429]
    assert other_client.status_code == 401
    api.container.engine.dispose()


def test_unknown_email_and_wrong_password_are_indistinguishable(api: Api) -> None:
    api.register("alice@example.com")

    unknown = api.login("ghost@example.com", STRONG_PASSWORD)
    wrong = api.login("alice@example.com", "Wrong-Password-1")

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.get_json() == wrong.get_json() == {"error": "invalid_credentials"}


def test_logout_is_idempotent_and_revokes_the_token(api: Api) -> None:
    api.register("alice@example.com")
    token = api.bearer_token("alice@example.com")

    first = api.client.post("/api/auth/logout", headers=bearer(token))
    second = api.client.post("/api/auth/logout", headers=bearer(token))

    assert first.status_code == second.status_code == 204
    assert api.client.get("/api/profile", headers=bearer(token)).status_code == 401


def test_weak_password_is_rejected_with_field_errors(api: Api) -> None:
    response = api.register("alice@example.com", password="short")

    assert response.status_code == 422
    body = response.get_json()
    assert body["error"] == "validation_error"
    assert body["context"]["fields"] == ["password"]
    assert body["context"]["errors"][0]["type"] == "password_too_short"


def test_duplicate_registration_conflicts(api: Api) -> None:
    api.register("alice@example.com")

    response = api.register("ALICE@example.com")

    assert response.status_code == 409
    assert response.get_json() == {"error": "duplicate_email"}


def test_password_reset_flow_revokes_existing_tokens(api: Api) -> None:
    api.register("alice@example.com")
    token = api.bearer_token("alice@example.com")

    ack = api.client.post("/api/auth/password/reset-request", json={"email": "alice@example.com"})
    unknown_ack = api.client.post(
        "/api/auth/password/reset-request", json={"email": "ghost@example.com"}
    )
    assert ack.status_code == unknown_ack.status_code == 200
    assert ack.get_json() == unknown_ack.get_json()

    artifact = api.notifier.last(PASSWORD_RESET).payload["token"]
    reset = api.client.post(
        "/api/auth/password/reset", json={"token": artifact, "password": OTHER_PASSWORD}
    )
    assert reset.status_code == 200

    replay = api.client.post(
        "/api/auth/password/reset", json={"token": artifact, "password": OTHER_PASSWORD}
    )
    assert replay.status_code == 410
    assert replay.get_json() == {"error": "expired_or_used_artifact"}

    assert api.client.get("/api/profile", headers=bearer(token)).status_code == 401
    assert api.login("alice@example.com", OTHER_PASSWORD, origin=UNTRUSTED_ORIGIN).status_code == 200


def test_change_password_requires_current_password(api: Api) -> None:
    api.register("alice@example.com")
    token = api.bearer_token("alice@example.com")

    wrong = api.client.put(
        "/api/auth/password",
        json={"current_password": "nope", "password": OTHER_PASSWORD},
        headers=bearer(token),
    )
    assert wrong.status_code == 422
    assert wrong.get_json()["context"]["fields"] == ["current_password"]

    changed = api.client.put(
        "/api/auth/password",
        json={"current_password": STRONG_PASSWORD, "password": OTHER_PASSWORD},
        headers=bearer(token),
    )
    assert changed.status_code == 200
    assert api.client.get("/api/profile", headers=bearer(token)).status_code == 401


def test_profile_patch_only_touches_present_fields(api: Api) -> None:
    api.register("alice@example.com", phone="+1 555 0100", locale="en")
    token = api.bearer_token("alice@example.com")

    response = api.client.patch(
        "/api/profile", json={"locale": "en-GB"}, headers=bearer(token)
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["locale"] == "en-GB"
    assert body["phone"] == "+1 555 0100"

    rejected = api.client.patch("/api/profile", json={"role": "admin"}, headers=bearer(token))
    assert rejected.status_code == 422


def test_scoped_tokens_enforce_abilities(api: Api) -> None:
    api.register("alice@example.com")
    token = api.bearer_token("alice@example.com")

    created = api.client.post(
        "/api/tokens",
        json={"name": "reader", "abilities": ["profile:read"]},
        headers=bearer(token),
    )
    assert created.status_code == 201
    scoped = created.get_json()
    assert scoped["abilities"] == ["profile:read"]

    assert api.client.get("/api/profile", headers=bearer(scoped["token"])).status_code == 200
    denied = api.client.patch("/api/profile", json={"locale": "fr"}, headers=bearer(scoped["token"]))
    assert denied.status_code == 403

    listed = api.client.get("/api/tokens", headers=bearer(token)).get_json()["tokens"]
    assert {item["name"] for item in listed} == {"login", "reader"}
    assert all("token" not in item for item in listed)

    revoked = api.client.delete(f"/api/tokens/{scoped['id']}", headers=bearer(token))
    assert revoked.status_code == 204
    assert api.client.get("/api/profile", headers=bearer(scoped["token"])).status_code == 401


def test_admin_routes_require_admin_role(api: Api) -> None:
    api.register("alice@example.com")
    api.register("mallory@example.com")
    token = api.bearer_token("alice@example.com")

    assert api.client.get("/api/admin/identities", headers=bearer(token)).status_code == 403

    credentials = api.container.gateway.credentials
    credentials.grant_role(credentials.find_by_email("alice@example.com"), Role.ADMIN)

    listing = api.client.get("/api/admin/identities?limit=10", headers=bearer(token))
    assert listing.status_code == 200
    emails = [item["email"] for item in listing.get_json()["identities"]]
    assert emails == ["alice@example.com", "mallory@example.com"]

    mallory_id = listing.get_json()["identities"][1]["id"]
    mallory_token = api.bearer_token("mallory@example.com")
    disabled = api.client.post(
        f"/api/admin/identities/{mallory_id}/disable", headers=bearer(token)
    )
    assert disabled.status_code == 200
    assert api.client.get("/api/profile", headers=bearer(mallory_token)).status_code == 401


def test_email_verification_round_trip() -> None:
    api = _build_api(require_verification=True)

    response = api.register("alice@example.com")
    assert response.status_code == 202
    assert response.get_json()["pending_verification"] is True

    artifact = api.notifier.last(VERIFY_EMAIL).payload["token"]
    verified = api.client.post("/api/auth/email/verify", json={"token": artifact})
    assert verified.status_code == 200

    again = api.client.post("/api/auth/email/verify", json={"token": artifact})
    assert again.status_code == 410

    token = api.bearer_token("alice@example.com")
    assert api.client.get("/api/profile", headers=bearer(token)).get_json()["email_verified"] is True
    api.container.engine.dispose()


def test_csrf_guards_cookie_authenticated_writes() -> None:
    api = _build_api(enable_csrf=True)
    api.register("alice@example.com")
    api.login("alice@example.com", origin=TRUSTED_ORIGIN)

    blocked = api.client.post("/api/auth/logout", headers={"Origin": TRUSTED_ORIGIN})
    assert blocked.status_code == 403
    assert blocked.get_json() == {"error": "csrf"}

    csrf = api.client.get_cookie(CSRF_COOKIE)
    assert csrf is not None
    allowed = api.client.post(
        "/api/auth/logout", headers={"Origin": TRUSTED_ORIGIN, CSRF_HEADER: csrf.value}
    )
    assert allowed.status_code == 204
    api.container.engine.dispose()


def test_empty_bearer_header_does_not_bypass_csrf() -> None:
    api = _build_api(enable_csrf=True)
    api.register("alice@example.com")
    api.login("alice@example.com", origin=TRUSTED_ORIGIN)

    response = api.client.post(
        "/api/auth/logout-all",
        headers={"Origin": TRUSTED_ORIGIN, "Authorization": "Bearer "},
    )

    assert response.status_code == 403
    assert response.get_json() == {"error": "csrf"}
    api.container.engine.dispose()


def test_bearer_token_writes_skip_csrf() -> None:
    api = _build_api(enable_csrf=True)
    api.register("alice@example.com")
    token = api.bearer_token("alice@example.com")

    response = api.client.post("/api/auth/logout", headers=bearer(token))

    assert response.status_code == 204
    api.container.engine.dispose()


def test_health_and_metrics_endpoints(api: Api) -> None:
    health = api.client.get("/api/health")
    assert health.status_code == 200
    assert health.get_json() == {"ok": True, "database": "ok"}

    metrics = api.client.get("/metrics")
    assert metrics.status_code == 200
    assert b"authgate_requests_total" in metrics.data


def test_auth_responses_are_not_cached(api: Api) -> None:
    response = api.login("ghost@example.com", STRONG_PASSWORD)

    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Frame-Options"] == "DENY"
