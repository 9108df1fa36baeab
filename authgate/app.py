# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import time

from flask import Flask, Response, g, request
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from authgate.infrastructure.admin_setup import setup_admin_identity
from authgate.infrastructure.container import Container
from authgate.infrastructure.db import init_db
from authgate.infrastructure.observability import observe_request
from authgate.interfaces.http.authentication import CONFIG_KEY
from authgate.shared.config import AppConfig, load_config
from authgate.shared.logging import logger, setup_logging
from authgate.shared.middleware.csrf import configure_csrf
from authgate.shared.middleware.error_handler import configure_error_handling
from authgate.shared.middleware.request_logger import configure_request_logging


def _configure_cors(app: Flask, config: AppConfig) -> None:
    origins = config.security.allowed_origins
    cors_kwargs: dict[str, object] = {"resources": {r"/api/*": {"origins": origins}}}
    # Cookies only travel cross-origin to an explicit allow-list.
    if origins and "*" not in origins:
        cors_kwargs["supports_credentials"] = True
    CORS(app, **cors_kwargs)


def _configure_security_headers(app: Flask, config: AppConfig) -> None:
    @app.after_request
    def _add_security_headers(resp: Response) -> Response:
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        resp.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        resp.headers.setdefault(
            "Permissions-Policy",
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
        )
        resp.headers.setdefault("X-Permitted-Cross-Domain-Policies", "none")
        if request.path.startswith("/api/auth"):
            resp.headers.setdefault("Cache-Control", "no-store")
        if config.security.enable_hsts:
            resp.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return resp


def _configure_proxy(app: Flask, config: AppConfig) -> None:
    hops = config.security.trusted_proxy_hops
    if hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)


def _configure_metrics(app: Flask) -> None:
    @app.after_request
    def _observe(resp: Response) -> Response:
        started = getattr(g, "request_start_time", None)
        if started is not None:
            endpoint = request.url_rule.rule if request.url_rule else "unmatched"
            observe_request(endpoint, resp.status_code, time.perf_counter() - started)
        return resp


def create_app(config: AppConfig | None = None, container: Container | None = None) -> Flask:
    if config is None:
        config = container.config if container is not None else load_config()
    container = container or Container(config)

    setup_logging(debug_mode=config.debug_logging)
    init_db(container.engine)
    setup_admin_identity(config.admin_email, container.gateway.credentials, container.audit)

    app = Flask(__name__)
    app.config.update(SECRET_KEY=config.secret_key)
    app.config[CONFIG_KEY] = config
    app.extensions["authgate"] = container

    _configure_proxy(app, config)
    configure_error_handling(app, debug_mode=config.debug_logging)
    configure_request_logging(app, debug_mode=config.debug_logging)
    configure_csrf(app, config)
    _configure_cors(app, config)
    _configure_security_headers(app, config)
    if config.observability.metrics_enabled:
        _configure_metrics(app)

    app.register_blueprint(container.misc_controller.as_blueprint())
    app.register_blueprint(container.auth_controller.as_blueprint())
    app.register_blueprint(container.profile_controller.as_blueprint())
    app.register_blueprint(container.tokens_controller.as_blueprint())
    app.register_blueprint(container.admin_controller.as_blueprint())

    logger.info(f"Flask app initialized service={config.observability.service_name}")
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
