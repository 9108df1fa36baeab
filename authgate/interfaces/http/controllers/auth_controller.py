# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, jsonify, request
from pydantic import ValidationError

from authgate.application.gateway import AuthGateway
from authgate.domain.users.entities import Profile, SessionHandle
from authgate.domain.users.exceptions import InvalidCredentialsError, TooManyAttemptsError
from authgate.infrastructure.audit import AuditAction, AuditLogger
from authgate.interfaces.http.authentication import (
    authenticated,
    client_address,
    current_auth,
    presented_credential,
    request_origin,
)
from authgate.interfaces.http.dto.auth import (
    AuthSuccessDTO,
    ChangePasswordDTO,
    EmailVerificationDTO,
    GenericAcknowledgementDTO,
    LoginRequestDTO,
    LoginTokenDTO,
    PasswordResetDTO,
    PasswordResetRequestDTO,
    RegisterRequestDTO,
    RegistrationDTO,
    SessionLoginDTO,
)
from authgate.shared.config import AppConfig
from authgate.shared.errors.validation import raise_validation_error
from authgate.shared.logging import logger
from authgate.shared.middleware.csrf import CSRF_COOKIE, issue_csrf_cookie


class AuthController:
    def __init__(self, *, gateway: AuthGateway, audit: AuditLogger, config: AppConfig) -> None:
        self._gateway = gateway
        self._audit = audit
        self._config = config

    def register(self) -> tuple[Response, int]:
        try:
            dto = RegisterRequestDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        result = self._gateway.register(
            email=dto.email,
            password=dto.password,
            display_name=dto.display_name,
            profile=Profile(phone=dto.phone, address=dto.address, locale=dto.locale),
        )
        self._audit.log(
            AuditAction.REGISTER,
            identity_id=result.identity.id,
            ip_address=client_address(),
            details={"pending_verification": result.pending_verification},
        )

        payload = RegistrationDTO(
            id=result.identity.id,
            email=result.identity.email,
            pending_verification=result.pending_verification,
        ).model_dump()
        status = HTTPStatus.ACCEPTED if result.pending_verification else HTTPStatus.CREATED
        logger.info(f"auth.register: ok identity_id={result.identity.id}")
        return jsonify(payload), status

    def login(self) -> tuple[Response, int]:
        try:
            dto = LoginRequestDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        ip_address = client_address()
        try:
            result = self._gateway.login(
                dto.email,
                dto.password,
                origin=request_origin(),
                client_address=ip_address,
                device_name=dto.device_name,
            )
        except TooManyAttemptsError as exc:
            self._audit.log(
                AuditAction.LOGIN_THROTTLED,
                ip_address=ip_address,
                details={"retry_after": exc.retry_after},
                success=False,
            )
            raise
        except InvalidCredentialsError:
            self._audit.log(AuditAction.LOGIN_FAILED, ip_address=ip_address, success=False)
            raise

        self._audit.log(
            AuditAction.LOGIN_SUCCESS,
            identity_id=result.identity.id,
            ip_address=ip_address,
            details={"flow": result.flow.value},
        )

        if result.session is not None:
            response = jsonify(SessionLoginDTO().model_dump())
            self._set_session_cookie(response, result.session)
            issue_csrf_cookie(response, self._config)
            logger.info(f"auth.login: session identity_id={result.identity.id}")
            return response, HTTPStatus.OK

        assert result.token is not None
        payload = LoginTokenDTO(
            token=result.token.plain_text,
            expires_at=result.token.token.expires_at,
        ).model_dump(mode="json")
        logger.info(f"auth.login: token identity_id={result.identity.id}")
        return jsonify(payload), HTTPStatus.OK

    def logout(self) -> tuple[Response, int]:
        self._gateway.logout(presented_credential())
        self._audit.log(AuditAction.LOGOUT, ip_address=client_address())

        response = Response(status=HTTPStatus.NO_CONTENT)
        self._clear_cookies(response)
        logger.info("auth.logout: ok")
        return response, HTTPStatus.NO_CONTENT

    @authenticated()
    def logout_all(self) -> tuple[Response, int]:
        identity = current_auth().identity
        self._gateway.logout_all(identity)
        self._audit.log(AuditAction.LOGOUT_ALL, identity_id=identity.id, ip_address=client_address())

        response = Response(status=HTTPStatus.NO_CONTENT)
        self._clear_cookies(response)
        return response, HTTPStatus.NO_CONTENT

    def csrf_cookie(self) -> tuple[Response, int]:
        response = Response(status=HTTPStatus.NO_CONTENT)
        issue_csrf_cookie(response, self._config)
        return response, HTTPStatus.NO_CONTENT

    def request_password_reset(self) -> tuple[Response, int]:
        try:
            dto = PasswordResetRequestDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        ip_address = client_address()
        self._gateway.request_password_reset(dto.email, ip_address)
        self._audit.log(AuditAction.PASSWORD_RESET_REQUESTED, ip_address=ip_address)
        return jsonify(GenericAcknowledgementDTO().model_dump()), HTTPStatus.OK

    def reset_password(self) -> tuple[Response, int]:
        try:
            dto = PasswordResetDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        identity = self._gateway.reset_password(dto.token, dto.password)
        self._audit.log(
            AuditAction.PASSWORD_RESET, identity_id=identity.id, ip_address=client_address()
        )

        response = jsonify(AuthSuccessDTO().model_dump())
        self._clear_cookies(response)
        return response, HTTPStatus.OK

    @authenticated()
    def change_password(self) -> tuple[Response, int]:
        try:
            dto = ChangePasswordDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        identity = current_auth().identity
        self._gateway.change_password(identity, dto.current_password, dto.password)
        self._audit.log(
            AuditAction.PASSWORD_CHANGED, identity_id=identity.id, ip_address=client_address()
        )

        response = jsonify(AuthSuccessDTO().model_dump())
        self._clear_cookies(response)
        return response, HTTPStatus.OK

    def verify_email(self) -> tuple[Response, int]:
        try:
            dto = EmailVerificationDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        identity = self._gateway.verify_email(dto.token)
        self._audit.log(
            AuditAction.EMAIL_VERIFIED, identity_id=identity.id, ip_address=client_address()
        )
        return jsonify(AuthSuccessDTO().model_dump()), HTTPStatus.OK

    @authenticated()
    def resend_verification(self) -> tuple[Response, int]:
        sent = self._gateway.resend_verification(current_auth().identity)
        return jsonify({"ok": True, "sent": sent}), HTTPStatus.ACCEPTED

    def _set_session_cookie(self, response: Response, handle: SessionHandle) -> None:
        security = self._config.security
        response.set_cookie(
            security.session_cookie_name,
            handle.value,
            httponly=True,
            samesite=security.cookie_samesite,
            secure=security.cookie_secure,
            expires=handle.session.absolute_expires_at,
        )

    def _clear_cookies(self, response: Response) -> None:
        response.delete_cookie(self._config.security.session_cookie_name)
        response.delete_cookie(CSRF_COOKIE)

    def as_blueprint(self) -> Blueprint:
        bp = Blueprint("auth", __name__, url_prefix="/api/auth")
        bp.add_url_rule("/register", view_func=self.register, methods=["POST"])
        bp.add_url_rule("/login", view_func=self.login, methods=["POST"])
        bp.add_url_rule("/logout", view_func=self.logout, methods=["POST"])
        bp.add_url_rule("/logout-all", view_func=self.logout_all, methods=["POST"])
        bp.add_url_rule("/csrf-cookie", view_func=self.csrf_cookie, methods=["GET"])
        bp.add_url_rule(
            "/password/reset-request", view_func=self.request_password_reset, methods=["POST"]
        )
        bp.add_url_rule("/password/reset", view_func=self.reset_password, methods=["POST"])
        bp.add_url_rule("/password", view_func=self.change_password, methods=["PUT"])
        bp.add_url_rule("/email/verify", view_func=self.verify_email, methods=["POST"])
        bp.add_url_rule(
            "/email/verification-notification",
            view_func=self.resend_verification,
            methods=["POST"],
        )
        return bp


__all__ = ["AuthController"]
