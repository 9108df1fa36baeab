# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, jsonify, request
from pydantic import ValidationError

from authgate.application.gateway import AuthGateway
from authgate.infrastructure.audit import AuditAction, AuditLogger
from authgate.interfaces.http.authentication import authenticated, client_address, current_auth
from authgate.interfaces.http.dto.tokens import (
    TokenCreateDTO,
    TokenCreatedDTO,
    TokenDTO,
    TokenListDTO,
)
from authgate.shared.errors.validation import raise_validation_error


class TokensController:
    """Personal access tokens for the calling identity."""

    def __init__(self, *, gateway: AuthGateway, audit: AuditLogger) -> None:
        self._gateway = gateway
        self._audit = audit

    @authenticated("tokens:read")
    def list_tokens(self) -> tuple[Response, int]:
        tokens = self._gateway.list_tokens(current_auth().identity)
        payload = TokenListDTO(tokens=[TokenDTO.from_token(token) for token in tokens])
        return jsonify(payload.model_dump(mode="json")), HTTPStatus.OK

    @authenticated("tokens:write")
    def create_token(self) -> tuple[Response, int]:
        try:
            dto = TokenCreateDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        identity = current_auth().identity
        issued = self._gateway.create_token(identity, name=dto.name, abilities=dto.abilities)
        self._audit.log(
            AuditAction.TOKEN_CREATED,
            identity_id=identity.id,
            ip_address=client_address(),
            details={"token_id": issued.token.id, "abilities": dto.abilities},
        )
        payload = TokenCreatedDTO(
            **TokenDTO.from_token(issued.token).model_dump(), token=issued.plain_text
        )
        return jsonify(payload.model_dump(mode="json")), HTTPStatus.CREATED

    @authenticated("tokens:write")
    def revoke_token(self, token_id: int) -> tuple[Response, int]:
        identity = current_auth().identity
        self._gateway.revoke_token(identity, token_id)
        self._audit.log(
            AuditAction.TOKEN_REVOKED,
            identity_id=identity.id,
            ip_address=client_address(),
            details={"token_id": token_id},
        )
        return Response(status=HTTPStatus.NO_CONTENT), HTTPStatus.NO_CONTENT

    def as_blueprint(self) -> Blueprint:
        bp = Blueprint("tokens", __name__, url_prefix="/api/tokens")
        bp.add_url_rule("", view_func=self.list_tokens, methods=["GET"])
        bp.add_url_rule("", view_func=self.create_token, methods=["POST"])
        bp.add_url_rule("/<int:token_id>", view_func=self.revoke_token, methods=["DELETE"])
        return bp


__all__ = ["TokensController"]
