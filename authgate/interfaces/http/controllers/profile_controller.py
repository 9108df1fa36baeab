# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, jsonify, request
from pydantic import ValidationError

from authgate.application.gateway import AuthGateway
from authgate.infrastructure.audit import AuditAction, AuditLogger
from authgate.interfaces.http.authentication import authenticated, client_address, current_auth
from authgate.interfaces.http.dto.profile import ProfileDTO, ProfileUpdateDTO
from authgate.shared.errors.validation import raise_validation_error


class ProfileController:
    def __init__(self, *, gateway: AuthGateway, audit: AuditLogger) -> None:
        self._gateway = gateway
        self._audit = audit

    @authenticated("profile:read")
    def show(self) -> tuple[Response, int]:
        identity = current_auth().identity
        return jsonify(ProfileDTO.from_identity(identity).model_dump(mode="json")), HTTPStatus.OK

    @authenticated("profile:write")
    def update(self) -> tuple[Response, int]:
        try:
            dto = ProfileUpdateDTO.model_validate(request.get_json(silent=True) or {})
        except ValidationError as exc:
            raise_validation_error(exc)

        changes = dto.changes()
        identity = self._gateway.update_profile(current_auth().identity, changes)
        self._audit.log(
            AuditAction.PROFILE_UPDATED,
            identity_id=identity.id,
            ip_address=client_address(),
            details={"fields": sorted(changes)},
        )
        return jsonify(ProfileDTO.from_identity(identity).model_dump(mode="json")), HTTPStatus.OK

    def as_blueprint(self) -> Blueprint:
        bp = Blueprint("profile", __name__, url_prefix="/api/profile")
        bp.add_url_rule("", view_func=self.show, methods=["GET"])
        bp.add_url_rule("", view_func=self.update, methods=["PATCH"])
        return bp


__all__ = ["ProfileController"]
