# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, jsonify, request
from pydantic import ValidationError

from authgate.application.gateway import AuthGateway
from authgate.infrastructure.audit import AuditAction, AuditLogger
from authgate.interfaces.http.authentication import authenticated, client_address, current_auth
from authgate.interfaces.http.dto.admin import (
    IdentityInfoDTO,
    IdentityListDTO,
    IdentityListFilterDTO,
)
from authgate.shared.errors.validation import raise_validation_error


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Re-evaluates the role predicate on every request; nothing is cached."""

    @wraps(view)
    def wrapper(self: AdminController, *args: Any, **kwargs: Any) -> Any:
        self._gateway.require_admin(current_auth().identity)
        return view(self, *args, **kwargs)

    return wrapper


class AdminController:
    def __init__(self, *, gateway: AuthGateway, audit: AuditLogger) -> None:
        self._gateway = gateway
        self._audit = audit

    @authenticated("admin")
    @admin_required
    def list_identities(self) -> tuple[Response, int]:
        try:
            filters = IdentityListFilterDTO.model_validate(request.args.to_dict())
        except ValidationError as exc:
            raise_validation_error(exc)

        identities = self._gateway.list_identities(limit=filters.limit, offset=filters.offset)
        payload = IdentityListDTO(
            identities=[IdentityInfoDTO.from_identity(identity) for identity in identities],
            limit=filters.limit,
            offset=filters.offset,
        )
        return jsonify(payload.model_dump(mode="json")), HTTPStatus.OK

    @authenticated("admin")
    @admin_required
    def disable_identity(self, identity_id: int) -> tuple[Response, int]:
        disabled = self._gateway.disable_identity(identity_id)
        self._audit.log(
            AuditAction.IDENTITY_DISABLED,
            identity_id=current_auth().identity.id,
            ip_address=client_address(),
            details={"target_identity_id": identity_id},
        )
        return jsonify(IdentityInfoDTO.from_identity(disabled).model_dump(mode="json")), HTTPStatus.OK

    def as_blueprint(self) -> Blueprint:
        bp = Blueprint("admin", __name__, url_prefix="/api/admin")
        bp.add_url_rule("/identities", view_func=self.list_identities, methods=["GET"])
        bp.add_url_rule(
            "/identities/<int:identity_id>/disable",
            view_func=self.disable_identity,
            methods=["POST"],
        )
        return bp


__all__ = ["AdminController"]
