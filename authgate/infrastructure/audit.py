# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import json
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authgate.shared.logging import logger
from authgate.shared.utils.time import Clock, utcnow

from .db.models import AuditLog
from .observability import AUTH_EVENTS
from .unit_of_work import unit_of_work_scope


class AuditAction(StrEnum):
    REGISTER = "register"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_THROTTLED = "login_throttled"
    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGED = "password_changed"
    EMAIL_VERIFIED = "email_verified"
    PROFILE_UPDATED = "profile_updated"
    TOKEN_CREATED = "token_created"
    TOKEN_REVOKED = "token_revoked"
    IDENTITY_DISABLED = "identity_disabled"
    ADMIN_GRANTED = "admin_granted"


_SENSITIVE_KEYS = ("password", "token", "secret", "key", "phone", "address", "artifact")


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    return {
        key: "***REDACTED***" if any(s in key.lower() for s in _SENSITIVE_KEYS) else value
        for key, value in details.items()
    }


class AuditLogger:
    """Writes security events to the log stream and the ``audit_logs`` table.

    Storage failures are logged and dropped; an audit write never fails the
    request that triggered it.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def log(
        self,
        action: AuditAction,
        identity_id: int | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
    ) -> None:
        safe_details = _sanitize_details(details) if details else {}
        message = (
            f"AUDIT: {action.value} | identity_id={identity_id} | "
            f"ip={ip_address} | success={success}"
        )
        if safe_details:
            message += f" | details={safe_details}"

        if success:
            logger.info(message)
        else:
            logger.warning(message)
        AUTH_EVENTS.labels(action=action.value, success=str(success).lower()).inc()

        if self._session_factory is not None:
            self._store(action, identity_id, ip_address, success, safe_details)

    def _store(
        self,
        action: AuditAction,
        identity_id: int | None,
        ip_address: str | None,
        success: bool,
        details: dict[str, Any],
    ) -> None:
        try:
            with unit_of_work_scope(self._session_factory) as session:
                session.add(
                    AuditLog(
                        timestamp=self._clock(),
                        action=action.value,
                        identity_id=identity_id,
                        ip_address=ip_address,
                        success=success,
                        details_json=json.dumps(details, default=str) if details else None,
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning(f"Failed to store audit log in database: {exc}")


__all__ = ["AuditAction", "AuditLogger"]
