# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from authgate.application.services.credential_store import CredentialStore
from authgate.domain.users.entities import Identity, Role
from authgate.shared.logging import logger

from .audit import AuditAction, AuditLogger


class AdminSetupError(Exception):
    pass


def setup_admin_identity(
    admin_email: str | None,
    credentials: CredentialStore,
    audit: AuditLogger | None = None,
) -> Identity | None:
    """Promote the configured ``ADMIN_EMAIL`` account to the admin role."""
    if not admin_email:
        logger.info("admin_setup: No ADMIN_EMAIL configured, skipping admin setup")
        return None

    identity = credentials.find_by_email(admin_email)
    if identity is None:
        raise AdminSetupError(
            "ADMIN_EMAIL is not registered. Create the account first or update ADMIN_EMAIL."
        )

    if identity.role is Role.ADMIN:
        logger.info(f"admin_setup: identity {identity.id} already has admin privileges")
        return identity

    promoted = credentials.grant_role(identity, Role.ADMIN)
    logger.info(f"admin_setup: granted admin privileges to identity {identity.id}")
    if audit is not None:
        audit.log(AuditAction.ADMIN_GRANTED, identity_id=identity.id, details={"source": "config"})
    return promoted


__all__ = ["AdminSetupError", "setup_admin_identity"]
