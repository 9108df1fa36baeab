# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Template kinds handed to the notification dispatcher."""

VERIFY_EMAIL = "verify_email"
PASSWORD_RESET = "password_reset"
PASSWORD_CHANGED = "password_changed"

__all__ = ["PASSWORD_CHANGED", "PASSWORD_RESET", "VERIFY_EMAIL"]
