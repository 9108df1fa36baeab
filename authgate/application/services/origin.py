# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlsplit

from authgate.domain.users.entities import AuthFlow


def origin_host(origin: str | None) -> str | None:
    """Return ``host[:port]`` of an Origin/Referer value, lower-cased."""
    if not origin:
        return None
    value = origin.strip()
    if not value or value == "null":
        return None
    if "://" not in value:
        value = f"//{value}"
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    return parts.netloc.lower() or None


def _matches(host: str, pattern: str) -> bool:
    if pattern.startswith("*."):
        suffix = pattern[1:]
        hostname = host.split(":", 1)[0]
        return hostname.endswith(suffix) or host.endswith(suffix)
    return host == pattern


def is_trusted_origin(origin: str | None, stateful_domains: Iterable[str]) -> bool:
    host = origin_host(origin)
    if host is None:
        return False
    return any(_matches(host, domain.lower()) for domain in stateful_domains)


def classify_origin(origin: str | None, stateful_domains: Iterable[str]) -> AuthFlow:
    if is_trusted_origin(origin, stateful_domains):
        return AuthFlow.SESSION
    return AuthFlow.TOKEN


__all__ = ["classify_origin", "is_trusted_origin", "origin_host"]
