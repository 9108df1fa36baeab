# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .interfaces import RateLimiter
from .policy import GatewayPolicy, RateLimitPolicy

__all__ = ["GatewayPolicy", "RateLimitPolicy", "RateLimiter"]
