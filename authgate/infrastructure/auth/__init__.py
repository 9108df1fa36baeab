# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .rate_limiter import InMemoryRateLimiter

__all__ = ["InMemoryRateLimiter"]
