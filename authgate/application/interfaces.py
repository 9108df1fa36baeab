# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from typing import Protocol


class RateLimiter(Protocol):
    def check(self, action: str, key: str) -> None: ...
    def hit(self, action: str, key: str) -> int: ...
    # Post-hoc failure counting; in-flight attempts go through ``hit``.
    def record_failure(self, action: str, key: str) -> int: ...
    def reset(self, action: str, key: str) -> None: ...
    def sweep(self) -> int: ...
