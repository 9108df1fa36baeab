# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from threading import Lock

from authgate.application.policy import RateLimitPolicy
from authgate.domain.users.entities import RateLimitBucket
from authgate.domain.users.exceptions import TooManyAttemptsError
from authgate.shared.logging import logger


class InMemoryRateLimiter:
    """Fixed-window attempt counters keyed by ``(action, key)``.

    A bucket opens on its first attempt and allows ``max_attempts`` until
    ``window_seconds`` later; it does not slide with each new attempt.

    Every read-modify-write runs under one lock, so ``hit`` is an atomic
    check-and-increment: concurrent callers can never push a bucket past
    its threshold.
    """

    DEFAULT_POLICY = RateLimitPolicy()

    def __init__(
        self,
        policies: Mapping[str, RateLimitPolicy] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policies = dict(policies or {})
        self._clock = clock
        self._lock = Lock()
        self._buckets: dict[tuple[str, str], RateLimitBucket] = {}

    def policy(self, action: str) -> RateLimitPolicy:
        return self._policies.get(action, self.DEFAULT_POLICY)

    def check(self, action: str, key: str) -> None:
        with self._lock:
            now = self._clock()
            bucket = self._live_bucket(action, key, now)
            if bucket is not None:
                self._raise_if_exhausted(action, key, bucket, now)

    def hit(self, action: str, key: str) -> int:
        """Reserve one attempt; returns the attempts left in the window."""
        with self._lock:
            now = self._clock()
            policy = self.policy(action)
            bucket = self._live_bucket(action, key, now)
            if bucket is None:
                bucket = RateLimitBucket(count=0, window_start=now)
                self._buckets[(action, key)] = bucket
            self._raise_if_exhausted(action, key, bucket, now)
            bucket.count += 1
            return policy.max_attempts - bucket.count

    def record_failure(self, action: str, key: str) -> int:
        """Count one failure without the threshold check.

        Kept for callers that report failures after the fact; the login
        and reset flows reserve attempts with ``hit`` instead.
        """
        with self._lock:
            now = self._clock()
            bucket = self._live_bucket(action, key, now)
            if bucket is None:
                bucket = RateLimitBucket(count=0, window_start=now)
                self._buckets[(action, key)] = bucket
            bucket.count += 1
            return bucket.count

    def reset(self, action: str, key: str) -> None:
        with self._lock:
            if self._buckets.pop((action, key), None) is not None:
                logger.debug(f"rate_limit: reset action={action}")

    def attempts(self, action: str, key: str) -> int:
        with self._lock:
            bucket = self._live_bucket(action, key, self._clock())
            return bucket.count if bucket else 0

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                bucket_key
                for bucket_key, bucket in self._buckets.items()
                if bucket.is_expired(now, self.policy(bucket_key[0]).window_seconds)
            ]
            for bucket_key in expired:
                del self._buckets[bucket_key]
        if expired:
            logger.debug(f"rate_limit: swept {len(expired)} expired buckets")
        return len(expired)

    def _live_bucket(self, action: str, key: str, now: float) -> RateLimitBucket | None:
        bucket = self._buckets.get((action, key))
        if bucket is None:
            return None
        if bucket.is_expired(now, self.policy(action).window_seconds):
            del self._buckets[(action, key)]
            return None
        return bucket

    def _raise_if_exhausted(
        self, action: str, key: str, bucket: RateLimitBucket, now: float
    ) -> None:
        policy = self.policy(action)
        if bucket.count < policy.max_attempts:
            return
        retry_after = policy.window_seconds - (now - bucket.window_start)
        logger.warning(
            f"rate_limit: THROTTLED action={action} key={key} "
            f"attempts={bucket.count} retry_after={retry_after:.1f}s"
        )
        raise TooManyAttemptsError(retry_after=retry_after)


__all__ = ["InMemoryRateLimiter"]
