# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Fire-and-forget notification delivery."""

from __future__ import annotations

import queue
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from authgate.domain.users.entities import Identity
from authgate.shared.config import NotificationConfig
from authgate.shared.logging import logger

from .observability import NOTIFICATIONS


@dataclass(slots=True, frozen=True)
class Notification:
    identity_id: int
    email: str
    template_kind: str
    payload: Mapping[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    def deliver(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    """Stand-in transport: records that a message would have been sent."""

    def deliver(self, notification: Notification) -> None:
        logger.info(
            f"notify: {notification.template_kind} -> identity={notification.identity_id} "
            f"email={notification.email}"
        )


class QueuedNotificationDispatcher:
    """Hands notifications to a bounded queue drained by a daemon thread.

    ``send`` never waits on delivery. Failed deliveries are retried with
    exponential backoff; a message may therefore arrive more than once.
    """

    _STOP = object()

    def __init__(self, sink: NotificationSink, config: NotificationConfig | None = None) -> None:
        self._sink = sink
        self._config = config or NotificationConfig()  # type: ignore[call-arg]
        self._queue: queue.Queue[Notification | object] = queue.Queue(
            maxsize=self._config.max_size
        )
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()

    def send(self, identity: Identity, template_kind: str, payload: Mapping[str, Any]) -> None:
        self._ensure_started()
        notification = Notification(
            identity_id=identity.id,
            email=identity.email,
            template_kind=template_kind,
            payload=dict(payload),
        )
        try:
            self._queue.put_nowait(notification)
        except queue.Full:
            NOTIFICATIONS.labels(template=template_kind, outcome="dropped").inc()
            logger.error(f"notify: queue full, dropped {template_kind} identity={identity.id}")

    def drain(self) -> None:
        """Block until every queued notification has been processed."""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        self._queue.put(self._STOP)
        worker.join(timeout)

    def _ensure_started(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._run, name="authgate-notify", daemon=True
            )
            self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self._deliver(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _deliver(self, notification: Notification) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._config.max_retries + 1),
            wait=wait_exponential(
                multiplier=self._config.backoff_base, max=self._config.backoff_cap
            ),
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._sink.deliver(notification)
        except RetryError as exc:
            NOTIFICATIONS.labels(template=notification.template_kind, outcome="failed").inc()
            logger.error(
                f"notify: giving up on {notification.template_kind} "
                f"identity={notification.identity_id}: {exc.last_attempt.exception()!r}"
            )
            return
        NOTIFICATIONS.labels(template=notification.template_kind, outcome="delivered").inc()


__all__ = [
    "LoggingNotificationSink",
    "Notification",
    "NotificationSink",
    "QueuedNotificationDispatcher",
]
