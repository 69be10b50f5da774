"""
notifications.py — Outbound notification dispatch.

The ledger never waits on a notification. Routes hand finished messages to
the NotificationDispatcher after their commit; a small pool of daemon
worker threads drains a bounded queue and passes each message to the
configured NotificationSink.

  - submit() never blocks. A full queue drops the message and logs a
    warning; a dropped notification is an accepted loss.
  - A sink that raises is logged with its traceback and the worker moves
    on. Delivery failures never reach the request that caused them.

The sink is injected through create_app(notification_sink=...). The
default LoggingNotificationSink writes each message to the log; push and
email transports plug in by subclassing NotificationSink.
"""

from __future__ import annotations

import atexit
import logging
import queue
import threading
import time
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from flask import current_app

logger = logging.getLogger(__name__)

# Dispatchers with live workers. One exit hook stops them all, however
# many apps the process builds.
_live_dispatchers: weakref.WeakSet = weakref.WeakSet()


@dataclass
class Notification:
    user_id: int | None  # None for an invitee without an account
    event: str
    title: str
    body: str
    email: str | None = None
    fcm_token: str | None = None
    data: dict = field(default_factory=dict)


class NotificationSink(ABC):
    """Delivery backend. Called from worker threads, never from a request."""

    @abstractmethod
    def deliver(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink(NotificationSink):

    def deliver(self, notification: Notification) -> None:
        logger.info(
            "notification event=%s user=%s title=%r body=%r",
            notification.event,
            notification.user_id,
            notification.title,
            notification.body,
        )


class NotificationDispatcher:

    def __init__(
            self,
            sink: NotificationSink,
            queue_size: int = 1000,
            workers: int = 2,
    ) -> None:
        self._sink = sink
        self._queue: queue.Queue[Notification] = queue.Queue(maxsize=queue_size)
        self._worker_count = max(1, workers)
        self._workers: list[threading.Thread] = []
        self._running = False
        self._lock = threading.Lock()

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Starts the worker threads. Calling start() twice is a no-op."""
        with self._lock:
            if self._running:
                return
            self._running = True
            _live_dispatchers.add(self)
            for i in range(self._worker_count):
                worker = threading.Thread(
                    target=self._process_queue,
                    name=f"notification-worker-{i}",
                    daemon=True,
                )
                worker.start()
                self._workers.append(worker)
        logger.debug("notification dispatcher started with %d workers", self._worker_count)

    def submit(self, notification: Notification) -> bool:
        """Queues a notification. Returns False when it had to be dropped."""
        try:
            self._queue.put_nowait(notification)
        except queue.Full:
            logger.warning(
                "notification queue full, dropping event=%s user=%s",
                notification.event,
                notification.user_id,
            )
            return False
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """
        Waits until every queued notification has been handled.
        Returns False if the timeout expired first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        """Drains what is already queued, then stops the workers."""
        if not self._running:
            return
        self.flush(timeout)
        self._running = False
        for worker in self._workers:
            worker.join(timeout)
        self._workers.clear()
        _live_dispatchers.discard(self)
        logger.debug("notification dispatcher stopped")

    def _process_queue(self) -> None:
        while self._running:
            try:
                notification = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue

            try:
                self._sink.deliver(notification)
            except Exception:
                logger.exception(
                    "notification delivery failed event=%s user=%s",
                    notification.event,
                    notification.user_id,
                )
            finally:
                self._queue.task_done()


def dispatch(messages: list[Notification]) -> int:
    """
    Hands messages to the current app's dispatcher. Call only after the
    write that produced them has committed. Returns how many were queued.
    """
    dispatcher: NotificationDispatcher | None = current_app.extensions.get("notifier")
    if dispatcher is None:
        return 0
    return sum(1 for m in messages if dispatcher.submit(m))


def stop_all(timeout: float | None = 5.0) -> None:
    """Stops every dispatcher that still has workers running."""
    for dispatcher in list(_live_dispatchers):
        dispatcher.stop(timeout)


atexit.register(stop_all)
