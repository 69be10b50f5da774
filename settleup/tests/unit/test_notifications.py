"""
tests/unit/test_notifications.py — NotificationDispatcher unit tests.

What this file proves:
  - queued notifications reach the sink on a worker thread
  - submit() never blocks: a full queue drops the message and returns False
  - a sink that raises is logged and does not stop the workers
  - dispatch() is a no-op in an app without a dispatcher
  - one exit hook stops every running dispatcher, however many apps exist
"""

from __future__ import annotations

import logging
import threading
import weakref
from unittest.mock import patch

from flask import Flask

from settleup.app import create_app
from settleup.app.notifications import (
    LoggingNotificationSink,
    Notification,
    NotificationDispatcher,
    NotificationSink,
    dispatch,
    stop_all,
)


def _note(user_id: int = 1, event: str = "expense_added") -> Notification:
    return Notification(user_id=user_id, event=event, title="t", body="b")


class ListSink(NotificationSink):

    def __init__(self) -> None:
        self.delivered: list[Notification] = []
        self.threads: set[str] = set()

    def deliver(self, notification: Notification) -> None:
        self.threads.add(threading.current_thread().name)
        self.delivered.append(notification)


class BlockingSink(NotificationSink):
    """Holds the worker inside deliver() until released."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def deliver(self, notification: Notification) -> None:
        self.entered.set()
        self.release.wait(timeout=5)


class FailingSink(NotificationSink):

    def __init__(self) -> None:
        self.calls = 0

    def deliver(self, notification: Notification) -> None:
        self.calls += 1
        if notification.event == "boom":
            raise RuntimeError("push gateway down")


def test_delivers_on_worker_thread():
    sink = ListSink()
    dispatcher = NotificationDispatcher(sink, queue_size=10, workers=1)
    dispatcher.start()
    try:
        assert dispatcher.submit(_note(1))
        assert dispatcher.submit(_note(2))
        assert dispatcher.flush(timeout=5)
    finally:
        dispatcher.stop()

    assert [n.user_id for n in sink.delivered] == [1, 2]
    assert sink.threads == {"notification-worker-0"}
    assert threading.current_thread().name not in sink.threads


def test_full_queue_drops_without_blocking(caplog):
    sink = BlockingSink()
    dispatcher = NotificationDispatcher(sink, queue_size=1, workers=1)
    dispatcher.start()
    try:
        assert dispatcher.submit(_note(1))       # taken by the worker
        assert sink.entered.wait(timeout=5)
        assert dispatcher.submit(_note(2))       # fills the queue

        with caplog.at_level(logging.WARNING, logger="settleup.app.notifications"):
            accepted = dispatcher.submit(_note(3))

        assert accepted is False
        assert "notification queue full" in caplog.text
    finally:
        sink.release.set()
        dispatcher.stop()


def test_failing_sink_is_logged_and_workers_continue(caplog):
    sink = FailingSink()
    dispatcher = NotificationDispatcher(sink, queue_size=10, workers=1)
    dispatcher.start()
    try:
        with caplog.at_level(logging.ERROR, logger="settleup.app.notifications"):
            dispatcher.submit(_note(1, "boom"))
            dispatcher.submit(_note(2, "settlement"))
            assert dispatcher.flush(timeout=5)
    finally:
        dispatcher.stop()

    assert sink.calls == 2
    assert "notification delivery failed event=boom" in caplog.text


def test_start_is_idempotent_and_stop_halts_workers():
    dispatcher = NotificationDispatcher(ListSink(), workers=2)
    dispatcher.start()
    dispatcher.start()
    assert dispatcher.running
    workers = list(dispatcher._workers)
    assert len(workers) == 2

    dispatcher.stop()
    assert not dispatcher.running
    assert not any(t.is_alive() for t in workers)


def test_logging_sink_writes_event(caplog):
    with caplog.at_level(logging.INFO, logger="settleup.app.notifications"):
        LoggingNotificationSink().deliver(_note(7, "member_added"))
    assert "event=member_added user=7" in caplog.text


def test_dispatch_uses_app_dispatcher():
    sink = ListSink()
    dispatcher = NotificationDispatcher(sink, workers=1)
    dispatcher.start()

    app = Flask(__name__)
    app.extensions["notifier"] = dispatcher
    try:
        with app.app_context():
            assert dispatch([_note(1), _note(2)]) == 2
        assert dispatcher.flush(timeout=5)
    finally:
        dispatcher.stop()

    assert len(sink.delivered) == 2


def test_dispatch_without_dispatcher_is_noop():
    app = Flask(__name__)
    with app.app_context():
        assert dispatch([_note(1)]) == 0


def _isolated_registry():
    """Keeps these tests away from dispatchers owned by other fixtures."""
    return patch("settleup.app.notifications._live_dispatchers", weakref.WeakSet())


def test_stop_all_halts_every_running_dispatcher():
    with _isolated_registry():
        first = NotificationDispatcher(ListSink(), workers=1)
        second = NotificationDispatcher(ListSink(), workers=1)
        first.start()
        second.start()

        stop_all()

    assert not first.running
    assert not second.running
    assert not first._workers and not second._workers


def test_building_apps_adds_no_exit_hooks():
    with _isolated_registry():
        # The first build pulls in the route modules; only later builds count.
        create_app("testing").extensions["notifier"].stop()
        with patch("atexit.register") as register:
            apps = [create_app("testing") for _ in range(3)]
        try:
            register.assert_not_called()
            assert all(a.extensions["notifier"].running for a in apps)
        finally:
            stop_all()

    assert not any(a.extensions["notifier"].running for a in apps)
