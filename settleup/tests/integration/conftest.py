"""
tests/integration/conftest.py — App, client and HTTP helpers for the API tests.

One app per session, built with create_app("testing") (in-memory SQLite
unless TEST_DATABASE_URL says otherwise) and a RecordingSink in place of a
real push transport. Every table is emptied after each test.

The helpers below are plain functions rather than fixtures so a test can
call them as often as it likes with whatever arguments it needs. Those
that must succeed assert it and return the response's `data`; the rest
return the raw response.
"""

from __future__ import annotations

import threading

import pytest

from settleup.app import create_app
from settleup.app.extensions import db as _db
from settleup.app.notifications import Notification, NotificationSink

API = "/api/v1"


class RecordingSink(NotificationSink):
    """Thread-safe in-memory sink; the worker thread appends, tests read."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._delivered: list[Notification] = []

    def deliver(self, notification: Notification) -> None:
        with self._lock:
            self._delivered.append(notification)

    @property
    def delivered(self) -> list[Notification]:
        with self._lock:
            return list(self._delivered)

    def clear(self) -> None:
        with self._lock:
            self._delivered.clear()


@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing", notification_sink=RecordingSink())
    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    flask_app.extensions["notifier"].stop()
    with flask_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield
    with app.app_context():
        _db.session.rollback()
        # Children first, so RESTRICT foreign keys never fire.
        with _db.engine.begin() as conn:
            for table in reversed(_db.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def notifications(app):
    """
    The shared RecordingSink, drained and emptied for this test.
    notifications.wait() blocks until queued messages are delivered.
    """
    dispatcher = app.extensions["notifier"]
    dispatcher.flush(timeout=5)
    sink = dispatcher.sink
    sink.clear()

    def wait() -> list[Notification]:
        assert dispatcher.flush(timeout=5), "notification queue did not drain"
        return sink.delivered

    sink.wait = wait
    return sink


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _data(resp, expected: int = 201):
    assert resp.status_code == expected, resp.get_json()
    return resp.get_json()["data"]


def register(client, username: str = "alice", email: str | None = None,
             password: str = "Password1") -> dict:
    """{"user": {...}, "access_token": "..."}; email defaults to <username>@test.com."""
    body = {"username": username, "email": email or f"{username}@test.com", "password": password}
    return _data(client.post(f"{API}/auth/register", json=body))


def make_group(client, token: str, name: str = "Test Group", **extra) -> dict:
    """The token's owner creates the group and becomes its first member."""
    resp = client.post(f"{API}/groups", json={"name": name, **extra}, headers=auth_headers(token))
    return _data(resp)


def add_member(client, token: str, group_id: int, user_id: int):
    return client.post(
        f"{API}/groups/{group_id}/members",
        json={"user_id": user_id},
        headers=auth_headers(token),
    )


def make_expense(client, token: str, group_id: int, amount: str, split_policy: str = "equal",
                 splits: list[dict] | None = None, paid_by_user_id: int | None = None,
                 description: str = "Test Expense", **extra):
    """Leave splits out for 'equal'; the other policies take [{user_id, value}, ...]."""
    payload = {"description": description, "amount": amount, "split_policy": split_policy, **extra}
    if paid_by_user_id is not None:
        payload["paid_by_user_id"] = paid_by_user_id
    if splits is not None:
        payload["splits"] = splits
    return client.post(f"{API}/groups/{group_id}/expenses", json=payload, headers=auth_headers(token))


def settle(client, token: str, group_id: int, paid_to_user_id: int, amount: str, **extra):
    """The token's owner pays paid_to_user_id."""
    return client.post(
        f"{API}/groups/{group_id}/settlements",
        json={"paid_to_user_id": paid_to_user_id, "amount": amount, **extra},
        headers=auth_headers(token),
    )


def trio(client):
    """alice (owner), bob and carol in one group, joined in that order."""
    alice, bob, carol = (register(client, name) for name in ("alice", "bob", "carol"))
    group = make_group(client, alice["access_token"])
    for member in (bob, carol):
        _data(add_member(client, alice["access_token"], group["id"], member["user"]["id"]))
    return alice, bob, carol, group
