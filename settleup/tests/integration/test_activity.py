"""
tests/integration/test_activity.py — Activity feed endpoints.

Every ledger write leaves a feed entry in the same transaction; feeds are
newest first.
"""

from __future__ import annotations

from .conftest import auth_headers, make_expense, make_group, register, settle, trio


def _feed(client, token, path="/api/v1/activity") -> dict:
    resp = client.get(path, headers=auth_headers(token))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_group_feed_records_each_write_newest_first(client):
    alice, bob, _, group = trio(client)
    expense = make_expense(client, alice["access_token"], group["id"], "30.00",
                           description="Pizza").get_json()["data"]
    client.patch(f"/api/v1/expenses/{expense['id']}", json={"notes": "extra cheese"},
                 headers=auth_headers(alice["access_token"]))
    settle(client, bob["access_token"], group["id"], alice["user"]["id"], "10.00")
    client.delete(f"/api/v1/expenses/{expense['id']}",
                  headers=auth_headers(alice["access_token"]))

    feed = _feed(client, alice["access_token"], f"/api/v1/groups/{group['id']}/activity")

    assert [a["type"] for a in feed["data"]] == [
        "expense_deleted",
        "settlement",
        "expense_updated",
        "expense_added",
        "member_joined",
        "member_joined",
        "group_created",
    ]
    added = feed["data"][3]
    assert added["reference_id"] == expense["id"]
    assert added["username"] == "alice"
    assert added["group_name"] == group["name"]
    assert '"Pizza"' in added["description"]
    assert feed["data"][1]["description"].startswith("bob paid alice")


def test_rejected_write_leaves_no_entry(client):
    alice, bob, _, group = trio(client)

    make_expense(client, alice["access_token"], group["id"], "10.00",
                 split_policy="exact",
                 splits=[{"user_id": bob["user"]["id"], "value": "1.00"}])

    feed = _feed(client, alice["access_token"], f"/api/v1/groups/{group['id']}/activity")
    assert "expense_added" not in [a["type"] for a in feed["data"]]


def test_member_left_is_recorded(client):
    alice, bob, _, group = trio(client)

    client.delete(f"/api/v1/groups/{group['id']}/members/{bob['user']['id']}",
                  headers=auth_headers(bob["access_token"]))

    feed = _feed(client, alice["access_token"], f"/api/v1/groups/{group['id']}/activity")
    assert feed["data"][0]["type"] == "member_left"
    assert feed["data"][0]["description"].startswith("bob left")


def test_user_feed_spans_only_own_groups(client):
    alice, bob, _, trip = trio(client)
    flat = make_group(client, alice["access_token"], name="Flat")
    make_expense(client, alice["access_token"], flat["id"], "5.00")

    alice_groups = {a["group_id"] for a in _feed(client, alice["access_token"])["data"]}
    bob_groups = {a["group_id"] for a in _feed(client, bob["access_token"])["data"]}

    assert alice_groups == {trip["id"], flat["id"]}
    assert bob_groups == {trip["id"]}


def test_feed_is_paginated(client):
    alice, _, _, group = trio(client)
    path = f"/api/v1/groups/{group['id']}/activity"

    first = _feed(client, alice["access_token"], f"{path}?limit=2")
    rest = _feed(client, alice["access_token"], f"{path}?limit=2&page=2")

    assert first["pagination"] == {"page": 1, "limit": 2}
    assert len(first["data"]) == 2
    assert [a["type"] for a in rest["data"]] == ["group_created"]


def test_group_feed_requires_membership(client):
    _, _, _, group = trio(client)
    outsider = register(client, "dave")

    resp = client.get(f"/api/v1/groups/{group['id']}/activity",
                      headers=auth_headers(outsider["access_token"]))

    assert resp.status_code == 403


def test_unknown_group_feed(client):
    alice = register(client, "alice")

    resp = client.get("/api/v1/groups/9999/activity", headers=auth_headers(alice["access_token"]))

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"
