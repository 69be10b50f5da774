"""
tests/integration/test_settlements.py — Settlement endpoints.

The payer is always the authenticated caller. A settlement debits the
payer and credits the payee, so it clears what the payee owes the payer.
Going past that is accepted with an OVERPAYMENT warning.
"""

from __future__ import annotations

from .conftest import auth_headers, make_expense, register, settle, trio


def test_settlement_within_debt_has_no_warning(client):
    alice, bob, _, group = trio(client)
    make_expense(client, alice["access_token"], group["id"], "30.00")

    resp = settle(client, alice["access_token"], group["id"], bob["user"]["id"], "10.00",
                  notes="cash")

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["warnings"] == []
    assert body["data"]["paid_by_user_id"] == alice["user"]["id"]
    assert body["data"]["paid_to_user_id"] == bob["user"]["id"]
    assert body["data"]["amount"] == "10.00"
    assert body["data"]["notes"] == "cash"


def test_overpayment_is_recorded_with_warning(client):
    alice, bob, _, group = trio(client)
    make_expense(client, alice["access_token"], group["id"], "30.00")

    resp = settle(client, alice["access_token"], group["id"], bob["user"]["id"], "15.00")

    assert resp.status_code == 201
    warnings = resp.get_json()["warnings"]
    assert [w["code"] for w in warnings] == ["OVERPAYMENT"]
    assert "10.00" in warnings[0]["message"]


def test_earlier_settlements_count_towards_debt(client):
    alice, bob, _, group = trio(client)
    make_expense(client, alice["access_token"], group["id"], "30.00")

    first = settle(client, alice["access_token"], group["id"], bob["user"]["id"], "6.00")
    second = settle(client, alice["access_token"], group["id"], bob["user"]["id"], "6.00")

    assert first.get_json()["warnings"] == []
    assert [w["code"] for w in second.get_json()["warnings"]] == ["OVERPAYMENT"]


def test_settling_from_the_debtor_side_warns(client):
    alice, bob, _, group = trio(client)
    make_expense(client, alice["access_token"], group["id"], "30.00")

    resp = settle(client, bob["access_token"], group["id"], alice["user"]["id"], "5.00")

    assert resp.status_code == 201
    assert [w["code"] for w in resp.get_json()["warnings"]] == ["OVERPAYMENT"]


def test_settling_with_no_debt_warns(client):
    alice, bob, _, group = trio(client)

    resp = settle(client, alice["access_token"], group["id"], bob["user"]["id"], "5.00")

    assert resp.status_code == 201
    assert [w["code"] for w in resp.get_json()["warnings"]] == ["OVERPAYMENT"]


def test_self_settlement_is_rejected(client):
    alice, _, _, group = trio(client)

    resp = settle(client, alice["access_token"], group["id"], alice["user"]["id"], "5.00")

    assert resp.status_code == 422
    error = resp.get_json()["error"]
    assert error["code"] == "SELF_SETTLEMENT"
    assert error["field"] == "paid_to_user_id"


def test_recipient_must_be_member(client):
    alice, _, _, group = trio(client)
    outsider = register(client, "dave")

    resp = settle(client, alice["access_token"], group["id"], outsider["user"]["id"], "5.00")

    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "RECIPIENT_NOT_MEMBER"


def test_payer_must_be_member(client):
    alice, _, _, group = trio(client)
    outsider = register(client, "dave")

    resp = settle(client, outsider["access_token"], group["id"], alice["user"]["id"], "5.00")

    assert resp.status_code == 403


def test_amount_precision_is_validated(client):
    alice, bob, _, group = trio(client)

    resp = settle(client, bob["access_token"], group["id"], alice["user"]["id"], "1.005")

    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INVALID_AMOUNT_PRECISION"


def test_list_is_newest_first(client):
    alice, bob, carol, group = trio(client)
    settle(client, bob["access_token"], group["id"], alice["user"]["id"], "1.00")
    settle(client, carol["access_token"], group["id"], alice["user"]["id"], "2.00")

    resp = client.get(f"/api/v1/groups/{group['id']}/settlements",
                      headers=auth_headers(alice["access_token"]))

    assert resp.status_code == 200
    assert [s["amount"] for s in resp.get_json()["data"]] == ["2.00", "1.00"]


def test_payee_is_notified(client, notifications):
    alice, bob, _, group = trio(client)
    notifications.wait()
    notifications.clear()

    settle(client, bob["access_token"], group["id"], alice["user"]["id"], "12.50")

    delivered = notifications.wait()
    assert [(n.user_id, n.event) for n in delivered] == [(alice["user"]["id"], "settlement")]
    assert "12.50" in delivered[0].body
    assert delivered[0].email == "alice@test.com"
