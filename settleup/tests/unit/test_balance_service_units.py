"""
Unit tests for balance_service data-access helpers and the balance views.

These tests intentionally avoid Flask and real DB access. Every DB interaction is
mocked through a fake SQLAlchemy session object or by patching the helpers.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from settleup.app.errors import AppError, ErrorCode
from settleup.app.services import balance_service

_MODULE = "settleup.app.services.balance_service"


def _mock_scalars_all(session: MagicMock, rows: list) -> None:
    session.execute.return_value.scalars.return_value.all.return_value = rows


def _expense(expense_id: int, payer: int, amount: str):
    return SimpleNamespace(id=expense_id, paid_by_user_id=payer, amount=Decimal(amount))


def _split(expense_id: int, user_id: int, owed: str):
    return SimpleNamespace(expense_id=expense_id, user_id=user_id, owed_amount=Decimal(owed))


# ── Data access helpers ────────────────────────────────────────────────────

def test_get_active_expenses_returns_rows():
    session = MagicMock()
    rows = [SimpleNamespace(id=1), SimpleNamespace(id=2)]
    _mock_scalars_all(session, rows)

    result = balance_service.get_active_expenses(group_id=10, session=session)

    assert result == rows
    session.execute.assert_called_once()


def test_get_active_expenses_filters_soft_deleted():
    session = MagicMock()
    _mock_scalars_all(session, [])

    balance_service.get_active_expenses(group_id=10, session=session)

    stmt = session.execute.call_args.args[0]
    assert "deleted_at IS NULL" in str(stmt)


def test_get_splits_for_active_expenses_joins_expense():
    session = MagicMock()
    rows = [SimpleNamespace(id=11), SimpleNamespace(id=12)]
    _mock_scalars_all(session, rows)

    result = balance_service.get_splits_for_active_expenses(group_id=7, session=session)

    assert result == rows
    sql = str(session.execute.call_args.args[0])
    assert "JOIN expenses" in sql
    assert "deleted_at IS NULL" in sql


def test_get_settlements_returns_all_rows():
    session = MagicMock()
    rows = [SimpleNamespace(id=101)]
    _mock_scalars_all(session, rows)

    result = balance_service.get_settlements(group_id=3, session=session)

    assert result == rows
    session.execute.assert_called_once()


def test_get_member_ids_orders_by_membership():
    session = MagicMock()
    _mock_scalars_all(session, [1, 2, 5])

    result = balance_service.get_member_ids(group_id=9, session=session)

    assert result == [1, 2, 5]
    sql = str(session.execute.call_args.args[0])
    assert "ORDER BY memberships.joined_at ASC, memberships.id ASC" in sql


# ── get_group_balance_summary ──────────────────────────────────────────────

def test_group_summary_raises_group_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        balance_service.get_group_balance_summary(group_id=999, caller_id=1, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


@patch(f"{_MODULE}.get_member_ids", return_value=[2, 3])
def test_group_summary_raises_forbidden_for_non_member(mock_member_ids):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=42, name="Trip", default_currency="INR")

    with pytest.raises(AppError) as exc_info:
        balance_service.get_group_balance_summary(group_id=42, caller_id=1, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.FORBIDDEN
    assert err.http_status == 403
    mock_member_ids.assert_called_once()


@patch(f"{_MODULE}._get_usernames", return_value={1: "alice", 2: "bob", 3: "carol"})
@patch(f"{_MODULE}.get_settlements", return_value=[])
@patch(f"{_MODULE}.get_splits_for_active_expenses")
@patch(f"{_MODULE}.get_active_expenses")
@patch(f"{_MODULE}.get_member_ids", return_value=[1, 2, 3])
def test_group_summary_happy_path(
    mock_member_ids,
    mock_expenses,
    mock_splits,
    mock_settlements,
    mock_usernames,
):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, name="Trip", default_currency="EUR")

    mock_expenses.return_value = [_expense(1, 1, "100.00")]
    mock_splits.return_value = [
        _split(1, 1, "33.34"),
        _split(1, 2, "33.33"),
        _split(1, 3, "33.33"),
    ]

    payload = balance_service.get_group_balance_summary(group_id=1, caller_id=2, session=session)

    assert payload == {
        "group_id": 1,
        "group_name": "Trip",
        "currency": "EUR",
        "balances": [
            {
                "from_user_id": 2,
                "from_name": "bob",
                "to_user_id": 1,
                "to_name": "alice",
                "amount": Decimal("33.33"),
            },
            {
                "from_user_id": 3,
                "from_name": "carol",
                "to_user_id": 1,
                "to_name": "alice",
                "amount": Decimal("33.33"),
            },
        ],
        "total_spent": Decimal("100.00"),
    }


@patch(f"{_MODULE}._get_usernames", return_value={})
@patch(f"{_MODULE}.get_settlements", return_value=[])
@patch(f"{_MODULE}.get_splits_for_active_expenses", return_value=[])
@patch(f"{_MODULE}.get_active_expenses", return_value=[])
@patch(f"{_MODULE}.get_member_ids", return_value=[1])
def test_group_summary_with_no_expenses(*_mocks):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=5, name="Empty", default_currency="INR")

    payload = balance_service.get_group_balance_summary(group_id=5, caller_id=1, session=session)

    assert payload["balances"] == []
    assert payload["total_spent"] == Decimal("0.00")


# ── get_friend_balance_summary ─────────────────────────────────────────────

@patch(f"{_MODULE}.compute_group_net_balances")
def test_friend_summary_folds_transfers_across_groups(mock_net):
    """
    Group 10: bob owes alice 30. Group 20: alice owes bob 10, alice owes carol 5.
    For alice: bob nets to +20, carol to -5.
    """
    session = MagicMock()
    session.execute.return_value.scalars.return_value.all.side_effect = [
        [10, 20],
        [
            SimpleNamespace(id=2, username="bob", email="bob@test.com"),
            SimpleNamespace(id=3, username="carol", email="carol@test.com"),
        ],
    ]
    mock_net.side_effect = [
        {1: Decimal("30.00"), 2: Decimal("-30.00")},
        {2: Decimal("10.00"), 3: Decimal("5.00"), 1: Decimal("-15.00")},
    ]

    summary = balance_service.get_friend_balance_summary(user_id=1, session=session, currency="INR")

    assert summary["total_owed"] == Decimal("20.00")
    assert summary["total_owing"] == Decimal("5.00")
    assert summary["friends"] == [
        {"user_id": 2, "username": "bob", "email": "bob@test.com",
         "amount": Decimal("20.00"), "currency": "INR"},
        {"user_id": 3, "username": "carol", "email": "carol@test.com",
         "amount": Decimal("-5.00"), "currency": "INR"},
    ]


@patch(f"{_MODULE}.compute_group_net_balances")
def test_friend_summary_drops_counterparties_that_net_to_zero(mock_net):
    """bob owes alice 10 in one group and alice owes bob 10 in another."""
    session = MagicMock()
    session.execute.return_value.scalars.return_value.all.return_value = [10, 20]
    mock_net.side_effect = [
        {1: Decimal("10.00"), 2: Decimal("-10.00")},
        {2: Decimal("10.00"), 1: Decimal("-10.00")},
    ]

    summary = balance_service.get_friend_balance_summary(user_id=1, session=session)

    assert summary == {
        "total_owed": Decimal("0.00"),
        "total_owing": Decimal("0.00"),
        "friends": [],
    }


@patch(f"{_MODULE}.compute_group_net_balances")
def test_friend_summary_ignores_transfers_between_other_members(mock_net):
    session = MagicMock()
    session.execute.return_value.scalars.return_value.all.side_effect = [
        [10],
        [SimpleNamespace(id=2, username="bob", email="bob@test.com")],
    ]
    # carol (3) owes dave (4); alice (1) is only owed by bob (2).
    mock_net.return_value = {
        4: Decimal("7.00"),
        1: Decimal("3.00"),
        3: Decimal("-7.00"),
        2: Decimal("-3.00"),
    }

    summary = balance_service.get_friend_balance_summary(user_id=1, session=session)

    assert [f["user_id"] for f in summary["friends"]] == [2]
    assert summary["total_owed"] == Decimal("3.00")
