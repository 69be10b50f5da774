"""
Unit tests for settlement_service: the pairwise debt behind OVERPAYMENT and
the rejection branches, with the database mocked out.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from settleup.app.errors import AppError, ErrorCode
from settleup.app.services import settlement_service

_MODULE = "settleup.app.services.settlement_service"


def _totals(mapping: dict):
    """side_effect keyed by (first user, second user) as the helpers receive them."""
    return lambda group_id, a, b, session: Decimal(mapping.get((a, b), "0.00"))


@patch(f"{_MODULE}._transfer_total")
@patch(f"{_MODULE}._split_total")
def test_outstanding_debt_nets_both_directions(mock_splits, mock_transfers):
    # bob (2) owes alice (1) 40 on her expenses; alice owes bob 15 on his.
    mock_splits.side_effect = _totals({(2, 1): "40.00", (1, 2): "15.00"})
    # alice has settled 10 with bob; bob once settled 5 with alice.
    mock_transfers.side_effect = _totals({(1, 2): "10.00", (2, 1): "5.00"})

    debt = settlement_service.outstanding_debt(7, debtor_id=2, creditor_id=1, session=MagicMock())

    assert debt == Decimal("20.00")


@patch(f"{_MODULE}._transfer_total")
@patch(f"{_MODULE}._split_total")
def test_outstanding_debt_never_negative(mock_splits, mock_transfers):
    mock_splits.side_effect = _totals({(1, 2): "30.00"})
    mock_transfers.side_effect = _totals({})

    debt = settlement_service.outstanding_debt(7, debtor_id=2, creditor_id=1, session=MagicMock())

    assert debt == Decimal("0.00")
    assert str(debt) == "0.00"


def test_list_settlements_raises_group_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        settlement_service.list_settlements(group_id=99999, caller_id=1, session=session)

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
    assert exc_info.value.http_status == 404


@patch(f"{_MODULE}.member_group", return_value=SimpleNamespace(id=1, default_currency="INR"))
def test_self_settlement_rejected_before_any_write(mock_member_group):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        settlement_service.create_settlement(
            group_id=1,
            paid_by_id=4,
            data={"paid_to_user_id": 4, "amount": Decimal("5.00")},
            session=session,
        )

    err = exc_info.value
    assert err.code == ErrorCode.SELF_SETTLEMENT
    assert err.http_status == 422
    assert err.field == "paid_to_user_id"
    session.add.assert_not_called()


@patch(f"{_MODULE}.is_member", return_value=False)
@patch(f"{_MODULE}.member_group", return_value=SimpleNamespace(id=1, default_currency="INR"))
def test_recipient_outside_group_rejected(mock_member_group, mock_is_member):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        settlement_service.create_settlement(
            group_id=1,
            paid_by_id=4,
            data={"paid_to_user_id": 9, "amount": Decimal("5.00")},
            session=session,
        )

    assert exc_info.value.code == ErrorCode.RECIPIENT_NOT_MEMBER
    mock_is_member.assert_called_once_with(1, 9, session)
    session.add.assert_not_called()


@patch(f"{_MODULE}.activity_service.record_activity")
@patch(f"{_MODULE}.outstanding_debt", return_value=Decimal("10.00"))
@patch(f"{_MODULE}.is_member", return_value=True)
@patch(f"{_MODULE}.member_group", return_value=SimpleNamespace(id=1, default_currency="INR"))
def test_warning_compares_against_what_the_payee_owes(
    mock_member_group, mock_is_member, mock_debt, mock_activity,
):
    session = MagicMock()
    session.get.side_effect = lambda model, uid: SimpleNamespace(id=uid, username=f"user{uid}")

    _, warnings = settlement_service.create_settlement(
        group_id=1,
        paid_by_id=4,
        data={"paid_to_user_id": 9, "amount": Decimal("12.00")},
        session=session,
    )

    mock_debt.assert_called_once_with(1, 9, 4, session)
    assert [w["code"] for w in warnings] == ["OVERPAYMENT"]
    assert "10.00 user 9 currently owes user 4" in warnings[0]["message"]
    session.add.assert_called_once()
