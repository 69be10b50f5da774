"""
services/balance_service.py — Net balances and debt simplification.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
Nothing else in the codebase folds splits and settlements into balances.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives ids and a SQLAlchemy Session as arguments.
  - Returns plain Python dicts and lists.
  - compute_net_balances() and simplify_debts() take no session at all and
    are unit-tested directly.

Soft-delete rule:
  - get_active_expenses() ALWAYS filters WHERE deleted_at IS NULL.
  - Every balance read goes through the data access helpers below.
    Querying Expense without that filter in a balance context is a bug.

Nothing here is cached. Every call re-scans the group's active expenses,
their splits and the group's settlements.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.expense import Expense
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership
from settleup.app.models.settlement import Settlement
from settleup.app.models.split import Split
from settleup.app.models.user import User
from settleup.app.money import CENT, ZERO, is_settled, round2

logger = logging.getLogger(__name__)


# ── Data access helpers ────────────────────────────────────────────────────
# These are the ONLY sanctioned ways to query expense/split data for
# balance purposes.

def get_active_expenses(group_id: int, session: Session) -> list[Expense]:
    """Returns expenses for a group WHERE deleted_at IS NULL, oldest first."""
    stmt = (
        select(Expense)
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Expense.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_splits_for_active_expenses(group_id: int, session: Session) -> list[Split]:
    """
    Returns splits belonging to active (non-deleted) expenses in a group.

    Joins Split → Expense so splits of soft-deleted expenses never leak in.
    """
    stmt = (
        select(Split)
        .join(Expense, Split.expense_id == Expense.id)
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Split.expense_id.asc(), Split.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_settlements(group_id: int, session: Session) -> list[Settlement]:
    """Returns all settlements for a group. Settlements have no soft-delete."""
    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns member user_ids in membership order (joined_at, then id)."""
    stmt = (
        select(Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _get_usernames(user_ids: Iterable[int], session: Session) -> dict[int, str]:
    """
    Returns {user_id: username}. Looks users up directly rather than via
    membership because a member who left can still carry a balance.
    """
    ids = set(user_ids)
    if not ids:
        return {}
    stmt = select(User.id, User.username).where(User.id.in_(ids))
    return {uid: name for uid, name in session.execute(stmt).all()}


# ── Core algorithms ────────────────────────────────────────────────────────

def compute_net_balances(
        expenses: Iterable,
        splits: Iterable,
        settlements: Iterable,
) -> dict[int, Decimal]:
    """
    Folds expenses, splits and settlements into {user_id: net_balance}.

    Positive = the member is owed money; negative = the member owes.

    Algorithm, one expense at a time:
      1. Debit each of the expense's split members with their owed_amount.
      2. Credit the payer with the full amount they fronted. Combined with
         step 1 the payer ends up at +(amount - own share).
    Then each settlement debits its payer and credits its recipient.

    Members with no activity are absent (implicit zero). The values do not
    depend on input order, but key insertion order does: members appear as
    the walk first touches them, and simplify_debts() pairs in that order.
    Splits whose expense_id is not among `expenses` are ignored.
    """
    by_expense: dict[int, list] = {}
    for split in splits:
        by_expense.setdefault(split.expense_id, []).append(split)

    net: dict[int, Decimal] = {}

    for expense in expenses:
        for split in by_expense.get(expense.id, ()):
            net[split.user_id] = net.get(split.user_id, ZERO) - split.owed_amount
        payer = expense.paid_by_user_id
        net[payer] = net.get(payer, ZERO) + expense.amount

    for settlement in settlements:
        sender = settlement.paid_by_user_id
        recipient = settlement.paid_to_user_id
        net[sender] = net.get(sender, ZERO) - settlement.amount
        net[recipient] = net.get(recipient, ZERO) + settlement.amount

    return net


def simplify_debts(balances: dict[int, Decimal]) -> list[dict]:
    """
    Greedy two-pointer debt simplification in insertion order.

    Members are partitioned into creditors (round2(balance) > 0.01) and
    debtors (round2(balance) < -0.01). Balances within one cent of zero
    are treated as settled. Neither list is sorted: the i-th debtor is
    matched against the j-th creditor for min(remaining) and whichever
    side drops below one cent advances (both may advance together).

    Returns:
        [{"from_user_id": debtor, "to_user_id": creditor, "amount": Decimal}]
        At most len(creditors) + len(debtors) - 1 entries. Empty means
        everyone is settled.
    """
    creditors: list[list] = []
    debtors: list[list] = []
    for uid, balance in balances.items():
        if is_settled(balance):
            continue
        rounded = round2(balance)
        if rounded > ZERO:
            creditors.append([uid, rounded])
        else:
            debtors.append([uid, -rounded])

    transfers: list[dict] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        amount = round2(min(debtor[1], creditor[1]))
        transfers.append({
            "from_user_id": debtor[0],
            "to_user_id": creditor[0],
            "amount": amount,
        })

        debtor[1] = round2(debtor[1] - amount)
        creditor[1] = round2(creditor[1] - amount)

        if debtor[1] < CENT:
            i += 1
        if creditor[1] < CENT:
            j += 1

    return transfers


def compute_group_net_balances(group_id: int, session: Session) -> dict[int, Decimal]:
    """Loads the group's active ledger rows and folds them into net balances."""
    return compute_net_balances(
        get_active_expenses(group_id, session),
        get_splits_for_active_expenses(group_id, session),
        get_settlements(group_id, session),
    )


# ── Balance views ──────────────────────────────────────────────────────────

def get_group_balance_summary(
        group_id: int,
        caller_id: int,
        session: Session,
) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist.
        AppError(FORBIDDEN, 403)       — caller is not a group member.
    """
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )

    if caller_id not in get_member_ids(group_id, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )

    expenses = get_active_expenses(group_id, session)
    balances = compute_net_balances(
        expenses,
        get_splits_for_active_expenses(group_id, session),
        get_settlements(group_id, session),
    )
    transfers = simplify_debts(balances)

    names = _get_usernames(
        [t["from_user_id"] for t in transfers] + [t["to_user_id"] for t in transfers],
        session,
    )

    total_spent = round2(sum((e.amount for e in expenses), ZERO))

    logger.debug(
        "group %s balances: %d members with activity, %d transfers",
        group_id, len(balances), len(transfers),
    )

    return {
        "group_id": group.id,
        "group_name": group.name,
        "currency": group.default_currency,
        "balances": [
            {
                "from_user_id": t["from_user_id"],
                "from_name": names.get(t["from_user_id"], f"user_{t['from_user_id']}"),
                "to_user_id": t["to_user_id"],
                "to_name": names.get(t["to_user_id"], f"user_{t['to_user_id']}"),
                "amount": t["amount"],
            }
            for t in transfers
        ],
        "total_spent": total_spent,
    }


def get_friend_balance_summary(
        user_id: int,
        session: Session,
        currency: str = "INR",
) -> dict:
    """
    Cross-group view for one user: how much each counterparty owes them
    (positive) or is owed by them (negative).

    Each group is simplified on its own and every transfer touching the
    user is folded into a per-counterparty total. Groups are never
    re-simplified against each other, so a counterparty can net to zero
    across groups and is then dropped.
    """
    group_ids = list(session.execute(
        select(Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    ).scalars().all())

    per_friend: dict[int, Decimal] = {}
    for group_id in group_ids:
        for t in simplify_debts(compute_group_net_balances(group_id, session)):
            if t["to_user_id"] == user_id:
                other, delta = t["from_user_id"], t["amount"]
            elif t["from_user_id"] == user_id:
                other, delta = t["to_user_id"], -t["amount"]
            else:
                continue
            per_friend[other] = per_friend.get(other, ZERO) + delta

    per_friend = {
        uid: round2(amount)
        for uid, amount in per_friend.items()
        if round2(amount) != ZERO
    }

    users: dict[int, User] = {}
    if per_friend:
        stmt = select(User).where(User.id.in_(per_friend.keys()))
        users = {u.id: u for u in session.execute(stmt).scalars().all()}

    friends = []
    for uid, amount in per_friend.items():
        friend = users.get(uid)
        friends.append({
            "user_id": uid,
            "username": friend.username if friend else f"user_{uid}",
            "email": friend.email if friend else None,
            "amount": amount,
            "currency": currency,
        })

    total_owed = round2(sum((a for a in per_friend.values() if a > ZERO), ZERO))
    total_owing = round2(sum((-a for a in per_friend.values() if a < ZERO), ZERO))

    return {
        "total_owed": total_owed,
        "total_owing": total_owing,
        "friends": friends,
    }
