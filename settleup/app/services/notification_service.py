"""
services/notification_service.py — Composes notification messages.

Builds Notification objects for ledger events. It does not send anything:
the route composes messages before it commits and hands them to the
dispatcher after the commit succeeds, so a rolled-back write never
notifies anyone.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Never writes to the session.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from settleup.app.models.expense import Expense
from settleup.app.models.group import Group
from settleup.app.models.settlement import Settlement
from settleup.app.models.user import User
from settleup.app.notifications import Notification


def _for_user(user: User, event: str, title: str, body: str, data: dict) -> Notification:
    return Notification(
        user_id=user.id,
        event=event,
        title=title,
        body=body,
        email=user.email,
        fcm_token=user.fcm_token,
        data=data,
    )


def expense_added(expense: Expense, session: Session) -> list[Notification]:
    """One message per participant other than the payer."""
    payer = session.get(User, expense.paid_by_user_id)
    group = session.get(Group, expense.group_id)
    payer_name = payer.username if payer else "Someone"

    messages = []
    for split in expense.splits:
        if split.user_id == expense.paid_by_user_id:
            continue
        user = session.get(User, split.user_id)
        if user is None:
            continue
        messages.append(_for_user(
            user,
            "expense_added",
            f"{payer_name} added an expense",
            f'You owe {expense.currency} {split.owed_amount:.2f} for '
            f'"{expense.description}" in {group.name}',
            {"expense_id": expense.id, "group_id": expense.group_id},
        ))
    return messages


def settlement_recorded(settlement: Settlement, session: Session) -> list[Notification]:
    """Tells the payee they were paid."""
    payer = session.get(User, settlement.paid_by_user_id)
    payee = session.get(User, settlement.paid_to_user_id)
    group = session.get(Group, settlement.group_id)
    if payee is None:
        return []

    payer_name = payer.username if payer else "Someone"
    return [_for_user(
        payee,
        "settlement",
        f"{payer_name} paid you",
        f"{payer_name} paid you {group.default_currency} "
        f"{settlement.amount:.2f} in {group.name}",
        {"settlement_id": settlement.id, "group_id": settlement.group_id},
    )]


def member_added(group_id: int, adder_id: int, new_member_id: int,
                 session: Session) -> list[Notification]:
    group = session.get(Group, group_id)
    adder = session.get(User, adder_id)
    new_member = session.get(User, new_member_id)
    if group is None or new_member is None:
        return []

    adder_name = adder.username if adder else "Someone"
    return [_for_user(
        new_member,
        "member_added",
        f'You were added to "{group.name}"',
        f'{adder_name} added you to the group "{group.name}"',
        {"group_id": group.id},
    )]


def invitation_sent(group_id: int, inviter_id: int, invitation: dict,
                    session: Session) -> list[Notification]:
    """An email-only message: the invitee has no account to push to yet."""
    group = session.get(Group, group_id)
    inviter = session.get(User, inviter_id)
    if group is None:
        return []

    inviter_name = inviter.username if inviter else "Someone"
    return [Notification(
        user_id=None,
        event="invitation",
        title=f'{inviter_name} invited you to join "{group.name}"',
        body=f'{inviter_name} invited you to join "{group.name}". '
             f"Sign up with {invitation['email']} to see the group's expenses.",
        email=invitation["email"],
        data={"group_id": group.id, "invitation_id": invitation["id"]},
    )]
