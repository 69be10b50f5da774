"""
services/settlement_service.py — Recording settlements between members.

A settlement moves value from the caller (the payer, taken from the auth
context) to another member of the same group. In the ledger it debits the
payer and credits the payee, so it squares a pair when the payee is the
one who owes. It is never rejected for being too large: when the amount is
more than the payee currently owes the payer, the remainder flips the
pair's direction and the caller gets an OVERPAYMENT warning alongside the
201.

Failure modes:
  GROUP_NOT_FOUND (404), FORBIDDEN (403) for a payer outside the group,
  SELF_SETTLEMENT (422), RECIPIENT_NOT_MEMBER (422).

Self-settlement can only be caught here because the payer id never appears
in the request body; the settlements CHECK constraint backs it up.

Only flushes. The route commits and then dispatches notifications.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode, WarningCode
from settleup.app.models.activity import ActivityType
from settleup.app.models.expense import Expense
from settleup.app.models.settlement import Settlement
from settleup.app.models.split import Split
from settleup.app.models.user import User
from settleup.app.money import ZERO, round2
from settleup.app.services import activity_service
from settleup.app.services.access import is_member, member_group

logger = logging.getLogger(__name__)


def _sum(stmt, session: Session) -> Decimal:
    return round2(session.execute(stmt).scalar_one())


def _split_total(group_id: int, debtor_id: int, creditor_id: int, session: Session) -> Decimal:
    # What debtor_id owes on live expenses that creditor_id paid for.
    stmt = (
        select(func.coalesce(func.sum(Split.owed_amount), 0))
        .join(Expense, Split.expense_id == Expense.id)
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
            Expense.paid_by_user_id == creditor_id,
            Split.user_id == debtor_id,
        )
    )
    return _sum(stmt, session)


def _transfer_total(group_id: int, sender_id: int, recipient_id: int, session: Session) -> Decimal:
    stmt = select(func.coalesce(func.sum(Settlement.amount), 0)).where(
        Settlement.group_id == group_id,
        Settlement.paid_by_user_id == sender_id,
        Settlement.paid_to_user_id == recipient_id,
    )
    return _sum(stmt, session)


def outstanding_debt(group_id: int, debtor_id: int, creditor_id: int, session: Session) -> Decimal:
    """
    What debtor_id still owes creditor_id in one group, floored at 0.00.

    This is the pairwise figure, not the simplified transfer list. It uses
    the same signs as compute_net_balances(), where a settlement debits its
    payer and credits its recipient:

      splits debtor owes on creditor's expenses
      - splits creditor owes on debtor's expenses
      + settlements debtor -> creditor
      - settlements creditor -> debtor
    """
    debt = (
        _split_total(group_id, debtor_id, creditor_id, session)
        - _split_total(group_id, creditor_id, debtor_id, session)
        + _transfer_total(group_id, debtor_id, creditor_id, session)
        - _transfer_total(group_id, creditor_id, debtor_id, session)
    )
    return max(round2(debt), round2(ZERO))


def _overpayment_warning(amount: Decimal, debt: Decimal, payer_id: int, payee_id: int) -> dict:
    return {
        "code": WarningCode.OVERPAYMENT,
        "message": (
            f"Settlement of {amount} is more than the {debt} user {payee_id} currently "
            f"owes user {payer_id}; the excess now counts the other way."
        ),
    }


def create_settlement(
        group_id: int,
        paid_by_id: int,
        data: dict,
        session: Session,
) -> tuple[Settlement, list[dict]]:
    """
    Records paid_by_id paying data["paid_to_user_id"] data["amount"].

    `data` is the output of CreateSettlementSchema. Returns the flushed
    Settlement and a warnings list, empty unless the amount exceeds what
    the payee owes the payer.
    """
    group = member_group(group_id, paid_by_id, session)
    payee_id: int = data["paid_to_user_id"]
    amount: Decimal = data["amount"]

    if payee_id == paid_by_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A settlement cannot be made to yourself.",
            422,
            field="paid_to_user_id",
        )
    if not is_member(group_id, payee_id, session):
        raise AppError(
            ErrorCode.RECIPIENT_NOT_MEMBER,
            f"User {payee_id} is not a member of group {group_id}.",
            422,
            field="paid_to_user_id",
        )

    debt = outstanding_debt(group_id, payee_id, paid_by_id, session)
    warnings = [] if amount <= debt else [_overpayment_warning(amount, debt, paid_by_id, payee_id)]

    settlement = Settlement(
        group_id=group_id,
        paid_by_user_id=paid_by_id,
        paid_to_user_id=payee_id,
        amount=amount,
        notes=data.get("notes"),
    )
    session.add(settlement)
    session.flush()

    payer, payee = session.get(User, paid_by_id), session.get(User, payee_id)
    activity_service.record_activity(
        session,
        group_id=group_id,
        user_id=paid_by_id,
        activity_type=ActivityType.SETTLEMENT,
        description=f"{payer.username} paid {payee.username} {group.default_currency} {amount:.2f}",
        reference_id=settlement.id,
    )

    logger.info(
        "settlement %s in group %s: user %s -> user %s %s%s",
        settlement.id, group_id, paid_by_id, payee_id, amount,
        " (overpaid)" if warnings else "",
    )
    return settlement, warnings


def list_settlements(group_id: int, caller_id: int, session: Session) -> list[Settlement]:
    """Every settlement in the group, newest first."""
    member_group(group_id, caller_id, session)
    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.created_at.desc(), Settlement.id.desc())
    )
    return list(session.execute(stmt).scalars().all())
