"""
services/expense_service.py — Expenses and the splits that back them.

Permissions:
  create / list / get   any member of the group
  edit / delete         the expense's payer or the group owner

Payer and split users must both be current members (PAYER_NOT_MEMBER,
SPLIT_USER_NOT_MEMBER, 422). Soft-deleted expenses can be read but not
edited (EXPENSE_DELETED, 422); deleting one again does nothing.

Splits are always allocated before anything is written or replaced, so a
rejected allocation leaves the stored expense untouched. Allocation errors
come straight from split_service.

Works on the session it is given and only flushes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.activity import ActivityType
from settleup.app.models.expense import Category, Expense, SplitPolicy
from settleup.app.models.split import Split
from settleup.app.models.user import User
from settleup.app.services import activity_service
from settleup.app.services.access import get_group_or_404, member_group, require_member
from settleup.app.services.balance_service import get_member_ids
from settleup.app.services.split_service import allocate_splits, resolve_policy

logger = logging.getLogger(__name__)

# Any of these in a PATCH means the splits are recomputed.
_ALLOCATION_FIELDS = ("amount", "paid_by_user_id", "split_policy", "splits")

# Plain fields a PATCH may overwrite as given.
_PLAIN_FIELDS = ("category", "currency", "notes")


def _load_expense(expense_id: int, session: Session, lock: bool = False) -> Expense:
    # Soft-deleted rows are returned too; callers decide what that means.
    expense = session.get(Expense, expense_id, with_for_update=lock or None)
    if expense is None:
        raise AppError(ErrorCode.EXPENSE_NOT_FOUND, f"Expense {expense_id} does not exist.", 404)
    return expense


def _check_can_modify(expense: Expense, caller_id: int, verb: str, session: Session) -> None:
    require_member(expense.group_id, caller_id, session)
    owner_id = get_group_or_404(expense.group_id, session).owner_user_id
    if caller_id not in (expense.paid_by_user_id, owner_id):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only the original payer or group owner may {verb} this expense.",
            403,
        )


def _check_participants(
        group_id: int,
        payer_id: int,
        inputs: list[dict] | None,
        member_ids: list[int],
) -> None:
    """The payer first, then each split user in request order."""
    members = set(member_ids)
    if payer_id not in members:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {payer_id} is not a member of group {group_id}.",
            422,
            field="paid_by_user_id",
        )
    for item in inputs or ():
        if item["user_id"] not in members:
            raise AppError(
                ErrorCode.SPLIT_USER_NOT_MEMBER,
                f"User {item['user_id']} is not a member of group {group_id}.",
                422,
                field="splits",
            )


def _previous_inputs(expense: Expense) -> list[dict] | None:
    """Allocator inputs rebuilt from the share_value stored on each split."""
    if expense.split_policy == SplitPolicy.EQUAL:
        return None
    return [
        {"user_id": split.user_id, "value": split.share_value}
        for split in expense.splits
        if split.share_value is not None
    ]


def _write_splits(expense: Expense, rows: list[dict], session: Session) -> None:
    session.add_all(
        Split(
            expense_id=expense.id,
            user_id=row["user_id"],
            owed_amount=row["owed_amount"],
            paid_amount=row["paid_amount"],
            share_value=row["share_value"],
        )
        for row in rows
    )
    session.flush()


def _swap_splits(expense: Expense, rows: list[dict], session: Session) -> None:
    # The old generation is flushed away first: UNIQUE(expense_id, user_id).
    for split in list(expense.splits):
        session.delete(split)
    session.flush()
    _write_splits(expense, rows, session)
    session.expire(expense, ["splits"])


def _name(user_id: int, session: Session) -> str:
    user = session.get(User, user_id)
    return user.username if user else f"user_{user_id}"


def create_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Adds an expense with its splits.

    `data` comes from CreateExpenseSchema. The payer defaults to the
    caller and the currency to the group's.
    """
    group = member_group(group_id, caller_id, session)

    payer_id: int = data.get("paid_by_user_id") or caller_id
    amount: Decimal = data["amount"]
    policy = data.get("split_policy", SplitPolicy.EQUAL.value)
    inputs: list[dict] | None = data.get("splits")

    member_ids = get_member_ids(group_id, session)
    _check_participants(group_id, payer_id, inputs, member_ids)
    rows = allocate_splits(amount, payer_id, policy, member_ids, inputs)

    expense = Expense(
        group_id=group_id,
        paid_by_user_id=payer_id,
        description=data["description"].strip(),
        amount=amount,
        currency=data.get("currency") or group.default_currency,
        split_policy=resolve_policy(policy),
        category=data.get("category", Category.OTHER),
        notes=data.get("notes"),
    )
    if data.get("expense_date") is not None:
        expense.expense_date = data["expense_date"]
    session.add(expense)
    session.flush()
    _write_splits(expense, rows, session)

    activity_service.record_activity(
        session,
        group_id=group_id,
        user_id=caller_id,
        activity_type=ActivityType.EXPENSE_ADDED,
        description=(
            f'{_name(payer_id, session)} added "{expense.description}" '
            f"({expense.currency} {expense.amount:.2f})"
        ),
        reference_id=expense.id,
    )
    session.refresh(expense)

    logger.info(
        "expense %s added to group %s: %s %s, %s split over %d",
        expense.id, group_id, expense.currency, expense.amount,
        expense.split_policy.value, len(rows),
    )
    return expense


def list_expenses(
        group_id: int,
        caller_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
) -> tuple[list[Expense], int]:
    """(page of live expenses by expense_date desc, count of all live expenses)."""
    member_group(group_id, caller_id, session)

    live = (Expense.group_id == group_id, Expense.deleted_at.is_(None))
    total = session.execute(select(func.count(Expense.id)).where(*live)).scalar_one()
    stmt = (
        select(Expense)
        .where(*live)
        .order_by(Expense.expense_date.desc(), Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(session.execute(stmt).scalars()), total


def get_expense(expense_id: int, caller_id: int, session: Session) -> Expense:
    # Deleted expenses are still readable; deleted_at tells the client.
    expense = _load_expense(expense_id, session)
    require_member(expense.group_id, caller_id, session)
    return expense


def edit_expense(
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Applies a partial update from UpdateExpenseSchema.

    Changing amount, payer, policy or splits reallocates the expense and
    replaces its splits. When no new splits are sent, a non-equal policy
    reuses the stored share values; a switch to a non-equal policy without
    splits raises SPLITS_REQUIRED.

    The expense row stays locked until the route commits, so concurrent
    edits of one expense are applied one after the other. updated_at is
    bumped on every successful edit.
    """
    expense = _load_expense(expense_id, session, lock=True)
    require_member(expense.group_id, caller_id, session)
    if expense.is_deleted:
        raise AppError(
            ErrorCode.EXPENSE_DELETED,
            f"Expense {expense_id} has been deleted and cannot be edited.",
            422,
        )
    _check_can_modify(expense, caller_id, "edit", session)

    rows = None
    if any(key in data for key in _ALLOCATION_FIELDS):
        payer_id = data.get("paid_by_user_id", expense.paid_by_user_id)
        amount = data.get("amount", expense.amount)
        policy = resolve_policy(data.get("split_policy", expense.split_policy))
        if "splits" in data:
            inputs = data["splits"]
        elif policy == expense.split_policy:
            inputs = _previous_inputs(expense)
        else:
            inputs = None

        member_ids = get_member_ids(expense.group_id, session)
        _check_participants(expense.group_id, payer_id, inputs, member_ids)
        rows = allocate_splits(amount, payer_id, policy, member_ids, inputs)

        expense.paid_by_user_id = payer_id
        expense.amount = amount
        expense.split_policy = policy

    if "description" in data:
        expense.description = data["description"].strip()
    for key in _PLAIN_FIELDS:
        if key in data:
            setattr(expense, key, data[key])
    if data.get("expense_date") is not None:
        expense.expense_date = data["expense_date"]

    if rows is not None:
        _swap_splits(expense, rows, session)
    expense.updated_at = datetime.now(timezone.utc)

    activity_service.record_activity(
        session,
        group_id=expense.group_id,
        user_id=caller_id,
        activity_type=ActivityType.EXPENSE_UPDATED,
        description=f'{_name(caller_id, session)} updated "{expense.description}"',
        reference_id=expense.id,
    )
    session.flush()
    session.refresh(expense)
    session.expire(expense, ["payer", "splits"])  # payer may have changed

    logger.info(
        "expense %s edited by user %s, splits %s",
        expense.id, caller_id, "reallocated" if rows is not None else "kept",
    )
    return expense


def delete_expense(expense_id: int, caller_id: int, session: Session) -> None:
    """
    Soft delete: deleted_at is set and balances stop counting the expense.

    The expense and its splits are kept. Raises EXPENSE_NOT_FOUND (404) or
    FORBIDDEN (403); an expense that is already deleted is left alone.
    """
    expense = _load_expense(expense_id, session)
    _check_can_modify(expense, caller_id, "delete", session)
    if expense.is_deleted:
        return

    expense.deleted_at = datetime.now(timezone.utc)
    activity_service.record_activity(
        session,
        group_id=expense.group_id,
        user_id=caller_id,
        activity_type=ActivityType.EXPENSE_DELETED,
        description=(
            f'{_name(caller_id, session)} deleted "{expense.description}" '
            f"({expense.currency} {expense.amount:.2f})"
        ),
        reference_id=expense.id,
    )
    session.flush()
    logger.info("expense %s deleted by user %s", expense.id, caller_id)
