"""
routes/expenses.py — Expense endpoints.

Mounted at /api/v1 because it serves both group-scoped and expense-id paths:

  POST   /groups/:id/expenses   201  create and allocate
  GET    /groups/:id/expenses   200  live expenses, paginated with total
  GET    /expenses/:id          200  one expense with its splits
  PATCH  /expenses/:id          200  partial update, may reallocate
  DELETE /expenses/:id          200  soft delete

Handlers validate, call one service, commit and answer. Notifications are
composed inside the transaction and dispatched once it has committed.
"""

from __future__ import annotations

from flask import Blueprint, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.expense import Expense
from settleup.app.notifications import dispatch
from settleup.app.routes.envelope import load_body, ok, page_args
from settleup.app.schemas.expense_schema import CreateExpenseSchema, PatchExpenseSchema
from settleup.app.services import expense_service, notification_service

expenses_bp = Blueprint("expenses", __name__)


def _iso(value):
    return value.isoformat() if value else None


def expense_payload(expense: Expense) -> dict:
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_user_id": expense.paid_by_user_id,
        "paid_by_username": expense.payer.username,
        "description": expense.description,
        "amount": expense.amount,
        "currency": expense.currency,
        "split_policy": expense.split_policy.value,
        "category": expense.category.value,
        "notes": expense.notes,
        "expense_date": _iso(expense.expense_date),
        "created_at": _iso(expense.created_at),
        "updated_at": _iso(expense.updated_at),
        "deleted_at": _iso(expense.deleted_at),
        "splits": [
            {
                "id": split.id,
                "user_id": split.user_id,
                "username": split.user.username,
                "owed_amount": split.owed_amount,
                "paid_amount": split.paid_amount,
                "share_value": split.share_value,
            }
            for split in expense.splits
        ],
    }


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    data = load_body(CreateExpenseSchema())
    expense = expense_service.create_expense(group_id, g.user_id, data, db.session)
    outgoing = notification_service.expense_added(expense, db.session)
    payload = expense_payload(expense)
    db.session.commit()
    dispatch(outgoing)
    return ok(payload, 201)


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    page, limit = page_args()
    expenses, total = expense_service.list_expenses(
        group_id, g.user_id, db.session, page=page, limit=limit,
    )
    return ok(
        [expense_payload(e) for e in expenses],
        pagination={"page": page, "limit": limit, "total": total},
    )


@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    return ok(expense_payload(expense_service.get_expense(expense_id, g.user_id, db.session)))


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PATCH"])
@require_auth
def edit_expense(expense_id: int):
    data = load_body(PatchExpenseSchema())
    expense = expense_service.edit_expense(expense_id, g.user_id, data, db.session)
    payload = expense_payload(expense)
    db.session.commit()
    return ok(payload)


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    expense_service.delete_expense(expense_id, g.user_id, db.session)
    db.session.commit()
    return ok({"deleted": True, "expense_id": expense_id})
