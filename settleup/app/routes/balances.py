"""
routes/balances.py — Balance views (mounted at /api/v1). Read-only.

  GET /groups/:id/balances   200  simplified transfers and total spent
  GET /balances              200  the caller's per-friend totals across groups

Nothing is cached: every call folds the live ledger again.
"""

from __future__ import annotations

from flask import Blueprint, current_app, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.routes.envelope import ok
from settleup.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/groups/<int:group_id>/balances", methods=["GET"])
@require_auth
def get_group_balances(group_id: int):
    return ok(balance_service.get_group_balance_summary(group_id, g.user_id, db.session))


@balances_bp.route("/balances", methods=["GET"])
@require_auth
def get_friend_balances():
    summary = balance_service.get_friend_balance_summary(
        g.user_id, db.session, currency=current_app.config["DEFAULT_CURRENCY"],
    )
    return ok(summary)
