"""
routes/settlements.py — Settlement endpoints (mounted at /api/v1/groups).

  POST /groups/:id/settlements   201  the caller pays another member
  GET  /groups/:id/settlements   200  newest first

An overpayment still answers 201; its OVERPAYMENT entry rides in the
envelope's warnings.
"""

from __future__ import annotations

from flask import Blueprint, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.models.settlement import Settlement
from settleup.app.notifications import dispatch
from settleup.app.routes.envelope import load_body, ok
from settleup.app.schemas.settlement_schema import CreateSettlementSchema
from settleup.app.services import notification_service, settlement_service

settlements_bp = Blueprint("settlements", __name__)


def settlement_payload(settlement: Settlement) -> dict:
    return {
        "id": settlement.id,
        "group_id": settlement.group_id,
        "paid_by_user_id": settlement.paid_by_user_id,
        "paid_to_user_id": settlement.paid_to_user_id,
        "amount": settlement.amount,
        "notes": settlement.notes,
        "created_at": settlement.created_at.isoformat() if settlement.created_at else None,
    }


@settlements_bp.route("/<int:group_id>/settlements", methods=["POST"])
@require_auth
def create_settlement(group_id: int):
    data = load_body(CreateSettlementSchema())
    settlement, warnings = settlement_service.create_settlement(group_id, g.user_id, data, db.session)
    outgoing = notification_service.settlement_recorded(settlement, db.session)
    db.session.refresh(settlement)  # created_at is set by the database
    payload = settlement_payload(settlement)
    db.session.commit()
    dispatch(outgoing)
    return ok(payload, 201, warnings=warnings)


@settlements_bp.route("/<int:group_id>/settlements", methods=["GET"])
@require_auth
def list_settlements(group_id: int):
    settlements = settlement_service.list_settlements(group_id, g.user_id, db.session)
    return ok([settlement_payload(s) for s in settlements])
