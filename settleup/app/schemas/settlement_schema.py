"""
schemas/settlement_schema.py — Request shape for recording a settlement.

The payer is the authenticated caller, so self-settlement, recipient
membership and the overpayment warning are all settlement_service's job.
"""

from __future__ import annotations

from marshmallow import Schema

from settleup.app.schemas.common import money_field, notes_field, user_id_field


class CreateSettlementSchema(Schema):
    """POST /groups/:id/settlements"""

    paid_to_user_id = user_id_field(required=True)
    amount = money_field(required=True)
    notes = notes_field(load_default=None)
