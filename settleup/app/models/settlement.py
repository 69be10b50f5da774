"""
models/settlement.py — Settlement table definition.

A settlement records money handed from one member to another outside any
expense. In the net-balance fold it credits the payer and debits the
payee by `amount`, so paying a creditor moves both balances toward zero.

Settlements are never edited or deleted. A wrong one is corrected by a
settlement in the opposite direction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from settleup.app.extensions import db


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        # Last line of defence behind SELF_SETTLEMENT in settlement_service.
        CheckConstraint(
            "paid_by_user_id <> paid_to_user_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        index=True,
    )

    # Always the authenticated caller; never taken from the request body.
    paid_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))
    paid_to_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement {self.id} group={self.group_id} "
            f"{self.paid_by_user_id}->{self.paid_to_user_id} {self.amount}>"
        )
