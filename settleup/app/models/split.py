"""
models/split.py — One member's share of one expense.

  owed_amount   what the member owes toward the expense
  paid_amount   the whole expense amount on the payer's row, 0.00 elsewhere
  share_value   the policy input behind owed_amount (exact amount,
                percentage or weight; NULL for 'equal'), kept so an edit
                of amount or payer can reallocate without new input

owed_amount carries no sign check: the first member's equal share absorbs
the rounding residual and can dip below zero in a very large group.
Every split set is checked to sum to the expense amount by split_service
before it is written.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class Split(db.Model):
    __tablename__ = "splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        CheckConstraint("paid_amount >= 0", name="ck_splits_paid_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    expense_id: Mapped[int] = mapped_column(ForeignKey("expenses.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))

    owed_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0"
    )
    share_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Split expense={self.expense_id} user={self.user_id} "
            f"owed={self.owed_amount} paid={self.paid_amount}>"
        )
