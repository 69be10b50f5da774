"""
models/expense.py — Expense table definition, plus the SplitPolicy and
Category enums.

An expense is live while deleted_at is NULL. Soft-deleted expenses keep
their rows and splits but drop out of every balance.

Money is Numeric(12, 2), never Float. currency is a label; nothing in the
ledger converts between currencies. Enums are stored by value in plain
VARCHAR columns so PostgreSQL and SQLite share one schema.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class SplitPolicy(str, enum.Enum):
    EQUAL      = "equal"
    EXACT      = "exact"
    PERCENTAGE = "percentage"
    SHARES     = "shares"


class Category(str, enum.Enum):
    FOOD          = "food"
    TRANSPORT     = "transport"
    RENT          = "rent"
    UTILITIES     = "utilities"
    ENTERTAINMENT = "entertainment"
    OTHER         = "other"


def _by_value(enum_cls: type[enum.Enum], name: str) -> Enum:
    # values_callable stores 'equal', not the member name 'EQUAL'.
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda cls: [member.value for member in cls],
    )


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint("LENGTH(TRIM(description)) > 0", name="ck_expenses_description_nonempty"),
        Index("idx_expenses_active", "group_id", postgresql_where="deleted_at IS NULL"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="RESTRICT"), index=True)
    paid_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))

    description: Mapped[str] = mapped_column(String(255))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="INR", server_default="INR")

    split_policy: Mapped[SplitPolicy] = mapped_column(
        _by_value(SplitPolicy, "split_policy_enum"),
        default=SplitPolicy.EQUAL,
        server_default=SplitPolicy.EQUAL.value,
    )
    category: Mapped[Category] = mapped_column(
        _by_value(Category, "category_enum"),
        default=Category.OTHER,
        server_default=Category.OTHER.value,
    )

    notes: Mapped[str | None] = mapped_column(Text)

    # When the money was spent, as opposed to when it was recorded.
    expense_date: Mapped[date] = mapped_column(Date, default=date.today)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    payer: Mapped["User"] = relationship("User", foreign_keys=[paid_by_user_id])  # noqa: F821

    # Replaced as a whole when an edit reallocates.
    splits: Mapped[list["Split"]] = relationship(  # noqa: F821
        "Split",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Split.id",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:  # pragma: no cover
        state = "deleted" if self.is_deleted else "live"
        return f"<Expense {self.id} group={self.group_id} {self.amount} {state}>"
