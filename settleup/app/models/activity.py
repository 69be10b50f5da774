"""
models/activity.py — Activity feed table definition.

Append-only record of ledger-affecting writes, written in the same
transaction as the write it describes. Nothing reads it for balances.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class ActivityType(str, enum.Enum):
    GROUP_CREATED   = "group_created"
    EXPENSE_ADDED   = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    SETTLEMENT      = "settlement"
    MEMBER_JOINED   = "member_joined"
    MEMBER_LEFT     = "member_left"


class Activity(db.Model):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # The member who performed the action.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    type: Mapped[ActivityType] = mapped_column(
        Enum(
            ActivityType,
            name="activity_type_enum",
            native_enum=False,
            length=30,
            values_callable=lambda cls: [m.value for m in cls],
        ),
        nullable=False,
    )

    # Id of the expense or settlement the entry refers to, if any.
    reference_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821
    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Activity id={self.id} type={self.type} group_id={self.group_id}>"
