"""
models/invitation.py — Pending group invitations for people without an
account yet.

An invitation is keyed by email. When someone registers with that email
every pending invitation is accepted and they join those groups. Inviting
an email that already has an account adds the user straight away and no
row is written here.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settleup.app.extensions import db


class InvitationStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"


class Invitation(db.Model):
    __tablename__ = "invitations"

    __table_args__ = (
        CheckConstraint("email LIKE '%@%'", name="ck_invitations_email_format"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), index=True)
    invited_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))

    # Stored lower-cased; matched against users.email on registration.
    email: Mapped[str] = mapped_column(String(255), index=True)

    status: Mapped[InvitationStatus] = mapped_column(
        Enum(
            InvitationStatus,
            name="invitation_status_enum",
            native_enum=False,
            length=20,
            values_callable=lambda cls: [m.value for m in cls],
        ),
        default=InvitationStatus.PENDING,
        server_default=InvitationStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    group: Mapped["Group"] = relationship("Group")  # noqa: F821
    inviter: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Invitation {self.id} group={self.group_id} {self.email} {self.status.value}>"
