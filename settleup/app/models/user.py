"""
models/user.py — User table definition.

A user is a ledger participant. Balances only need the id; username and
email are shown in balance views and notifications, fcm_token routes push
messages to the user's device.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from settleup.app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(String(50), unique=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)

    # bcrypt digest, never returned by any endpoint.
    password_hash: Mapped[str] = mapped_column(String(255))

    # NULL until the client registers a device; cleared on logout.
    fcm_token: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.id} {self.username!r}>"
