"""Group invitations by email.

Revision: 002_invitations
Revises:  001_initial_schema
Created:  2026-10-18

status is VARCHAR plus a CHECK, like the enumerated columns in 001.
Invitations cascade with their group.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "002_invitations"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_invitations_group"),
            nullable=False,
        ),
        sa.Column(
            "invited_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_invitations_inviter"),
            nullable=False,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_invitations_email_format"),
        sa.CheckConstraint("status IN ('pending', 'accepted')", name="ck_invitations_status"),
    )
    op.create_index("idx_invitations_group", "invitations", ["group_id"])
    op.create_index("idx_invitations_email", "invitations", ["email"])


def downgrade() -> None:
    op.drop_index("idx_invitations_email", table_name="invitations")
    op.drop_index("idx_invitations_group", table_name="invitations")
    op.drop_table("invitations")
