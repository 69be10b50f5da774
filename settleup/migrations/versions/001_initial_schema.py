"""Initial ledger schema.

Revision: 001_initial_schema
Created:  2026-10-18

Applied migrations are never edited; schema changes go in a new revision.

Tables are created parent-first (users, groups, memberships, expenses,
splits, settlements, activities) and dropped in the reverse order.

Enumerated columns (split_policy, category, activities.type) are VARCHAR
plus a CHECK of the allowed values, matching Enum(native_enum=False) in the
models so SQLite test databases get the same shape.

Foreign keys are RESTRICT except splits.expense_id and activities.group_id,
which cascade from their owner.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


_SPLIT_POLICIES = ("equal", "exact", "percentage", "shares")
_CATEGORIES = ("food", "transport", "rent", "utilities", "entertainment", "other")
_ACTIVITY_TYPES = (
    "group_created",
    "expense_added",
    "expense_updated",
    "expense_deleted",
    "settlement",
    "member_joined",
    "member_left",
)

_TABLES = ("users", "groups", "memberships", "expenses", "splits", "settlements", "activities")

# (index name, table, columns)
_INDEXES = (
    ("idx_memberships_group", "memberships", ["group_id"]),
    ("idx_memberships_user", "memberships", ["user_id"]),
    ("idx_expenses_group", "expenses", ["group_id"]),
    ("idx_splits_expense", "splits", ["expense_id"]),
    ("idx_settlements_group", "settlements", ["group_id"]),
    ("idx_activities_group_created", "activities", ["group_id", "created_at"]),
)


def _in_check(column: str, values: tuple[str, ...], name: str) -> sa.CheckConstraint:
    allowed = ", ".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} IN ({allowed})", name=name)


def _nonempty(column: str, name: str) -> sa.CheckConstraint:
    return sa.CheckConstraint(f"LENGTH(TRIM({column})) > 0", name=name)


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True)


def _ref(column: str, target: str, fk_name: str, ondelete: str = "RESTRICT") -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey(f"{target}.id", ondelete=ondelete, name=fk_name),
        nullable=False,
    )


def _stamp(column: str = "created_at") -> sa.Column:
    return sa.Column(
        column, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
    )


def _money(column: str, **kwargs) -> sa.Column:
    return sa.Column(column, sa.Numeric(12, 2), nullable=False, **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("fcm_token", sa.String(255)),
        _stamp(),
        _nonempty("username", "ck_users_username_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    op.create_table(
        "groups",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        _ref("owner_user_id", "users", "fk_groups_owner"),
        sa.Column("default_currency", sa.String(3), nullable=False, server_default="INR"),
        _stamp(),
        _nonempty("name", "ck_groups_name_nonempty"),
    )

    # (joined_at, id) is the member order the equal split relies on.
    op.create_table(
        "memberships",
        _id(),
        _ref("user_id", "users", "fk_memberships_user"),
        _ref("group_id", "groups", "fk_memberships_group"),
        _stamp("joined_at"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    op.create_table(
        "expenses",
        _id(),
        _ref("group_id", "groups", "fk_expenses_group"),
        _ref("paid_by_user_id", "users", "fk_expenses_payer"),
        sa.Column("description", sa.String(255), nullable=False),
        _money("amount"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("split_policy", sa.String(20), nullable=False, server_default="equal"),
        sa.Column("category", sa.String(20), nullable=False, server_default="other"),
        sa.Column("notes", sa.Text()),
        sa.Column(
            "expense_date", sa.Date(), nullable=False, server_default=sa.text("CURRENT_DATE")
        ),
        _stamp(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        _nonempty("description", "ck_expenses_description_nonempty"),
        _in_check("split_policy", _SPLIT_POLICIES, "ck_expenses_split_policy"),
        _in_check("category", _CATEGORIES, "ck_expenses_category"),
    )

    # No sign check on owed_amount: the equal-split residual may be negative.
    op.create_table(
        "splits",
        _id(),
        _ref("expense_id", "expenses", "fk_splits_expense", ondelete="CASCADE"),
        _ref("user_id", "users", "fk_splits_user"),
        _money("owed_amount"),
        _money("paid_amount", server_default="0"),
        sa.Column("share_value", sa.Numeric(12, 4)),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        sa.CheckConstraint("paid_amount >= 0", name="ck_splits_paid_non_negative"),
    )

    op.create_table(
        "settlements",
        _id(),
        _ref("group_id", "groups", "fk_settlements_group"),
        _ref("paid_by_user_id", "users", "fk_settlements_payer"),
        _ref("paid_to_user_id", "users", "fk_settlements_recipient"),
        _money("amount"),
        sa.Column("notes", sa.Text()),
        _stamp(),
        sa.CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint(
            "paid_by_user_id <> paid_to_user_id", name="ck_settlements_no_self_settlement"
        ),
    )

    op.create_table(
        "activities",
        _id(),
        _ref("group_id", "groups", "fk_activities_group", ondelete="CASCADE"),
        _ref("user_id", "users", "fk_activities_user"),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("reference_id", sa.Integer()),
        sa.Column("description", sa.String(500), nullable=False),
        _stamp(),
        _in_check("type", _ACTIVITY_TYPES, "ck_activities_type"),
    )

    for name, table, columns in _INDEXES:
        op.create_index(name, table, columns)

    # Balance reads only ever look at live expenses.
    op.create_index(
        "idx_expenses_active",
        "expenses",
        ["group_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("idx_expenses_active", table_name="expenses")
    for name, table, _ in reversed(_INDEXES):
        op.drop_index(name, table_name=table)

    for table in reversed(_TABLES):
        op.drop_table(table)
