"""
services/access.py — Group lookups and membership checks shared by services.

Existence is checked before membership, so an unknown group is a 404 for
everyone and a known group is a 403 for outsiders.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership


def get_group_or_404(group_id: int, session: Session) -> Group:
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)
    return group


def find_membership(group_id: int, user_id: int, session: Session) -> Membership | None:
    stmt = select(Membership).where(
        Membership.group_id == group_id, Membership.user_id == user_id
    )
    return session.execute(stmt).scalar_one_or_none()


def is_member(group_id: int, user_id: int, session: Session) -> bool:
    return find_membership(group_id, user_id, session) is not None


def require_member(group_id: int, user_id: int, session: Session) -> None:
    """FORBIDDEN (403) unless user_id currently belongs to group_id."""
    if not is_member(group_id, user_id, session):
        raise AppError(ErrorCode.FORBIDDEN, f"You are not a member of group {group_id}.", 403)


def member_group(group_id: int, user_id: int, session: Session) -> Group:
    """The group, after both the 404 and the 403 checks have passed."""
    group = get_group_or_404(group_id, session)
    require_member(group_id, user_id, session)
    return group
