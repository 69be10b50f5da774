"""
services/group_service.py — Groups and who belongs to them.

Who may do what:
  read a group       any member
  add a member       the owner
  rename, currency   any member
  invite by email    any member (invitation_service)
  remove a member    the owner (anyone) or the member themselves

Members are listed in membership order, (joined_at, id). The equal split
walks the same order, so the first member listed is the one who takes an
equal split's rounding residual.

Leaving a group does not touch the ledger: a departed member's splits and
settlements still count in the group's balances.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.activity import ActivityType
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership
from settleup.app.models.user import User
from settleup.app.services import activity_service
from settleup.app.services.access import find_membership, get_group_or_404, member_group

logger = logging.getLogger(__name__)

_IN_JOIN_ORDER = (Membership.joined_at.asc(), Membership.id.asc())


def _iso(value):
    return value.isoformat() if value else None


def _group_payload(group: Group, members: list[User] | None = None) -> dict:
    payload = {
        "id": group.id,
        "name": group.name,
        "owner_user_id": group.owner_user_id,
        "default_currency": group.default_currency,
        "created_at": _iso(group.created_at),
    }
    if members is not None:
        payload["members"] = [{"id": u.id, "username": u.username, "email": u.email} for u in members]
    return payload


def list_members(group_id: int, session: Session) -> list[User]:
    stmt = (
        select(User)
        .join(Membership, Membership.user_id == User.id)
        .where(Membership.group_id == group_id)
        .order_by(*_IN_JOIN_ORDER)
    )
    return list(session.execute(stmt).scalars())


def create_group(
        name: str,
        owner_id: int,
        session: Session,
        default_currency: str = "INR",
) -> dict:
    """The caller becomes owner and first member of a new group."""
    group = Group(name=name.strip(), owner_user_id=owner_id, default_currency=default_currency)
    session.add(group)
    session.flush()

    session.add(Membership(user_id=owner_id, group_id=group.id))
    owner = session.get(User, owner_id)
    activity_service.record_activity(
        session,
        group_id=group.id,
        user_id=owner_id,
        activity_type=ActivityType.GROUP_CREATED,
        description=f'{owner.username} created group "{group.name}"',
        reference_id=group.id,
    )
    session.refresh(group)

    logger.info("group %s created by user %s", group.id, owner_id)
    return _group_payload(group, [owner])


def list_groups(user_id: int, session: Session) -> list[dict]:
    """The caller's groups, oldest membership first."""
    stmt = (
        select(Group)
        .join(Membership, Membership.group_id == Group.id)
        .where(Membership.user_id == user_id)
        .order_by(*_IN_JOIN_ORDER)
    )
    return [_group_payload(group) for group in session.execute(stmt).scalars()]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    group = member_group(group_id, caller_id, session)
    return _group_payload(group, list_members(group_id, session))


def enroll(group: Group, newcomer: User, actor_id: int, description: str, session: Session) -> dict:
    """
    Adds newcomer to the group and records a member_joined entry by
    actor_id. Callers check ALREADY_MEMBER first.
    """
    membership = Membership(user_id=newcomer.id, group_id=group.id)
    session.add(membership)
    session.flush()
    session.refresh(membership)  # joined_at comes from the database

    activity_service.record_activity(
        session,
        group_id=group.id,
        user_id=actor_id,
        activity_type=ActivityType.MEMBER_JOINED,
        description=description,
    )

    logger.info("user %s joined group %s (by user %s)", newcomer.id, group.id, actor_id)
    return {
        "group_id": group.id,
        "user_id": newcomer.id,
        "username": newcomer.username,
        "joined_at": _iso(membership.joined_at),
    }


def add_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> dict:
    """
    Owner-only. Raises GROUP_NOT_FOUND / USER_NOT_FOUND (404), FORBIDDEN
    (403) for anyone but the owner and ALREADY_MEMBER (409).
    """
    group = get_group_or_404(group_id, session)
    if caller_id != group.owner_user_id:
        raise AppError(ErrorCode.FORBIDDEN, "Only the group owner may add members.", 403)

    newcomer = session.get(User, target_user_id)
    if newcomer is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {target_user_id} does not exist.", 404)
    if find_membership(group_id, target_user_id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {target_user_id} is already a member of group {group_id}.",
            409,
        )

    owner = session.get(User, caller_id)
    return enroll(
        group, newcomer, caller_id, f"{owner.username} added {newcomer.username} to {group.name}", session
    )


def update_group(group_id: int, caller_id: int, changes: dict, session: Session) -> dict:
    """
    Renames the group or changes its default currency. Any member may do
    this; existing expenses keep the currency they were recorded in.
    """
    group = member_group(group_id, caller_id, session)
    if "name" in changes:
        group.name = changes["name"].strip()
    if "default_currency" in changes:
        group.default_currency = changes["default_currency"]
    session.flush()

    logger.info("group %s updated by user %s: %s", group_id, caller_id, sorted(changes))
    return _group_payload(group, list_members(group_id, session))


def remove_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> None:
    """
    Removes target_user_id from the group.

    Raises GROUP_NOT_FOUND (404), FORBIDDEN (403) when the caller is not a
    member or is removing someone else without owning the group, and
    USER_NOT_FOUND (404) when the target is not in the group.
    """
    group = member_group(group_id, caller_id, session)
    if caller_id not in (group.owner_user_id, target_user_id):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You may only remove yourself from a group unless you are the owner.",
            403,
        )

    membership = find_membership(group_id, target_user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    leaver = session.get(User, target_user_id)
    session.delete(membership)
    activity_service.record_activity(
        session,
        group_id=group_id,
        user_id=caller_id,
        activity_type=ActivityType.MEMBER_LEFT,
        description=f"{leaver.username} left {group.name}",
    )
    logger.info("user %s left group %s (removed by %s)", target_user_id, group_id, caller_id)
