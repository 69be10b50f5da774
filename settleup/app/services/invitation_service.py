"""
services/invitation_service.py — Inviting people to a group by email.

  invite_to_group()             any member invites an email address
  accept_pending_invitations()  run at registration for the new account

Inviting an email that already belongs to an account adds that user to
the group right away, the same as the owner adding them. Otherwise a
pending invitation is stored (at most one per group and email) and the
invitee joins when they register with that address.

Only flushes. The route commits and then dispatches notifications.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.group import Group
from settleup.app.models.invitation import Invitation, InvitationStatus
from settleup.app.models.user import User
from settleup.app.services.access import find_membership, member_group
from settleup.app.services.group_service import enroll

logger = logging.getLogger(__name__)


def _pending(session: Session, email: str, group_id: int | None = None):
    stmt = select(Invitation).where(
        Invitation.email == email,
        Invitation.status == InvitationStatus.PENDING,
    )
    if group_id is not None:
        stmt = stmt.where(Invitation.group_id == group_id)
    return session.execute(stmt.order_by(Invitation.id.asc())).scalars()


def invitation_payload(invitation: Invitation) -> dict:
    return {
        "id": invitation.id,
        "group_id": invitation.group_id,
        "email": invitation.email,
        "invited_by_user_id": invitation.invited_by_user_id,
        "status": invitation.status.value,
        "created_at": invitation.created_at.isoformat() if invitation.created_at else None,
    }


def invite_to_group(group_id: int, inviter_id: int, email: str, session: Session) -> dict:
    """
    Returns {"outcome", ...} where outcome is one of:

      "added"    the email has an account; "member" holds the new membership
      "invited"  a pending invitation was created
      "pending"  the same email was already invited to this group

    Raises GROUP_NOT_FOUND (404), FORBIDDEN (403) for non-members and
    ALREADY_MEMBER (409) when the email's account is already in the group.
    """
    group = member_group(group_id, inviter_id, session)
    email = email.strip().lower()

    invitee = session.execute(
        select(User).where(func.lower(User.email) == email)
    ).scalar_one_or_none()
    if invitee is not None:
        if find_membership(group_id, invitee.id, session) is not None:
            raise AppError(
                ErrorCode.ALREADY_MEMBER,
                f"{email} is already a member of group {group_id}.",
                409,
                field="email",
            )
        inviter = session.get(User, inviter_id)
        member = enroll(
            group, invitee, inviter_id,
            f"{inviter.username} added {invitee.username} to {group.name}", session,
        )
        return {"outcome": "added", "member": member}

    existing = _pending(session, email, group_id).first()
    if existing is not None:
        return {"outcome": "pending", "invitation": invitation_payload(existing)}

    invitation = Invitation(group_id=group_id, invited_by_user_id=inviter_id, email=email)
    session.add(invitation)
    session.flush()
    session.refresh(invitation)  # created_at and status defaults

    logger.info("invitation %s to group %s sent by user %s", invitation.id, group_id, inviter_id)
    return {"outcome": "invited", "invitation": invitation_payload(invitation)}


def accept_pending_invitations(user: User, session: Session) -> list[int]:
    """
    Joins a newly registered user to every group that invited their email.
    Returns the joined group ids, oldest invitation first.
    """
    joined: list[int] = []
    for invitation in list(_pending(session, user.email.lower())):
        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_at = datetime.now(timezone.utc)
        if invitation.group_id in joined or find_membership(invitation.group_id, user.id, session):
            continue
        group = session.get(Group, invitation.group_id)
        enroll(group, user, user.id, f"{user.username} joined {group.name}", session)
        joined.append(group.id)

    if joined:
        logger.info("user %s joined groups %s from invitations", user.id, joined)
    return joined
