"""
services/activity_service.py — Activity feed writes and reads.

record_activity() is called by the other services inside the same unit of
work as the write it describes, so the feed entry commits (or rolls back)
with it. Reads are newest first and paginated with page/limit.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from settleup.app.models.activity import Activity, ActivityType
from settleup.app.models.membership import Membership
from settleup.app.services.access import member_group


def _serialize_activity(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "group_id": activity.group_id,
        "group_name": activity.group.name if activity.group else None,
        "user_id": activity.user_id,
        "username": activity.user.username if activity.user else None,
        "type": activity.type.value,
        "reference_id": activity.reference_id,
        "description": activity.description,
        "created_at": activity.created_at.isoformat() if activity.created_at else None,
    }


def _paginated(stmt, page: int, limit: int, session: Session) -> list[dict]:
    stmt = (
        stmt.options(joinedload(Activity.user), joinedload(Activity.group))
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [_serialize_activity(a) for a in session.execute(stmt).scalars().all()]


# ── Public service functions ───────────────────────────────────────────────

def record_activity(
        session: Session,
        group_id: int,
        user_id: int,
        activity_type: ActivityType,
        description: str,
        reference_id: int | None = None,
) -> Activity:
    """Adds a feed entry to the current unit of work."""
    activity = Activity(
        group_id=group_id,
        user_id=user_id,
        type=activity_type,
        reference_id=reference_id,
        description=description[:500],
    )
    session.add(activity)
    session.flush()
    return activity


def list_user_activity(
        user_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
) -> list[dict]:
    """Feed across every group the user currently belongs to."""
    group_ids = select(Membership.group_id).where(Membership.user_id == user_id)
    stmt = select(Activity).where(Activity.group_id.in_(group_ids))
    return _paginated(stmt, page, limit, session)


def list_group_activity(
        group_id: int,
        caller_id: int,
        session: Session,
        page: int = 1,
        limit: int = 20,
) -> list[dict]:
    """
    Feed for one group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404) — group does not exist
      AppError(FORBIDDEN, 403)       — caller is not a member
    """
    member_group(group_id, caller_id, session)
    stmt = select(Activity).where(Activity.group_id == group_id)
    return _paginated(stmt, page, limit, session)
