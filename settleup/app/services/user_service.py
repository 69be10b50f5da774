"""
services/user_service.py — User lookup, search, profile and notification settings.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; services only flush.
"""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.user import User
from settleup.app.services.auth_service import build_user_dict


def get_user_by_username(username: str, session: Session) -> dict:
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User '{username}' not found.",
            404,
        )
    return build_user_dict(user)


def update_fcm_token(user_id: int, fcm_token: str | None, session: Session) -> dict:
    """Stores (or clears, with None) the push token used for notifications."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    user.fcm_token = fcm_token
    session.flush()
    return {**build_user_dict(user), "has_fcm_token": fcm_token is not None}


def search_users(query: str, session: Session, limit: int = 20) -> list[dict]:
    """
    Case-insensitive substring match on username or email, for finding
    someone to add to a group. At most `limit` results, by username.
    """
    needle = query.strip()
    stmt = (
        select(User)
        .where(or_(
            User.username.icontains(needle, autoescape=True),
            User.email.icontains(needle, autoescape=True),
        ))
        .order_by(User.username.asc())
        .limit(limit)
    )
    return [build_user_dict(u) for u in session.execute(stmt).scalars()]


def update_profile(user_id: int, changes: dict, session: Session) -> dict:
    """
    Changes the caller's username and/or email.

    Raises USER_NOT_FOUND (404), and DUPLICATE_USERNAME / DUPLICATE_EMAIL
    (409) when another account already uses the new value.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.", 404)

    for field, column, code in (
        ("username", User.username, ErrorCode.DUPLICATE_USERNAME),
        ("email", User.email, ErrorCode.DUPLICATE_EMAIL),
    ):
        if field not in changes:
            continue
        value = changes[field]
        taken = session.execute(
            select(User.id).where(column == value, User.id != user_id)
        ).first()
        if taken is not None:
            raise AppError(code, f"The {field} '{value}' is already in use.", 409, field=field)
        setattr(user, field, value)

    session.flush()
    return build_user_dict(user)
