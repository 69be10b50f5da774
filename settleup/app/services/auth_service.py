"""
services/auth_service.py — Accounts and access tokens.

Identity is an edge concern for the ledger: every other service receives a
trusted caller id and nothing more. This module is the only place that
knows how that id is proven.

  - Passwords are bcrypt-hashed with BCRYPT_LOG_ROUNDS; the raw password
    is never stored or logged.
  - Tokens are HS256 JWTs carrying sub (user id as str), iat, exp and a
    random jti. There is no refresh token: when JWT_ACCESS_TOKEN_EXPIRES
    runs out the client logs in again.

No flask.request or flask.g here. current_app is read for JWT and bcrypt
settings only.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.user import User
from settleup.app.services import invitation_service

logger = logging.getLogger(__name__)


def _hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _password_matches(user: User | None, password: str) -> bool:
    if user is None:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8"))


def _issue_token(user_id: int) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        "jti": secrets.token_hex(8),  # two tokens minted in one second still differ
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _find_by(column, value, session: Session) -> User | None:
    return session.execute(select(User).where(column == value)).scalar_one_or_none()


def build_user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _session_payload(user: User) -> dict:
    return {"user": build_user_dict(user), "access_token": _issue_token(user.id)}


# ── Public service functions ───────────────────────────────────────────────

def register_user(username: str, email: str, password: str, session: Session) -> dict:
    """
    Creates an account, accepts any pending group invitations for its
    email and logs it in. joined_group_ids lists the groups joined that way.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)
      AppError(DUPLICATE_USERNAME, 409)
    """
    for column, value, code, field in (
        (User.email, email, ErrorCode.DUPLICATE_EMAIL, "email"),
        (User.username, username, ErrorCode.DUPLICATE_USERNAME, "username"),
    ):
        if _find_by(column, value, session) is not None:
            raise AppError(code, f"The {field} '{value}' is already in use.", 409, field=field)

    user = User(username=username, email=email, password_hash=_hash_password(password))
    session.add(user)
    session.flush()
    session.refresh(user)  # created_at is set by the database

    joined = invitation_service.accept_pending_invitations(user, session)

    logger.info("user %s registered", user.id)
    return {**_session_payload(user), "joined_group_ids": joined}


def login_user(username: str, password: str, session: Session) -> dict:
    """
    Exchanges a username and password for a fresh access token.

    Unknown usernames and wrong passwords raise the same INVALID_CREDENTIALS
    (401) so the endpoint cannot be used to probe for accounts.
    """
    user = _find_by(User.username, username, session)
    if not _password_matches(user, password):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )
    return _session_payload(user)


def get_current_user(user_id: int, session: Session) -> dict:
    user = session.get(User, user_id)
    if user is None:
        # Token is valid but the account is gone.
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.", 404)
    return build_user_dict(user)
