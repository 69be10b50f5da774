"""
middleware/auth_middleware.py — Bearer-token authentication for routes.

@require_auth turns "Authorization: Bearer <jwt>" into g.user_id (an int)
or fails the request with 401:

  TOKEN_MISSING   no Authorization header at all
  TOKEN_INVALID   not "Bearer <token>", bad signature, or unusable `sub`
  TOKEN_EXPIRED   valid signature, `exp` in the past

This only establishes who is calling. Group-level permissions (403) are
the services' business.
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from settleup.app.errors import AppError, ErrorCode

_INVALID_MESSAGES = {
    "header": "Authorization header must be in the format: Bearer <token>.",
    "signature": "The access token is invalid or has been tampered with.",
    "subject": "The access token does not name a valid user.",
}


def _reject(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def _token_from_header() -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise _reject(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _reject(ErrorCode.TOKEN_INVALID, _INVALID_MESSAGES["header"])
    return parts[1]


def _claims(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _reject(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
        ) from None
    except jwt.InvalidTokenError:
        raise _reject(ErrorCode.TOKEN_INVALID, _INVALID_MESSAGES["signature"]) from None


def authenticate_request() -> int:
    """
    The caller's user id for the current request, or AppError(401).

    Separate from the decorator so it can be called directly inside a
    test_request_context.
    """
    subject = _claims(_token_from_header())["sub"]
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise _reject(ErrorCode.TOKEN_INVALID, _INVALID_MESSAGES["subject"]) from None


def require_auth(view: Callable) -> Callable:
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        g.user_id = authenticate_request()
        return view(*args, **kwargs)

    return wrapper
