"""
schemas/auth_schema.py — Request shapes for account and user endpoints.

Username and email uniqueness need a lookup and are checked in
auth_service and user_service.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from settleup.app.schemas.common import NonEmptyPatchMixin, not_blank

_USERNAME_RULES = [
    validate.Length(min=3, max=50, error="Username must be between 3 and 50 characters."),
    validate.Regexp(r"^[A-Za-z0-9_]+$", error="Username may only contain letters, numbers, and underscores."),
]

_MIN_PASSWORD = 8


class RegisterSchema(Schema):
    """POST /auth/register"""

    username = fields.Str(required=True, validate=_USERNAME_RULES)
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def check_password(self, value: str, **kwargs) -> None:
        problems = (
            (len(value) < _MIN_PASSWORD, f"Password must be at least {_MIN_PASSWORD} characters long."),
            (not any(ch.isalpha() for ch in value), "Password must contain at least one letter."),
            (not any(ch.isdigit() for ch in value), "Password must contain at least one digit."),
        )
        for failed, message in problems:
            if failed:
                raise ValidationError(message)


class LoginSchema(Schema):
    """POST /auth/login, by username."""

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class FcmTokenSchema(Schema):
    """PUT /users/me/fcm-token; null clears the stored token."""

    fcm_token = fields.Str(required=True, allow_none=True, validate=validate.Length(min=1, max=255))


class UpdateProfileSchema(NonEmptyPatchMixin, Schema):
    """PATCH /users/me; uniqueness is checked in user_service."""

    username = fields.Str(validate=_USERNAME_RULES)
    email = fields.Email(validate=validate.Length(max=255))


class SearchUsersSchema(Schema):
    """POST /users/search"""

    query = fields.Str(required=True, validate=[validate.Length(min=1, max=100), not_blank])
