"""
schemas/group_schema.py — Request shapes for groups, membership and
invitations.

Only shape is checked here. Existence, membership and ownership need the
database and live in group_service and invitation_service.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from settleup.app.schemas.common import (
    NonEmptyPatchMixin,
    currency_field,
    not_blank,
    user_id_field,
)


def _group_name(**kwargs) -> fields.Str:
    length = validate.Length(min=1, max=100, error="Group name must be between 1 and 100 characters.")
    return fields.Str(validate=[length, not_blank], **kwargs)


class CreateGroupSchema(Schema):
    """
    POST /groups

    Without default_currency the route uses the DEFAULT_CURRENCY setting.
    """

    name = _group_name(required=True)
    default_currency = currency_field("default_currency", load_default=None)


class UpdateGroupSchema(NonEmptyPatchMixin, Schema):
    """PATCH /groups/:id"""

    name = _group_name()
    default_currency = currency_field("default_currency")


class AddMemberSchema(Schema):
    """POST /groups/:id/members"""

    user_id = user_id_field(required=True)


class InviteSchema(Schema):
    """POST /groups/:id/invitations"""

    email = fields.Email(required=True, validate=validate.Length(max=255))
