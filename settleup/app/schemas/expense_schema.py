"""
schemas/expense_schema.py — Request shapes for expense endpoints.

What is checked where:
  here (400)            types, lengths, category values, amount precision,
                        no splits with 'equal', no repeated split user
  split_service (422)   policy name, missing splits, sum and share rules
  expense_service       membership of payer and split users (422),
                        deleted expenses (422), permissions (403)

split_policy stays a free string so an unknown policy reaches the
allocator and fails there as INVALID_SPLIT_POLICY.

Schemas subclass marshmallow.Schema, not ma.Schema (see extensions.py).
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from settleup.app.errors import ErrorCode
from settleup.app.models.expense import Category, SplitPolicy
from settleup.app.schemas.common import (
    currency_field,
    decimal_places,
    money_field,
    not_blank,
    notes_field,
    user_id_field,
)


def _split_value(value: Decimal) -> None:
    # Zero is an exact or percentage member who owes nothing; shares reject
    # it in split_service. Four places is the storage scale of
    # Split.share_value.
    if value < 0:
        raise ValidationError("Split values must not be negative.")
    if decimal_places(value) > 4:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _description(**kwargs) -> fields.Str:
    length = validate.Length(min=1, max=255, error="Description must be between 1 and 255 characters.")
    return fields.Str(validate=[length, not_blank], **kwargs)


def _category(**kwargs) -> fields.Enum:
    return fields.Enum(
        Category, by_value=True, error_messages={"unknown": ErrorCode.INVALID_CATEGORY}, **kwargs
    )


class SplitInputSchema(Schema):
    """{"user_id", "value"}: an amount, a percentage or a weight depending on the policy."""

    user_id = user_id_field(required=True)
    value = fields.Decimal(required=True, validate=_split_value)


class _SplitShapeMixin:

    @validates_schema
    def check_split_shape(self, data: dict, **kwargs) -> None:
        splits = data.get("splits")
        if splits is None:
            return
        if data.get("split_policy") == SplitPolicy.EQUAL.value:
            raise ValidationError({"splits": [ErrorCode.SPLITS_SENT_FOR_EQUAL_POLICY]})
        user_ids = [item["user_id"] for item in splits]
        if len(set(user_ids)) != len(user_ids):
            raise ValidationError({"splits": [ErrorCode.DUPLICATE_SPLIT_USER]})


class CreateExpenseSchema(_SplitShapeMixin, Schema):
    """
    POST /groups/:id/expenses

    Omitted paid_by_user_id means the caller paid; omitted currency means
    the group's default_currency. 'equal' takes no splits and covers every
    current member; the other policies need a splits array, which the
    allocator enforces (SPLITS_REQUIRED, 422).
    """

    paid_by_user_id = user_id_field(load_default=None)
    description = _description(required=True)
    amount = money_field(required=True)
    split_policy = fields.Str(load_default=SplitPolicy.EQUAL.value)
    currency = currency_field(load_default=None)
    category = _category(load_default=Category.OTHER)
    notes = notes_field(load_default=None)
    expense_date = fields.Date(load_default=None)
    splits = fields.List(fields.Nested(SplitInputSchema), load_default=None)


class PatchExpenseSchema(_SplitShapeMixin, Schema):
    """
    PATCH /expenses/:id — every field optional, only sent fields change.

    Whether a change reallocates, and whether stored share values can be
    reused, is decided in expense_service.edit_expense().
    """

    paid_by_user_id = user_id_field()
    description = _description()
    amount = money_field()
    split_policy = fields.Str()
    currency = currency_field()
    category = _category()
    notes = notes_field()
    expense_date = fields.Date()
    splits = fields.List(fields.Nested(SplitInputSchema))
