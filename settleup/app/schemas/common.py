"""
schemas/common.py — Validators and field builders shared by the request schemas.

Field builders take the usual marshmallow keyword arguments (required,
load_default, ...) so create and patch schemas can share one definition.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import ValidationError, fields, validate, validates_schema

from settleup.app.errors import ErrorCode

_ISO_CURRENCY = r"^[A-Z]{3}$"


def decimal_places(value: Decimal) -> int:
    return -value.as_tuple().exponent


def positive_money(value: Decimal) -> None:
    # Over-precise amounts are rejected, never rounded.
    if value <= 0:
        raise ValidationError("Amount must be greater than zero.")
    if decimal_places(value) > 2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def not_blank(value: str) -> None:
    """Same rule as the LENGTH(TRIM(...)) > 0 checks in the schema."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def user_id_field(**kwargs) -> fields.Int:
    # strict: 1.0 is not an id.
    return fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="{input} is not a positive user id."),
        **kwargs,
    )


def money_field(**kwargs) -> fields.Decimal:
    return fields.Decimal(validate=positive_money, **kwargs)


def currency_field(name: str = "currency", **kwargs) -> fields.Str:
    error = f"{name} must be a 3-letter ISO code, e.g. 'INR'."
    return fields.Str(validate=validate.Regexp(_ISO_CURRENCY, error=error), **kwargs)


def notes_field(**kwargs) -> fields.Str:
    return fields.Str(allow_none=True, validate=validate.Length(max=1000), **kwargs)


class NonEmptyPatchMixin:
    """PATCH bodies must change something."""

    @validates_schema
    def check_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Send at least one field to change.")
