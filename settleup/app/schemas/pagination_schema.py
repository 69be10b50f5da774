"""
schemas/pagination_schema.py — Query-string pagination for list endpoints.

page is 1-based. limit is capped by the route at MAX_PAGE_SIZE; the
schema only rejects values that can never be valid.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class PaginationSchema(Schema):

    class Meta:
        unknown = EXCLUDE

    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1, error="page must be a positive integer."),
    )

    limit = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="limit must be a positive integer."),
    )
