"""
routes/envelope.py — Request parsing and the success envelope used by every blueprint.

Successful responses look like {"data": ..., "warnings": [...]}; list
endpoints add a "pagination" object between the two. Errors never pass
through here; the handlers in app/__init__.py render them.
"""

from __future__ import annotations

from flask import current_app, jsonify, request
from marshmallow import Schema

from settleup.app.schemas.pagination_schema import PaginationSchema


def ok(data, status: int = 200, warnings: list[dict] | None = None, **extra):
    body = {"data": data, **extra, "warnings": warnings or []}
    return jsonify(body), status


def load_body(schema: Schema) -> dict:
    """Validated JSON body; a missing or non-JSON body loads as {}."""
    return schema.load(request.get_json(force=True, silent=True) or {})


def page_args() -> tuple[int, int]:
    """(page, limit) from the query string, limit capped at MAX_PAGE_SIZE."""
    args = PaginationSchema().load(request.args)
    limit = args["limit"] or current_app.config["DEFAULT_PAGE_SIZE"]
    return args["page"], min(limit, current_app.config["MAX_PAGE_SIZE"])
