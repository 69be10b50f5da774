"""
routes/activity.py — Activity feeds (mounted at /api/v1). Read-only.

  GET /activity              200  every group the caller belongs to
  GET /groups/:id/activity   200  one group, members only

Both are newest first and paginated with ?page= and ?limit=.
"""

from __future__ import annotations

from flask import Blueprint, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.routes.envelope import ok, page_args
from settleup.app.services import activity_service

activity_bp = Blueprint("activity", __name__)


@activity_bp.route("/activity", methods=["GET"])
@require_auth
def get_activity():
    page, limit = page_args()
    feed = activity_service.list_user_activity(g.user_id, db.session, page=page, limit=limit)
    return ok(feed, pagination={"page": page, "limit": limit})


@activity_bp.route("/groups/<int:group_id>/activity", methods=["GET"])
@require_auth
def get_group_activity(group_id: int):
    page, limit = page_args()
    feed = activity_service.list_group_activity(
        group_id, g.user_id, db.session, page=page, limit=limit,
    )
    return ok(feed, pagination={"page": page, "limit": limit})
