"""
routes/users.py — User lookup, profile and push-token settings (mounted at /api/v1/users).

  GET   /users/by-username/:name   200  find someone to add to a group
  POST  /users/search              200  up to 20 users matching {"query"}
  PATCH /users/me                  200  change the caller's username or email
  PUT   /users/me/fcm-token        200  store or clear the caller's push token
"""

from __future__ import annotations

from flask import Blueprint, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.routes.envelope import load_body, ok
from settleup.app.schemas.auth_schema import FcmTokenSchema, SearchUsersSchema, UpdateProfileSchema
from settleup.app.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/by-username/<string:username>", methods=["GET"])
@require_auth
def get_user_by_username(username: str):
    return ok(user_service.get_user_by_username(username, db.session))


@users_bp.route("/search", methods=["POST"])
@require_auth
def search_users():
    query = load_body(SearchUsersSchema())["query"]
    return ok(user_service.search_users(query, db.session))


@users_bp.route("/me", methods=["PATCH"])
@require_auth
def update_profile():
    changes = load_body(UpdateProfileSchema())
    profile = user_service.update_profile(g.user_id, changes, db.session)
    db.session.commit()
    return ok(profile)


@users_bp.route("/me/fcm-token", methods=["PUT"])
@require_auth
def update_fcm_token():
    token = load_body(FcmTokenSchema())["fcm_token"]
    profile = user_service.update_fcm_token(g.user_id, token, db.session)
    db.session.commit()
    return ok(profile)
