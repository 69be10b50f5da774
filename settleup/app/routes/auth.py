"""
routes/auth.py — Account endpoints (mounted at /api/v1/auth).

  POST /register   201  {"user", "access_token"}
  POST /login      200  {"user", "access_token"}
  GET  /me         200  the caller's profile
"""

from __future__ import annotations

from flask import Blueprint, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.routes.envelope import load_body, ok
from settleup.app.schemas.auth_schema import LoginSchema, RegisterSchema
from settleup.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    result = auth_service.register_user(session=db.session, **load_body(RegisterSchema()))
    db.session.commit()
    return ok(result, 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    # Read-only: nothing to commit.
    return ok(auth_service.login_user(session=db.session, **load_body(LoginSchema())))


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return ok(auth_service.get_current_user(g.user_id, db.session))
