"""
routes/groups.py — Group and membership endpoints (mounted at /api/v1/groups).

  POST   /groups                    201  create; caller becomes owner
  GET    /groups                    200  the caller's groups
  GET    /groups/:id                200  group with members in join order
  PATCH  /groups/:id                200  any member renames or changes currency
  POST   /groups/:id/members        201  owner adds a member, who is notified
  DELETE /groups/:id/members/:uid   200  owner removes anyone, member leaves
  POST   /groups/:id/invitations    201  invite by email; 200 if already pending
"""

from __future__ import annotations

from flask import Blueprint, current_app, g

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.notifications import dispatch
from settleup.app.routes.envelope import load_body, ok
from settleup.app.schemas.group_schema import (
    AddMemberSchema,
    CreateGroupSchema,
    InviteSchema,
    UpdateGroupSchema,
)
from settleup.app.services import group_service, invitation_service, notification_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("", methods=["POST"])
@require_auth
def create_group():
    data = load_body(CreateGroupSchema())
    currency = data["default_currency"] or current_app.config["DEFAULT_CURRENCY"]
    group = group_service.create_group(data["name"], g.user_id, db.session, default_currency=currency)
    db.session.commit()
    return ok(group, 201)


@groups_bp.route("", methods=["GET"])
@require_auth
def list_groups():
    return ok(group_service.list_groups(g.user_id, db.session))


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    return ok(group_service.get_group(group_id, g.user_id, db.session))


@groups_bp.route("/<int:group_id>", methods=["PATCH"])
@require_auth
def update_group(group_id: int):
    changes = load_body(UpdateGroupSchema())
    group = group_service.update_group(group_id, g.user_id, changes, db.session)
    db.session.commit()
    return ok(group)


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    new_member_id = load_body(AddMemberSchema())["user_id"]
    membership = group_service.add_member(group_id, g.user_id, new_member_id, db.session)
    outgoing = notification_service.member_added(group_id, g.user_id, new_member_id, db.session)
    db.session.commit()
    dispatch(outgoing)
    return ok(membership, 201)


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: int):
    group_service.remove_member(group_id, g.user_id, target_uid, db.session)
    db.session.commit()
    return ok({"removed": True, "group_id": group_id, "user_id": target_uid})


@groups_bp.route("/<int:group_id>/invitations", methods=["POST"])
@require_auth
def invite(group_id: int):
    email = load_body(InviteSchema())["email"]
    result = invitation_service.invite_to_group(group_id, g.user_id, email, db.session)

    outgoing = []
    if result["outcome"] == "added":
        member_id = result["member"]["user_id"]
        outgoing = notification_service.member_added(group_id, g.user_id, member_id, db.session)
    elif result["outcome"] == "invited":
        outgoing = notification_service.invitation_sent(
            group_id, g.user_id, result["invitation"], db.session
        )
    db.session.commit()
    dispatch(outgoing)
    return ok(result, 200 if result["outcome"] == "pending" else 201)
