"""
routes/health.py — Liveness probe. No auth, no database access.
"""

from __future__ import annotations

from flask import Blueprint, current_app

from settleup.app.routes.envelope import ok

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    notifier = current_app.extensions.get("notifier")
    running = notifier is not None and notifier.running
    return ok({"status": "ok", "notifications": "running" if running else "stopped"})
