"""
app/__init__.py — Flask application factory.

create_app(config_name, notification_sink=None) builds a fully wired app;
importing this package has no side effects, so tests can build as many
isolated apps as they like and Alembic can import the models alone.

The factory:
  - loads config_by_name[config_name] (production settings are validated)
  - sets the log level from LOG_LEVEL
  - initialises SQLAlchemy and Marshmallow
  - starts a NotificationDispatcher, kept in app.extensions["notifier"]
  - mounts every blueprint under /api/v1
  - installs the JSON error handlers and the Decimal-as-string encoder
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from settleup.app.errors import SCHEMA_CODE_MESSAGES, AppError, ErrorCode
from settleup.app.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationSink,
)
from settleup.config import config_by_name, validate_production_config

_MISSING_PREFIX = "Missing data for required field"


class DecimalJSONProvider(DefaultJSONProvider):
    """Money leaves the API as a string: Decimal("10.50") -> "10.50"."""

    sort_keys = False  # keep payloads in the order services build them

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


def create_app(
        config_name: str = "development",
        notification_sink: NotificationSink | None = None,
) -> Flask:
    """
    config_name is "development", "testing" or "production"; anything else
    falls back to development. notification_sink defaults to
    LoggingNotificationSink.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    app.config.from_object(config_by_name.get(config_name, config_by_name["development"]))
    if config_name == "production":
        validate_production_config(app)

    level = app.config["LOG_LEVEL"]
    app.logger.setLevel(level)
    logging.getLogger("settleup").setLevel(level)

    from settleup.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # Registers every table on db.metadata.
    from settleup.app.models import (  # noqa: F401
        activity,
        expense,
        group,
        invitation,
        membership,
        settlement,
        split,
        user,
    )

    _start_notifier(app, notification_sink or LoggingNotificationSink())
    _mount_blueprints(app)
    _install_error_handlers(app)
    _install_dev_cors(app)
    return app


def _start_notifier(app: Flask, sink: NotificationSink) -> None:
    dispatcher = NotificationDispatcher(
        sink,
        queue_size=app.config["NOTIFICATION_QUEUE_SIZE"],
        workers=app.config["NOTIFICATION_WORKERS"],
    )
    dispatcher.start()
    app.extensions["notifier"] = dispatcher


def _mount_blueprints(app: Flask) -> None:
    from settleup.app.routes.activity import activity_bp
    from settleup.app.routes.auth import auth_bp
    from settleup.app.routes.balances import balances_bp
    from settleup.app.routes.expenses import expenses_bp
    from settleup.app.routes.groups import groups_bp
    from settleup.app.routes.health import health_bp
    from settleup.app.routes.settlements import settlements_bp
    from settleup.app.routes.users import users_bp

    # Blueprints whose paths span several resources sit at the API root.
    mounts = (
        (auth_bp, "/auth"),
        (groups_bp, "/groups"),
        (settlements_bp, "/groups"),
        (users_bp, "/users"),
        (expenses_bp, ""),
        (balances_bp, ""),
        (activity_bp, ""),
        (health_bp, ""),
    )
    for blueprint, prefix in mounts:
        app.register_blueprint(blueprint, url_prefix="/api/v1" + prefix)


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    First leaf of marshmallow's nested messages, with the top-level field
    it sits under (None for schema-level errors).

    {"splits": {0: {"value": ["bad"]}}} -> ("splits", "bad")
    """
    field = None
    node = messages
    while node:
        if isinstance(node, dict):
            key, node = next(iter(node.items()))
            if field is None and isinstance(key, str) and key != "_schema":
                field = key
        elif isinstance(node, list):
            node = node[0]
        else:
            break
    return field, str(node) if node else "Invalid input."


def _validation_body(error: ValidationError) -> dict:
    field, message = _first_validation_error(error.messages)
    if message in SCHEMA_CODE_MESSAGES:
        code, message = message, SCHEMA_CODE_MESSAGES[message]
    elif message.startswith(_MISSING_PREFIX):
        code = ErrorCode.MISSING_FIELD
    else:
        code = ErrorCode.INVALID_FIELD

    body = {"code": code, "message": message}
    if field is not None:
        body["field"] = field
    return {"error": body}


def _install_error_handlers(app: Flask) -> None:
    """
    AppError renders itself; ValidationError becomes a 400 carrying the
    first failing field; werkzeug HTTP errors pass through untouched; any
    other exception is logged and answered with a bare INTERNAL_ERROR.
    """

    @app.errorhandler(AppError)
    def on_app_error(error: AppError):
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def on_validation_error(error: ValidationError):
        return jsonify(_validation_body(error)), 400

    @app.errorhandler(HTTPException)
    def on_http_exception(error: HTTPException):
        return error

    @app.errorhandler(Exception)
    def on_unexpected(error: Exception):
        app.logger.exception("Unhandled exception: %s", error)
        body = {
            "code": ErrorCode.INTERNAL_ERROR,
            "message": "An unexpected error occurred. Please try again later.",
        }
        return jsonify({"error": body}), 500


def _install_dev_cors(app: Flask) -> None:
    """Lets a frontend on another local port call the API in DEBUG/TESTING."""

    @app.after_request
    def add_cors_headers(response):
        if not (app.config.get("DEBUG") or app.config.get("TESTING")):
            return response
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
