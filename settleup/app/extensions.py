"""
extensions.py — Flask extension singletons.

SQLAlchemy and marshmallow are created here without an app and bound in
the app factory with init_app(app), so tests can build isolated app
instances:

    from settleup.app.extensions import db, ma

The notification dispatcher is NOT a module-level singleton. It is built
per app in create_app() and stored in app.extensions["notifier"].
"""

from flask_sqlalchemy import SQLAlchemy
from flask_marshmallow import Marshmallow

db = SQLAlchemy()

# Validation schemas in app/schemas/ inherit from marshmallow.Schema, not
# ma.Schema: ma.Schema needs an active app context, and the unit tests
# load schemas without one.
ma = Marshmallow()
