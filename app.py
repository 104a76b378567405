import logging
import os

import click
from flask import Flask
from flask_migrate import Migrate

from config import Config
from routes import health_bp, booking_bp

from models import db
from services.booking_service import BookingService
from services.reconciler import ExpiryReconciler
from utils.auth_context import load_current_user
from utils.errors import register_error_handlers


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    register_error_handlers(app)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Booking core and its collaborators (auth + station services)
    app.extensions["booking_service"] = BookingService.from_config(app.config)

    reconciler = ExpiryReconciler(app, interval_seconds=app.config["RECONCILE_INTERVAL_SECONDS"])
    app.extensions["booking_reconciler"] = reconciler
    if app.config.get("RECONCILER_ENABLED") and _is_serving_process(app):
        reconciler.start()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        # JSON-only API
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def _is_serving_process(app) -> bool:
    # the reloader parent only watches files; the sweep belongs in the child
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") is None:
        return False
    return True

#-------------------------

def register_cli(app):
    @app.cli.command("reconcile-bookings")
    def reconcile_bookings():
        """Complete every BOOKED booking whose end time has passed (one sweep)."""
        count = app.extensions["booking_reconciler"].run_once()
        click.echo(f"Completed {count} expired bookings")

    @app.cli.command("init-db")
    def init_db():
        """Create tables directly (development only; use `flask db upgrade` otherwise)."""
        db.create_all()
        click.echo("Database tables created")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5003)
