import os
import logging

import click
from flask import Flask, jsonify, redirect, url_for
from flask_login import current_user

from app.config import config_by_name
from app.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Lead record store (SQL or Firebase) ---
    from app.services.record_store import init_record_store
    init_record_store(app)

    # --- Register blueprints ---
    from app.blueprints.auth import auth_bp
    from app.blueprints.sheet import sheet_bp
    from app.blueprints.leads import leads_bp
    from app.blueprints.team import team_bp
    from app.blueprints.stripe_api import stripe_bp
    from app.blueprints.webhooks import webhooks_bp
    from app.blueprints.sheets import sheets_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(sheet_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(stripe_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(sheets_bp)

    # Exempt webhooks from CSRF — raw body needed for Stripe signature verification
    csrf.exempt(webhooks_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        """Logged-in members land on the sheet, everyone else on who-am-I."""
        if current_user.is_authenticated:
            return redirect(url_for("sheet.view"))
        return redirect(url_for("auth.me"))

    # --- Error handlers ---
    def _json_error(message, status):
        return jsonify({"error": message}), status

    @app.errorhandler(400)
    def bad_request(e):
        return _json_error(getattr(e, "description", None) or "Bad request", 400)

    @app.errorhandler(403)
    def forbidden(e):
        return _json_error("Forbidden", 403)

    @app.errorhandler(404)
    def not_found(e):
        return _json_error("Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _json_error("Method not allowed", 405)

    @app.errorhandler(409)
    def conflict(e):
        return _json_error(getattr(e, "description", None) or "Conflict", 409)

    @app.errorhandler(429)
    def rate_limited(e):
        return _json_error("Too many requests", 429)

    @app.errorhandler(500)
    def server_error(e):
        return _json_error("Internal server error", 500)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(self), payment=(self)"
        )
        # Content Security Policy
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://js.stripe.com https://maps.googleapis.com; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
            "img-src 'self' data: https://maps.gstatic.com https://maps.googleapis.com; "
            "font-src 'self' https://fonts.gstatic.com; "
            "connect-src 'self' https://api.stripe.com https://maps.googleapis.com; "
            "frame-src https://js.stripe.com https://hooks.stripe.com; "
            "base-uri 'self'; "
            "form-action 'self' https://checkout.stripe.com; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-team")
    @click.option("--password", default=None, help="Password for the seeded admins")
    def seed_team(password):
        """Create the default admin members if they don't exist.

        Usage:
            flask seed-team
            flask seed-team --password s3cret
        """
        from app.services.team_service import seed_default_team

        created = seed_default_team(password=password)
        if not created:
            click.echo("Default team already present.")
            return
        for member in created:
            click.echo(f"Created {member.role}: {member.name} (id: {member.id})")

    @app.cli.command("init-sheet")
    def init_sheet():
        """Write the header row to the legacy Google Sheet if it is empty."""
        from app.services import sheets_service

        if not sheets_service.is_configured():
            click.echo("ERROR: Google Sheets is not configured.")
            return
        if sheets_service.init_sheet():
            click.echo("Header row written.")
        else:
            click.echo("Sheet already has headers.")

    @app.cli.command("import-sheet")
    @click.option("--added-by", default=None, help="Team member credited with the imported leads")
    def import_sheet(added_by):
        """Copy every named row of the legacy Google Sheet into the record store.

        Each row becomes a new lead. Running it twice imports the rows twice.
        """
        from app.services import sheets_service
        from app.services.record_store import get_record_store

        if not sheets_service.is_configured():
            click.echo("ERROR: Google Sheets is not configured.")
            return
        rows = sheets_service.list_rows()
        imported, failed = sheets_service.import_rows(
            get_record_store(), rows, added_by=added_by,
        )
        click.echo(f"Imported {imported} lead(s), {failed} failed.")

    @app.cli.command("watch-leads")
    @click.option("--status", default="all", help="Only count leads with this status")
    def watch_leads(status):
        """Print a line every time the lead collection changes. Ctrl-C to stop.

        With RECORD_STORE=sql only changes made by this process are pushed;
        the Firebase store follows the remote event stream.
        """
        import threading

        from app.services.lead_view import FilterCriteria, apply_view
        from app.services.record_store import get_record_store

        criteria = FilterCriteria(status=status.upper() if status != "all" else "all")

        def on_snapshot(records):
            visible = apply_view(records, criteria)
            click.echo(f"{len(records)} lead(s), {len(visible)} matching")

        unsubscribe = get_record_store().subscribe(on_snapshot)
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        finally:
            unsubscribe()
