from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from config import Config
from routes import health_bp, auth_bp, projects_bp
from security.session import cookie_name, refresh_remembered_cookie

from models import db
from flask_migrate import Migrate
from utils.auth_context import load_current_user
from utils.errors import AppError, RateLimitedError, SecurityViolation


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Source address comes from X-Forwarded-For only behind a trusted proxy
    if app.config.get("TRUST_PROXY"):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(projects_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        # Session lookup + fingerprint enforcement for every request
        load_current_user()

    register_error_handlers(app)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # JSON API only:
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.after_request
    def _roll_remembered_session(resp):
        ctx = g.get("ctx")
        return refresh_remembered_cookie(resp, ctx.session if ctx is not None else None)


    register_cli(app)


    return app

#-------------------------
def register_error_handlers(app):
    @app.errorhandler(AppError)
    def _app_error(exc):
        resp = jsonify(exc.to_dict())
        resp.status_code = exc.status_code
        if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
            resp.headers["Retry-After"] = str(exc.retry_after)
        if isinstance(exc, SecurityViolation):
            resp.delete_cookie(cookie_name(), path="/")
        return resp

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        resp = jsonify(success=False, message=exc.description or exc.name)
        resp.status_code = exc.code or 500
        return resp

    @app.errorhandler(Exception)
    def _unhandled(exc):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify(success=False, message="Server error"), 500

#-------------------------
import click
from security.bruteforce import purge_expired_locks
from security.session import purge_expired_sessions

def register_cli(app):
    @app.cli.command("purge-expired")
    def purge_expired():
        """Delete elapsed login locks and dead sessions."""
        locks = purge_expired_locks()
        sessions = purge_expired_sessions()
        click.echo(f"Purged {locks} login lock(s) and {sessions} session(s)")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
