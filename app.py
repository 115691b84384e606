import atexit
import logging

import click
from flask import Flask, request, g

from config import Config
from models import db
from flask_migrate import Migrate
from routes import health_bp, auth_bp, mentor_bp, offerings_bp, admin_bp
from security.csrf import require_csrf
from tasks.jobs import expire_reservations, reconcile_offerings
from tasks.scheduler import LifecycleScheduler
from utils.auth_context import load_current_user
from utils.clock import Clock
from utils.seed import seed_roles


def create_app(config_object=Config, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app.extensions["clock"] = clock or Clock()

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(mentor_bp)
    app.register_blueprint(offerings_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    CSRF_EXEMPT_PATHS = {
        "/auth/login",
        "/health",
    }

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    scheduler = LifecycleScheduler(
        app,
        app.extensions["clock"],
        sweep_interval=app.config.get("EXPIRY_SWEEP_INTERVAL_SECONDS", 60),
        reconcile_interval=app.config.get("STATUS_RECONCILE_INTERVAL_SECONDS", 5),
    )
    app.extensions["lifecycle_scheduler"] = scheduler
    if app.config.get("SCHEDULER_ENABLED"):
        scheduler.start()
        atexit.register(scheduler.shutdown, wait=False)

    register_cli(app)

    return app

#-------------------------
from models.user import User
from utils.roles import ADMIN
from utils.seed import get_role

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = get_role(ADMIN)
        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("expire-reservations")
    def expire_reservations_cmd():
        """Run one expiry sweep now."""
        summary = expire_reservations(app, app.extensions["clock"])
        click.echo(
            f"expired={summary['expired']} reopened={summary['reopened']} failed={summary['failed']}"
        )

    @app.cli.command("reconcile-offerings")
    def reconcile_offerings_cmd():
        """Run one status reconciliation now."""
        summary = reconcile_offerings(app, app.extensions["clock"])
        click.echo(
            f"checked={summary['checked']} changed={summary['changed']} failed={summary['failed']}"
        )

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
