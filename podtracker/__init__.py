"""
POD Tracker
Flask Application Factory.

Usage:
    from podtracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from podtracker.config import config
from podtracker.models import db
from podtracker.middleware.logging_config import configure_logging
from podtracker.middleware.rate_limiter import init_rate_limits
from podtracker.middleware.timing import init_request_timing
from podtracker.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Service exception → JSON mapping ─────────────────────────────────
    register_error_handlers(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from podtracker.models import identity as _identity_models          # noqa: F401
    from podtracker.models import pod as _pod_models                    # noqa: F401
    from podtracker.models import notification as _notification_models  # noqa: F401
    from podtracker.models import log_issue as _log_issue_models        # noqa: F401
    from podtracker.models import audit as _audit_models                # noqa: F401
    from podtracker.models import scheduling as _scheduling_models      # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from podtracker.blueprints.pod_bp import pod_bp
    from podtracker.blueprints.notification_bp import notification_bp
    from podtracker.blueprints.identity_bp import identity_bp
    from podtracker.blueprints.log_issue_bp import log_issue_bp

    app.register_blueprint(pod_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(identity_bp)
    app.register_blueprint(log_issue_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "POD Tracker"}

    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    import importlib
    importlib.import_module("podtracker.services.scheduled_jobs")  # registers @register_job handlers
    from podtracker.services.scheduler_service import SchedulerService as _SchedulerSvc
    _SchedulerSvc.init_app(app)
    if app.config.get("SCHEDULER_ENABLED"):
        _SchedulerSvc.ensure_jobs_registered()
        _SchedulerSvc.start()

    return app
