# backend/tms/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .logging_config import setup_logging


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Notification sink (outbox unless a test/dry-run sink was configured)
    from .services.notification_service import SINK_EXTENSION_KEY, OutboxNotificationSink
    app.extensions.setdefault(SINK_EXTENSION_KEY, OutboxNotificationSink())

    # Register blueprints
    from .routes.system import system_bp
    from .routes.trips import trips_bp
    from .routes.payroll import payroll_bp
    from .routes.report_stages import report_stages_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(trips_bp)
    app.register_blueprint(payroll_bp)
    app.register_blueprint(report_stages_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-User-Id, X-User-Name"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
