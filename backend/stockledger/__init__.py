# backend/stockledger/__init__.py
from __future__ import annotations

from flask import Flask, jsonify

from .config import Config, validate_config
from .extensions import celery_init_app, db, migrate
from .validation import StockLedgerError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Refuse to start with contradictory lifecycle / alerting settings
    validate_config(app.config)

    app.logger.setLevel(app.config["LOG_LEVEL"].upper())

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    celery_app = celery_init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register Celery tasks and the beat schedule
    from .tasks import build_beat_schedule
    celery_app.conf.beat_schedule = build_beat_schedule(app.config)

    from .services.notification_service import NOTIFIER_EXTENSION_KEY, LoggingNotifier
    app.extensions.setdefault(NOTIFIER_EXTENSION_KEY, LoggingNotifier())

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.transactions import transactions_bp
    from .routes.alerts import alerts_bp
    from .routes.lifecycle import lifecycle_bp
    from .routes.jobs import jobs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(alerts_bp)
    app.register_blueprint(lifecycle_bp)
    app.register_blueprint(jobs_bp)

    @app.errorhandler(StockLedgerError)
    def handle_domain_error(exc: StockLedgerError):
        return jsonify({"error": exc.to_dict()}), exc.http_status

    @app.errorhandler(500)
    def handle_internal_error(exc):
        return jsonify({"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}}), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
