# backend/ordercycle/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Outbound supplier messaging; tests swap this for a fake
    from .services.messaging import build_message_provider
    app.extensions["message_provider"] = build_message_provider(app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.cutoff import cutoff_bp
    from .routes.cycle import cycle_bp
    from .routes.sale_orders import sale_orders_bp
    from .routes.aggregation import aggregation_bp
    from .routes.purchase_orders import purchase_orders_bp
    from .routes.inbound import inbound_bp
    from .routes.supplier_accounts import supplier_accounts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(cutoff_bp)
    app.register_blueprint(cycle_bp)
    app.register_blueprint(sale_orders_bp)
    app.register_blueprint(aggregation_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(inbound_bp)
    app.register_blueprint(supplier_accounts_bp)

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
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
