# backend/multishop/__init__.py
import logging
import os

from flask import Flask, request

from .config import Config
from .errors import MultishopError
from .extensions import PRINCIPAL_LISTENERS_KEY, STATE_REGISTRY_KEY, db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Application state registry, fed by login/logout events
    from .services import identity_service
    from .services.app_state import StateRegistry
    from .services.blob_cache import BlobCache

    cache_dir = app.config.get("LOCAL_CACHE_DIR") or os.path.join(app.instance_path, "cache")
    registry = StateRegistry(
        BlobCache(cache_dir),
        feed_limit=app.config.get("NOTIFICATION_FEED_LIMIT", 50),
    )
    app.extensions[STATE_REGISTRY_KEY] = registry
    app.extensions[PRINCIPAL_LISTENERS_KEY] = []
    with app.app_context():
        identity_service.subscribe(registry.on_principal_change)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.shops import shops_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.transfers import transfers_bp
    from .routes.notifications import notifications_bp
    from .routes.expenses import expenses_bp
    from .routes.deliveries import deliveries_bp
    from .routes.employees import employees_bp
    from .routes.reports import reports_bp
    from .routes.state import state_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(shops_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(state_bp)

    @app.errorhandler(MultishopError)
    def handle_domain_error(exc: MultishopError):
        if exc.http_status >= 500:
            app.logger.error("%s: %s", exc.kind, exc.message)
        return exc.to_dict(), exc.http_status

    @app.errorhandler(500)
    def handle_unexpected_error(exc):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return {"error": "Internal server error"}, 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
