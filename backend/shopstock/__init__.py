# backend/shopstock/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before db.init_app binds the engine URI
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.grns import grns_bp
    from .routes.inventory_reports import inventory_reports_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(grns_bp)
    app.register_blueprint(inventory_reports_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
