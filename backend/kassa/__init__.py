# backend/kassa/__init__.py
import logging

from flask import Flask

from .config import Config
from .errors import MigrationError
from .extensions import db, migrate
from .store import MIGRATIONS_DIR, configure_sqlite_engine, ensure_sqlite_directory, run_migrations


def create_app(config=None) -> Flask:
    """
    Build the one application object of the process.

    ``config`` may be a mapping or an object with upper-case attributes; its
    values override Config (tests pass an in-memory DATABASE URI here).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config is not None:
        if isinstance(config, dict):
            app.config.update(config)
        else:
            app.config.from_object(config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Driver busy timeout: writers wait this long on a locked store
    engine_options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    connect_args = dict(engine_options.get("connect_args") or {})
    connect_args.setdefault("timeout", float(app.config["SQLITE_BUSY_TIMEOUT"]))
    engine_options["connect_args"] = connect_args
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    ensure_sqlite_directory(app.config["SQLALCHEMY_DATABASE_URI"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR), render_as_batch=True)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    with app.app_context():
        configure_sqlite_engine(db.engine)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.debts import debts_bp
    from .routes.printing import printing_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(debts_bp)
    app.register_blueprint(printing_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("AUTO_MIGRATE"):
        try:
            run_migrations(app)
        except MigrationError:
            app.logger.critical("Startup aborted: store schema could not be upgraded")
            raise

    return app
