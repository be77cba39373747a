# backend/posledger/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.from_mapping(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.transactions import transactions_bp
    from .routes.stock import stock_bp
    from .routes.counts import counts_bp
    from .routes.purchase_orders import purchase_orders_bp
    from .routes.credit import credit_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(counts_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(credit_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
