# backend/salesapi/__init__.py
from flask import Flask, jsonify, request
from sqlalchemy import event
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ApiError, ConcurrencyConflict, LockTimeout
from .extensions import db, migrate
from .responses import error


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    _configure_engine_options(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            event.listen(db.engine, "connect", _enable_sqlite_foreign_keys)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.orders import orders_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(admin_bp)

    _register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _configure_engine_options(app: Flask) -> None:
    """SQLite: bound lock waits by LOCK_TIMEOUT_MS and allow pooled use across threads."""
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    if uri.startswith("sqlite"):
        connect_args = dict(options.get("connect_args") or {})
        connect_args.setdefault("timeout", app.config["LOCK_TIMEOUT_MS"] / 1000.0)
        connect_args.setdefault("check_same_thread", False)
        options["connect_args"] = connect_args
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _register_error_handlers(app: Flask) -> None:
    """
    The only place errors become HTTP responses.

    ApiError subclasses carry their own status and code; anything else is a
    500 with internal detail hidden unless EXPOSE_INTERNAL_ERRORS is set.
    """

    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        if isinstance(exc, (LockTimeout, ConcurrencyConflict)):
            app.logger.warning("%s %s failed: %s", request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        code = (exc.name or "HTTP_ERROR").upper().replace(" ", "_")
        return error(code, exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        message = str(exc) if app.config.get("EXPOSE_INTERNAL_ERRORS") else "Internal server error"
        return error("INTERNAL_ERROR", message, 500)
