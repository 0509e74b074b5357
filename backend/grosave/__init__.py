# backend/grosave/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .services.otp_service import OtpStore, OTP_EXTENSION_KEY


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Applied before the engine is bound so tests can swap the database
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Process-local OTP codes; one store per app instance
    app.extensions[OTP_EXTENSION_KEY] = OtpStore(ttl_seconds=app.config["OTP_TTL_SECONDS"])

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.wallet import wallet_bp
    from .routes.products import products_bp
    from .routes.pickup import pickup_bp
    from .routes.orders import orders_bp
    from .routes.notifications import notifications_bp
    from .routes.rewards import rewards_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(pickup_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(rewards_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            app.config["FRONTEND_URL"].rstrip("/"),
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, Idempotency-Key"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
