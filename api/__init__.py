import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, AuthSettings
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from utils.ratelimit import RateLimiter
from utils.security import TokenService
from utils.sessions import SessionManager

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Video Platform API",
        "version": "1.0.0",
        "description": "REST API for users, videos, comments, likes and subscriptions, "
                       "with cookie-based sessions and refresh-token rotation.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "CookieAuth": {
            "type": "apiKey",
            "name": "AccessToken",
            "in": "cookie",
            "description": "HttpOnly access token cookie set by /api/v1/auth/login.",
        }
    },
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app(config_name: str | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Each call builds its own settings, token service and session manager,
    so tests get an isolated app per fixture.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    configure_logging(app)

    # Cookies need credentials and explicit origins
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", [])}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    storage.init_app(app)

    settings = AuthSettings.from_config(app.config)
    tokens = TokenService(settings)
    app.extensions["auth_settings"] = settings
    app.extensions["token_service"] = tokens
    app.extensions["session_manager"] = SessionManager(storage, tokens, settings)
    app.extensions["rate_limiter"] = RateLimiter()

    # Uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .videos import bp as videos_bp
    from .comments import bp as comments_bp
    from .likes import bp as likes_bp
    from .subscriptions import bp as subscriptions_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(videos_bp, url_prefix="/api/v1")
    app.register_blueprint(comments_bp, url_prefix="/api/v1")
    app.register_blueprint(likes_bp, url_prefix="/api/v1")
    app.register_blueprint(subscriptions_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Video Platform API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
